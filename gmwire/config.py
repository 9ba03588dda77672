import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .crypto import SEARCH_BOUND

"""
config.py: settings for a gmwire server, read from the environment.

Variables:
- PATCH_HEADER            required. String prepended to every outbound frame.
- GM_SERVER_SECRET        required. Shared secret mixed into packet digests.
- GM_SERVER_DEBUG         "true" turns on debug logging of frames.
- GM_SERVER_SEARCH_BOUND  optional. Sequence search window (default 100).
- GM_SERVER_STRICT_SEQUENCE  "true" moves the counter past every dispatched packet.

Set the same GM_SERVER_SECRET on the server and on every client.
"""


class ConfigError(LookupError):
    """A required environment variable is missing."""


def get_env(name: str, default: Optional[str] = None,
            environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Look up an environment variable.

    Unset or empty values fall back to default. With no default, a missing
    (or empty) value is an error rather than a silent empty string.
    """
    env = os.environ if environ is None else environ
    value = env.get(name)
    if not value and default is None:
        raise ConfigError(f"Value for environment variable {name} required")
    return value or default


@dataclass(frozen=True)
class Settings:
    header: str
    secret: str
    debug: bool = False
    search_bound: int = SEARCH_BOUND
    # Move the counter past each dispatched packet so an exact replay of the
    # last packet no longer validates. Clients must then never reuse a number.
    advance_on_dispatch: bool = False

    def __post_init__(self) -> None:
        if not self.header:
            raise ValueError("header must be a non-empty string")
        if not self.secret:
            raise ValueError("secret must be a non-empty string")
        if self.search_bound < 1:
            raise ValueError("search_bound must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from os.environ (or the mapping given)."""
        bound = get_env("GM_SERVER_SEARCH_BOUND", str(SEARCH_BOUND), environ)
        try:
            search_bound = int(bound)
        except ValueError:
            raise ValueError(f"GM_SERVER_SEARCH_BOUND must be an integer, got {bound!r}") from None
        return cls(
            header=get_env("PATCH_HEADER", environ=environ),
            secret=get_env("GM_SERVER_SECRET", environ=environ),
            debug=get_env("GM_SERVER_DEBUG", "false", environ) == "true",
            search_bound=search_bound,
            advance_on_dispatch=get_env("GM_SERVER_STRICT_SEQUENCE", "false", environ) == "true",
        )
