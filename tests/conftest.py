"""Shared test fixtures for gmwire."""

from __future__ import annotations

import json

import pytest

from gmwire.client import Connection
from gmwire.config import Settings
from gmwire.crypto import sign_packet

HEADER = "PATCH:"
SECRET = "K"


class FakeTransport:
    """In-memory transport: records writes and closes, fires events on demand."""

    def __init__(self) -> None:
        self.writes: list[bytes] = []
        self.close_count = 0
        self.listeners: dict[str, list] = {}

    def write(self, data: bytes) -> None:
        self.writes.append(data)

    def close(self) -> None:
        self.close_count += 1

    def on(self, event: str, handler) -> None:
        self.listeners.setdefault(event, []).append(handler)

    def emit(self, event: str, *args) -> None:
        for handler in self.listeners.get(event, []):
            handler(*args)

    def frames(self) -> list:
        """Decode every write as HEADER + JSON."""
        out = []
        for data in self.writes:
            text = data.decode("utf-8")
            assert text.startswith(HEADER)
            out.append(json.loads(text[len(HEADER):]))
        return out


def packet(payload: str, sequence: int, secret: str = SECRET) -> bytes:
    """A signed, NUL-terminated inbound packet."""
    return (sign_packet(payload, secret, sequence) + "\0").encode("utf-8")


@pytest.fixture
def settings() -> Settings:
    return Settings(header=HEADER, secret=SECRET)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def conn(transport: FakeTransport, settings: Settings) -> Connection:
    """A fresh connection with its greeting already cleared from the transport."""
    c = Connection(transport, settings, client_id=1)
    transport.writes.clear()
    return c
