"""
crypto.py: keyed digests and the sequence-window validator.

Why this exists:
- Keep all hashing in one place so the connection code only asks
  "is this packet authentic, and which sequence number did it carry?".
- The digest is SHA-1 over (payload + secret + decimal sequence number),
  rendered as 40 lowercase hex chars. Clients compute the same thing.

Notes:
- This gives integrity and ordering only; nothing here encrypts.
- The secret is always passed in (see config.Settings), never a module constant.
"""

import base64
import hmac
import logging
import os
from typing import Optional

from cryptography.hazmat.primitives import hashes

from .framing import DIGEST_LENGTH

logger = logging.getLogger(__name__)

# How many sequence numbers past the current counter a packet may carry and
# still be accepted.
SEARCH_BOUND = 100


# -----------------------------
# Base64 URL helpers (no padding)
# -----------------------------

def b64url_encode(data: bytes) -> str:
    """URL-safe Base64 without '=' padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_secret(nbytes: int = 48) -> str:
    """Fresh random shared secret, printable so it drops into an env var."""
    return b64url_encode(os.urandom(nbytes))


# -------------
# Keyed digests
# -------------

def keyed_digest(payload: str, secret: str, sequence: int) -> str:
    """Hex SHA-1 of the UTF-8 bytes of payload + secret + str(sequence)."""
    h = hashes.Hash(hashes.SHA1())
    h.update((payload + secret + str(sequence)).encode("utf-8"))
    return h.finalize().hex()


def digests_match(expected: str, received: str) -> bool:
    """Constant-time compare. Works on bytes so odd wire chars can't raise."""
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def sign_packet(payload: str, secret: str, sequence: int) -> str:
    """Client side: payload with its digest appended, ready to send."""
    return payload + keyed_digest(payload, secret, sequence)


# ---------------------------
# Validation (server side)
# ---------------------------

class PacketValidator:
    """
    Tracks one connection's sequence counter and checks inbound digests.

    validate() probes counter, counter+1, ... counter+bound-1 and accepts the
    first sequence number whose digest matches. That tolerates a few lost or
    skipped packets without any acknowledgement traffic. A bigger bound is
    more forgiving but costs more hashing per packet and widens the window an
    old packet could be replayed into.
    """

    def __init__(self, secret: str, bound: int = SEARCH_BOUND, counter: int = 0) -> None:
        if not secret:
            raise ValueError("secret must be a non-empty string")
        if bound < 1:
            raise ValueError("search bound must be at least 1")
        if counter < 0:
            raise ValueError("counter can't be negative")
        self._secret = secret
        self.bound = bound
        self.counter = counter

    def match(self, digest: str, payload: str) -> Optional[int]:
        """Return the first sequence number in the window that fits, or None."""
        if len(digest) != DIGEST_LENGTH:
            return None
        for candidate in range(self.counter, self.counter + self.bound):
            if digests_match(keyed_digest(payload, self._secret, candidate), digest):
                return candidate
        return None

    def validate(self, digest: str, payload: str) -> bool:
        """
        Check a (digest, payload) pair and move the counter to the accepted
        sequence number. On failure the counter is left alone.
        """
        accepted = self.match(digest, payload)
        if accepted is None:
            # Only the window is logged; the hashed input contains the secret.
            logger.warning("No sequence number in [%d, %d) matches packet digest",
                           self.counter, self.counter + self.bound)
            return False
        self.counter = accepted
        return True

    def advance(self) -> None:
        """Expect the next sequence number; called once a packet is consumed."""
        self.counter += 1


class PacketSigner:
    """
    Client-side counterpart of PacketValidator.

    Signs each payload with the next sequence number, starting from 0. That
    stays inside the server's window whether or not it advances its counter
    after each dispatched packet (Settings.advance_on_dispatch).
    """

    def __init__(self, secret: str, sequence: int = 0) -> None:
        self._secret = secret
        self.sequence = sequence

    def sign(self, payload: str) -> str:
        packet = sign_packet(payload, self._secret, self.sequence)
        self.sequence += 1
        return packet
