import json
from typing import Any, Dict, List, Tuple

"""
framing.py: packet framing for the gmwire stream protocol.

Protocol (simple on purpose):
- Inbound (client -> server): UTF-8 JSON payload immediately followed by a
  40-char lowercase hex digest. A NUL byte may terminate the packet; anything
  after the first NUL in one read is ignored.
- Outbound (server -> client): HEADER + compact JSON. Any copy of HEADER inside
  the JSON body is stripped so payload content can't fake a frame boundary.

Only positional work happens here. Whether a packet is authentic is decided by
crypto.PacketValidator.
"""

TERMINATOR = "\0"
DIGEST_LENGTH = 40  # hex chars of a SHA-1 digest

# Stand-in for empty reads. It still has to pass validation like anything else.
MISSING_DATA_PACKET = '{"command": "missingSocketDataString"}'


# -------------------------
# Inbound
# -------------------------

def extract_packet(data: bytes) -> str:
    """
    Turn one raw read into one logical packet.

    Only the first packet of a read is used; bytes after the terminator are
    dropped. Empty or whitespace-only input becomes MISSING_DATA_PACKET.
    """
    text = data.decode("utf-8", errors="replace")
    end = text.find(TERMINATOR)
    if end > -1:
        text = text[:end]

    if not text.strip():
        text = MISSING_DATA_PACKET
    return text


def split_digest(packet: str) -> Tuple[str, str]:
    """
    Split packet text into (digest, payload).

    Pure slicing: the digest is whatever the last DIGEST_LENGTH chars are. A
    packet shorter than that yields an empty payload and a short digest.
    """
    return packet[-DIGEST_LENGTH:], packet[:-DIGEST_LENGTH]


# -------------------------
# Outbound
# -------------------------

def dumps(obj: Any) -> str:
    """Compact JSON, non-ASCII kept as UTF-8 rather than \\u escapes."""
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def strip_header(body: str, header: str) -> str:
    """Remove every copy of header from body, including ones the removal creates."""
    if not header:
        return body
    while header in body:
        body = body.replace(header, "")
    return body


def encode_frame(command: Dict[str, Any], header: str) -> bytes:
    """Serialize a command object into the bytes written to the wire."""
    return (header + strip_header(dumps(command), header)).encode("utf-8")


# -------------------------
# Client side
# -------------------------

def decode_frames(text: str, header: str) -> List[Any]:
    """
    Parse a stretch of server output back into command objects.

    Bodies never contain the header, so splitting on it is unambiguous. Text
    before the first header is not a frame and is skipped.

    Raises:
        ValueError: if a body isn't valid JSON (e.g. the read stopped mid-frame).
    """
    if not header:
        raise ValueError("header must be a non-empty string")

    frames: List[Any] = []
    for body in text.split(header)[1:]:
        try:
            frames.append(json.loads(body))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON frame: {exc}") from exc
    return frames
