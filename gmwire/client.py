import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from . import framing
from . import messages as m
from .config import Settings
from .crypto import PacketValidator

"""
client.py: the server-side wrapper around one client's byte stream.

A Connection owns exactly one transport. It:
- checks every inbound packet (framing -> digest split -> sequence window)
  and hands decoded payloads to its data handlers, in registration order;
- sends commands either straight away or, in tick mode, queues them until
  tick() flushes the lot as one batch frame;
- tears itself down on the first packet that fails validation.

Notes:
- A packet with a good digest but broken JSON is dropped, not fatal.
- Nothing is ever sent back to explain a failure; the stream just closes.
"""

logger = logging.getLogger(__name__)

DataHandler = Callable[[Any], None]

# Returned by Connection.decode for a packet that was thrown away.
DROPPED = object()


class Transport(Protocol):
    """What a Connection needs from the stream underneath it."""

    def write(self, data: bytes) -> None: ...

    def close(self) -> None: ...

    def on(self, event: str, handler: Callable[..., Any]) -> None: ...


class TickModeError(RuntimeError):
    """tick() was called while tick mode is off."""


class Connection:
    """
    One accepted client session.

    :ivar client_id: identifier handed out by the owning server.
    :ivar created: creation time, epoch milliseconds.
    :ivar destroyed: set once by destroy(); the connection is inert afterwards.
    :ivar extras: free-form per-session values (see set/get).
    :ivar received: packets decoded and dispatched so far.
    """

    def __init__(self, transport: Transport, settings: Settings, client_id: int) -> None:
        self.transport = transport
        self.settings = settings
        self.client_id = client_id
        self.created = int(time.time() * 1000)
        self.destroyed = False
        self.extras: Dict[str, Any] = {}
        self.validator = PacketValidator(settings.secret, settings.search_bound)
        self.received = 0
        self.tick_mode = False
        self.queue: List[Dict[str, Any]] = []
        self._handlers: List[DataHandler] = []

        transport.on("data", self.data_received)

        self.send_command(m.connected())

    def __repr__(self) -> str:
        state = "destroyed" if self.destroyed else "open"
        return f"<Connection {self.client_id} {state}>"

    @property
    def counter(self) -> int:
        """Current sequence counter (the next number the validator tries first)."""
        return self.validator.counter

    # -------------------------
    # Session values
    # -------------------------

    def set(self, key: str, value: Any) -> None:
        self.extras[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.extras.get(key, default)

    # -------------------------
    # Events
    # -------------------------

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        """Register a handler for a transport-level event (passed straight through)."""
        self.transport.on(event, handler)

    def on_data(self, handler: DataHandler) -> None:
        """Register a handler for validated, decoded packets."""
        self._handlers.append(handler)

    # -------------------------
    # Inbound
    # -------------------------

    def data_received(self, data: bytes) -> Any:
        """
        Process one raw read from the transport.

        Returns the decoded payload, or None if the packet was dropped. A
        valid JSON null payload is dispatched and also comes back as None;
        use decode() to tell the two apart.
        Exceptions raised by data handlers propagate to the caller.
        """
        if self.destroyed:
            return None

        obj = self.decode(data)
        if obj is DROPPED:
            return None

        logger.debug("%s received: %s", self.client_id, framing.dumps(obj))

        self.received += 1
        if self.settings.advance_on_dispatch:
            self.validator.advance()

        for handler in list(self._handlers):
            handler(obj)
        return obj

    def decode(self, data: bytes) -> Any:
        """
        Framing + integrity check + JSON decode for one raw read.

        An integrity failure destroys the connection. A JSON failure only
        drops the packet. Both return DROPPED.
        """
        packet = framing.extract_packet(data)
        digest, payload = framing.split_digest(packet)

        if not self.validator.validate(digest, payload):
            logger.warning("%s: tossing out packet as it does not have integrity", self.client_id)
            self.destroy()
            return DROPPED

        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("%s: dropping packet with undecodable payload", self.client_id)
            return DROPPED

    # -------------------------
    # Outbound
    # -------------------------

    def send_command(self, command: Dict[str, Any]) -> bool:
        """
        Send a complete command object (it carries its own "command" field,
        or is a batch).

        In tick mode the command is queued (batches are unpacked first) and
        True is returned. Otherwise the result of direct_send(). A destroyed
        connection queues and writes nothing and returns False.
        """
        if self.destroyed:
            return False
        if self.tick_mode:
            self.queue.extend(m.flatten(command))
            return True
        return self.direct_send(command)

    def send_named(self, name: str, data: Optional[Dict[str, Any]] = None) -> bool:
        """Send data as the command called name. data itself is not modified."""
        return self.send_command(m.new_command(name, data))

    def batch_send(self, commands: List[Dict[str, Any]]) -> bool:
        """Send several commands together in one frame."""
        return self.send_command(m.new_batch(commands))

    def direct_send(self, command: Dict[str, Any]) -> bool:
        """Write a command to the wire now. False (and no write) once destroyed."""
        if self.destroyed:
            return False

        frame = framing.encode_frame(command, self.settings.header)
        logger.debug("%s is sending: %s", self.client_id, frame.decode("utf-8"))

        self.transport.write(frame)
        return True

    def set_tick_mode(self, on: bool) -> None:
        """
        Switch tick mode. Turning it off flushes whatever is still queued, so
        nothing sits in the queue outside tick mode. Turning it off counts
        as a flush, the same as calling tick().
        """
        if not on and self.tick_mode and self.queue:
            self.tick()
        self.tick_mode = bool(on)

    def tick(self) -> bool:
        """
        Send everything queued since the last tick as one batch frame.

        Returns True if a frame was written. An empty queue writes nothing.

        Raises:
            TickModeError: if tick mode is off.
        """
        if not self.tick_mode:
            raise TickModeError("Cannot tick when not in tick mode")

        if not self.queue:
            return False

        batch = m.new_batch(self.queue)
        self.queue = []
        return self.direct_send(batch)

    # -------------------------
    # Teardown
    # -------------------------

    def destroy(self) -> bool:
        """
        Close this connection's transport, once. Later calls do nothing.

        Returns True if this call did the teardown.
        """
        if self.destroyed:
            return False
        self.destroyed = True
        self.queue = []
        logger.debug("%s destroyed", self.client_id)
        self.transport.close()
        return True
