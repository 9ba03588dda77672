import asyncio
import itertools
import logging
from typing import Any, Callable, Dict, List, Optional

from .client import Connection
from .config import Settings

"""
node.py: the listening side of gmwire.

What lives here:
- StreamTransport: adapts an asyncio StreamWriter to the small event-style
  transport a Connection expects (write / close / on).
- GameServer: accepts TCP streams, wraps each one in a Connection with an id
  from its own counter, pumps reads into the connection, and cleans up.

Notes:
- One reader task per stream. Each read is fully processed (framing,
  validation, handlers) before the next read, so handlers see packets in
  arrival order.
- A handler that raises takes down its own connection only.
"""

logger = logging.getLogger(__name__)

READ_SIZE = 64 * 1024  # max bytes per read; one read is one packet


class StreamTransport:
    """Event-style wrapper around an asyncio StreamWriter."""

    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self.writer = writer
        self.closed = False
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}

    @property
    def peername(self) -> Any:
        return self.writer.get_extra_info("peername")

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._listeners.setdefault(event, []).append(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._listeners.get(event, [])):
            handler(*args)

    def write(self, data: bytes) -> None:
        if self.closed:
            return
        try:
            self.writer.write(data)
        except (ConnectionError, RuntimeError) as exc:
            self.emit("error", exc)

    def close(self) -> None:
        """Close the writer once and tell listeners the stream is gone."""
        if self.closed:
            return
        self.closed = True
        self.writer.close()
        self.emit("close")


class GameServer:
    """
    TCP server that hands every accepted stream to a Connection.

    :ivar connections: open connections by client id.
    """

    def __init__(self, settings: Settings, host: str = "127.0.0.1", port: int = 9000) -> None:
        self.settings = settings
        self.host = host
        self.port = port
        self.connections: Dict[int, Connection] = {}
        self._ids = itertools.count(1)
        self._connection_handlers: List[Callable[[Connection], None]] = []
        self._server: Optional[asyncio.AbstractServer] = None

    def on_connection(self, handler: Callable[[Connection], None]) -> None:
        """Register a callback run for every new Connection (before any reads)."""
        self._connection_handlers.append(handler)

    async def listen(self) -> asyncio.AbstractServer:
        """Bind and start accepting; returns the asyncio server."""
        self._server = await asyncio.start_server(self.handle_conn, self.host, self.port)
        addrs = ", ".join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info("gmwire server listening on %s", addrs)
        return self._server

    async def start(self) -> None:
        """Listen for TCP connections and serve forever."""
        server = await self.listen()
        async with server:
            await server.serve_forever()

    async def close(self) -> None:
        """Stop accepting and tear down every open connection."""
        server, self._server = self._server, None
        if server is not None:
            server.close()
        for conn in list(self.connections.values()):
            conn.destroy()
        self.connections.clear()
        if server is not None:
            await server.wait_closed()

    def accept(self, transport: StreamTransport) -> Connection:
        """Wrap a transport in a new Connection and register it."""
        conn = Connection(transport, self.settings, next(self._ids))
        self.connections[conn.client_id] = conn
        transport.on("close", lambda: self.connections.pop(conn.client_id, None))
        transport.on("error", lambda exc: logger.warning("%s transport error: %s", conn.client_id, exc))
        for handler in self._connection_handlers:
            handler(conn)
        return conn

    async def handle_conn(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Per-connection loop: read chunks and pass them to the Connection."""
        transport = StreamTransport(writer)
        conn = self.accept(transport)
        logger.info("client %s connected from %s", conn.client_id, transport.peername)
        try:
            while not conn.destroyed:
                chunk = await reader.read(READ_SIZE)
                if not chunk:
                    break
                transport.emit("data", chunk)
                if not conn.destroyed:
                    await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError) as exc:
            transport.emit("error", exc)
        except Exception:
            logger.exception("client %s: connection error", conn.client_id)
        finally:
            conn.destroy()
            logger.info("client %s disconnected", conn.client_id)
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    def broadcast(self, command: Dict[str, Any]) -> int:
        """Send a command to every open connection; returns how many took it."""
        sent = 0
        for conn in list(self.connections.values()):
            if conn.send_command(dict(command)):
                sent += 1
        return sent
