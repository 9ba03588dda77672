import argparse
import asyncio
import json
import logging
from typing import Any, Dict, List, Tuple

from . import framing
from . import messages as m
from .client import Connection
from .config import ConfigError, Settings
from .crypto import PacketSigner
from .node import GameServer

"""
run_node.py: single entry point for running gmwire.

What you can do here:
- Server:  listen for clients; demo handlers answer ping and drive tick mode
- Send:    a one-shot client that signs commands, sends them, and prints
           every frame the server sends back

Both modes read PATCH_HEADER and GM_SERVER_SECRET from the environment.
"""

logger = logging.getLogger("gmwire")


# -------------------------
# Demo application handlers
# -------------------------

def install_demo_handlers(conn: Connection) -> None:
    """
    Minimal application on top of a Connection:
      - ping:       answered with pong (echoing "data" if present)
      - tick-mode:  {"on": true|false} switches outbound batching
      - tick:       flushes the queue while in tick mode
    """
    def handle(obj: Any) -> None:
        name = m.command_name(obj)
        if name == m.PING:
            conn.send_named(m.PONG, {"data": obj.get("data")})
        elif name == m.TICK_MODE:
            conn.set_tick_mode(bool(obj.get("on")))
        elif name == m.TICK and conn.tick_mode:
            conn.tick()
        else:
            logger.info("client %s sent %s", conn.client_id, json.dumps(obj))

    conn.on_data(handle)


# -------------------------
# Process runners (thin wrappers)
# -------------------------

async def run_server(settings: Settings, host: str, port: int) -> None:
    """Spin up the server and serve forever on host:port."""
    server = GameServer(settings, host, port)
    server.on_connection(install_demo_handlers)
    await server.start()


def parse_command(arg: str) -> Dict[str, Any]:
    """A JSON object is sent as-is; anything else is taken as a bare command name."""
    try:
        obj = json.loads(arg)
    except json.JSONDecodeError:
        return m.new_command(arg)
    if not isinstance(obj, dict):
        raise SystemExit(f"Not a command object: {arg}")
    return obj


async def run_send(settings: Settings, target: Tuple[str, int], commands: List[Dict[str, Any]],
                   sequence: int = 0, delay: float = 0.05, idle: float = 0.5) -> List[Any]:
    """
    Connect, send each command as its own signed packet, then collect server
    frames until the stream has been quiet for `idle` seconds.

    The server reads one packet per read, so packets are spaced by `delay`.
    """
    reader, writer = await asyncio.open_connection(target[0], target[1])
    signer = PacketSigner(settings.secret, sequence)

    for cmd in commands:
        packet = signer.sign(framing.dumps(cmd)) + framing.TERMINATOR
        writer.write(packet.encode("utf-8"))
        await writer.drain()
        await asyncio.sleep(delay)

    received = b""
    while True:
        try:
            chunk = await asyncio.wait_for(reader.read(65536), timeout=idle)
        except asyncio.TimeoutError:
            break
        if not chunk:
            break
        received += chunk

    writer.close()
    await writer.wait_closed()
    return framing.decode_frames(received.decode("utf-8", errors="replace"), settings.header)


# -------------------------
# Argument parsing
# -------------------------

def parse_args() -> argparse.Namespace:
    """
    Quick examples:
      Server:  python -m gmwire.run_node --mode server --host 127.0.0.1 --port 9000
      Send:    python -m gmwire.run_node --mode send --connect 127.0.0.1:9000 ping '{"command":"hello"}'
    """
    p = argparse.ArgumentParser()
    p.add_argument("--mode", choices=["server", "send"], required=True)
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=9000)
    p.add_argument("--connect", help="HOST:PORT of the server (send mode)")
    p.add_argument("--sequence", type=int, default=0, help="first sequence number to sign with")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    p.add_argument("commands", nargs="*", help="command names or JSON objects (send mode)")
    return p.parse_args()


# -------------------------
# Main entrypoint
# -------------------------

def main() -> None:
    """Dispatch into the chosen mode; keep top-level code very small."""
    args = parse_args()
    try:
        settings = Settings.from_env()
    except (ConfigError, ValueError) as exc:
        raise SystemExit(str(exc))

    logging.basicConfig(
        level=logging.DEBUG if (args.verbose or settings.debug) else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    if args.mode == "server":
        asyncio.run(run_server(settings, args.host, args.port))

    elif args.mode == "send":
        if not args.connect or not args.commands:
            raise SystemExit("--connect and at least one command are required for send mode")
        host, port = args.connect.split(":")
        commands = [parse_command(arg) for arg in args.commands]
        frames = asyncio.run(run_send(settings, (host, int(port)), commands, args.sequence))
        for frame in frames:
            print(json.dumps(frame))


if __name__ == "__main__":
    main()
