from typing import Any, Dict, Iterator, List, Optional

"""
messages.py: command objects that travel inside frames.

What this module does:
- Builds the plain dicts the server sends: {"command": <name>, ...fields}.
- Builds and recognises batch objects: {"batch": true, "commands": [...]}.
- Flattens batches so tick mode can queue commands one by one.

Commands are just dicts. What a command *means* is up to the application's
handlers; this module only knows about the shape.
"""

# -----------------------
# Command names the protocol itself uses
# -----------------------
CONNECTED = "connected"
TICK = "tick"
PING = "ping"
PONG = "pong"
TICK_MODE = "tick-mode"


def new_command(name: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Copy data (if any) and tag it with the command name.

    The caller's dict is left untouched; the name wins over any "command"
    key already in data.
    """
    cmd = dict(data) if data else {}
    cmd["command"] = name
    return cmd


def connected() -> Dict[str, Any]:
    """Greeting sent as soon as a connection is wrapped."""
    return {"command": CONNECTED}


def new_batch(commands: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Wrap several commands so they go out as one frame."""
    return {"batch": True, "commands": list(commands)}


def is_batch(obj: Dict[str, Any]) -> bool:
    """True for {"batch": <truthy>, "commands": [...]}."""
    return bool(obj.get("batch")) and isinstance(obj.get("commands"), list)


def flatten(obj: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    """Yield the commands inside a batch, or the object itself otherwise."""
    if is_batch(obj):
        yield from obj["commands"]
    else:
        yield obj


def command_name(obj: Any) -> Optional[str]:
    """The "command" field of a decoded packet, if it has one."""
    if isinstance(obj, dict):
        name = obj.get("command")
        if isinstance(name, str):
            return name
    return None
