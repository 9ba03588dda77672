"""
gmwire: authenticated framing for persistent game-server sockets.

What a connection gets:
- Inbound packets are JSON followed by a 40-char SHA-1 digest over
  (payload + shared secret + sequence number). The server tries up to 100
  sequence numbers ahead of its counter, so a few lost packets are tolerated.
- The first packet that fails the check closes the connection. Nothing is
  sent back to say why.
- Outbound commands go out as HEADER + JSON, either at once or, in tick mode,
  batched into one frame per tick().

There is no encryption here, only integrity and ordering.

Set PATCH_HEADER and GM_SERVER_SECRET on the server and every client before running.
"""
__all__ = ["client", "config", "crypto", "framing", "messages", "node", "run_node"]
