"""
Request handlers.

A stream handler receives one accepted Connection; a datagram handler
receives the packet socket, the payload, and the sender's address.
"""

from .echo import echo_stream, echo_datagram

__all__ = ["echo_stream", "echo_datagram"]
