"""Reactor-style event loops, timers, buffers, TCP connections and a UDP server."""

__version__ = "0.1.0"