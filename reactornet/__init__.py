"""Reactor-style TCP server framework: event loops, buffered connections, a timer wheel, and echo and HTTP servers."""

__version__ = "0.1.0"