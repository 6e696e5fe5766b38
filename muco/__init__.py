"""Relay server, headset manager, photo server and replay tools for multi-user sessions."""

__version__ = "0.1.0"