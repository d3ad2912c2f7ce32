"""Lobbycord: temporary voice rooms spawned from lobbies, plus scheduled birthday automation."""

__version__ = "0.1.0"
