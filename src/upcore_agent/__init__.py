"""Upcore agent - streaming LLM coding agent with WebSocket, Telegram and terminal front ends."""

__version__ = "0.1.0"
