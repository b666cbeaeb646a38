"""Botrak REST API client layer."""

from __future__ import annotations

from botrak_session.api.base import SessionApi
from botrak_session.api.client import BotrakClient
from botrak_session.api.token import TokenProvider, TokenSlot

__all__ = ["BotrakClient", "SessionApi", "TokenProvider", "TokenSlot"]
