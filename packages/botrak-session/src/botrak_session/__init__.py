"""Botrak session core - session, organization and role resolution."""

__all__ = [
    "BotrakSettings",
    "SessionManager",
    "SessionState",
    "open_session_manager",
]
__version__ = "0.1.0"


def __getattr__(name: str):
    """Lazy imports: keep ``import botrak_session`` free of httpx/aiosqlite."""
    if name == "BotrakSettings":
        from botrak_session.config import BotrakSettings

        return BotrakSettings
    if name in ("SessionManager", "SessionState"):
        from botrak_session import session

        return getattr(session, name)
    if name == "open_session_manager":
        from botrak_session.factory import open_session_manager

        return open_session_manager
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
