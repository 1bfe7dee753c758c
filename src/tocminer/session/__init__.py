"""Cookie-replay sessions for catalogue pages that expect prior navigation."""

from .context import SessionContext, SessionStats, parse_set_cookie

__all__ = ["SessionContext", "SessionStats", "parse_set_cookie"]
