"""Chat bot components, conversation state, note, board and identity services, and WSGI middleware."""

__version__ = "0.1.0"

__all__ = [
    "actions",
    "boards",
    "collector",
    "config",
    "errors",
    "identity",
    "menu",
    "message_store",
    "messaging",
    "middleware",
    "notes",
    "sessions",
    "start_command",
    "survey",
    "updates",
]