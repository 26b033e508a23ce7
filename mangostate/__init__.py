"""In-memory state model for a margin trading and perpetual futures engine."""

__version__ = "0.1.0"

__all__ = [
    "account",
    "advanced",
    "banks",
    "errors",
    "fixed",
    "group",
    "health",
    "perp",
    "utils",
]