"""Error codes and the exception raised when a state check fails."""

from __future__ import annotations

from enum import Enum, auto


class MangoErrorCode(Enum):
    DEFAULT = auto()
    INVALID_OWNER = auto()
    INVALID_ACCOUNT = auto()
    ACCOUNT_NOT_RENT_EXEMPT = auto()
    INVALID_PARAM = auto()
    INVALID_NODE_BANK = auto()
    MATH_ERROR = auto()
    INVALID_PRICE_CACHE = auto()
    INVALID_ROOT_BANK_CACHE = auto()
    INVALID_PERP_MARKET_CACHE = auto()
    INVALID_ACCOUNT_STATE = auto()
    MARGIN_BASKET_FULL = auto()
    INVALID_OPEN_ORDERS_ACCOUNT = auto()
    INVALID_VAULT = auto()


class MangoError(Exception):
    """Raised when a state invariant or argument check fails."""

    def __init__(self, code: MangoErrorCode = MangoErrorCode.DEFAULT, message: str | None = None):
        self.code = code
        self.message = message
        super().__init__(message or code.name)


def check(condition: object, code: MangoErrorCode) -> None:
    """Raise MangoError with ``code`` unless ``condition`` is truthy."""
    if not condition:
        raise MangoError(code)