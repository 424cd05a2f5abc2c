# exceptions raised by the data layer, caught by screens and shown via notify()


class ShopError(Exception):
    """Base class for every failure the data layer reports to the user."""


class ValidationError(ShopError, ValueError):
    """User input rejected; nothing was written."""


class StockError(ValidationError):
    """A cart mutation or checkout would exceed available stock."""


class AuthError(ValidationError):
    """Login refused: unknown account, wrong password, or blocked account."""


class NotFoundError(ShopError, LookupError):
    pass


class CorruptStateError(ShopError):
    """A stored key holds text that is not valid JSON."""

    def __init__(self, key: str, message: str | None = None):
        super().__init__(
            message or f"Stored data for '{key}' is corrupt and was left untouched."
        )
        self.key = key
