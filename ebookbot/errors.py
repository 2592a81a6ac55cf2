class ShopError(Exception):
    """Base class for failures the command router turns into replies."""


class StoreUnavailable(ShopError):
    """The database could not be reached after one reconnect and retry."""


class NotFound(ShopError):
    ...


class ProductNotFound(NotFound):
    ...


class OrderNotFound(NotFound):
    ...


class DuplicateSession(ShopError):
    """An order already exists for this checkout session id."""


class PaymentTransient(ShopError):
    """The payment processor call failed (network, timeout, API error)."""


class SessionNotFound(NotFound):
    """The payment processor does not know this checkout session id."""


class InvalidInput(ShopError):
    """A command is missing its required argument."""
