"""Custom exceptions for the storefront."""


class ShopError(Exception):
    """Base exception for all storefront errors."""

    pass


class ValidationError(ShopError):
    """Raised when a request field is missing or malformed."""

    pass


class AmountMismatchError(ValidationError):
    """Raised when a checkout amount doesn't match the cart total."""

    def __init__(self, submitted, expected):
        self.submitted = submitted
        self.expected = expected
        super().__init__(
            f"Submitted amount {submitted} does not match cart total {expected}"
        )


class DuplicateEmailError(ShopError):
    """Raised when registering an email that already has an account."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("Email already registered")


class AuthenticationError(ShopError):
    """Raised on bad credentials or an unusable token."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class NotFoundError(ShopError):
    """Raised when a document doesn't exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class InsufficientStockError(ShopError):
    """Raised when stock can't cover a requested quantity."""

    def __init__(self, product_id: str, requested: int):
        self.product_id = product_id
        self.requested = requested
        super().__init__(f"Insufficient stock for product {product_id} (requested {requested})")


class PaymentError(ShopError):
    """Raised when the payment processor rejects or fails a call."""

    pass
