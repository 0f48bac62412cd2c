from enum import Enum


class ErrorKind(str, Enum):
    INVALID_RECIPIENT_FORMAT = "InvalidRecipientFormat"
    INVALID_KEY_ENCODING = "InvalidKeyEncoding"
    INVALID_ADDRESS_FORMAT = "InvalidAddressFormat"
    UPSTREAM_TIMEOUT = "UpstreamTimeout"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    NO_PAYMENT_METHOD_CONFIGURED = "NoPaymentMethodConfigured"


# Client-facing status for each kind. 404 means "nothing to pay", 5xx means "try again later".
HTTP_STATUS = {
    ErrorKind.INVALID_RECIPIENT_FORMAT: 400,
    ErrorKind.INVALID_KEY_ENCODING: 400,
    ErrorKind.INVALID_ADDRESS_FORMAT: 400,
    ErrorKind.NO_PAYMENT_METHOD_CONFIGURED: 404,
    ErrorKind.UPSTREAM_UNAVAILABLE: 503,
    ErrorKind.UPSTREAM_TIMEOUT: 504,
}


class ResolutionError(ValueError):
    """Typed failure of recipient resolution.

    Subclasses ValueError so pydantic validators report it as a normal
    validation error.
    """

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def __repr__(self) -> str:
        return f"ResolutionError({self.kind.value}, {self.message!r})"
