"""Error types for anp-identity.

Every error derives from ANPError so callers can catch the whole family.
Signature verification is fail-closed and reports failure as ``False``;
only the strict helpers raise InvalidSignatureError.
"""


class ANPError(Exception):
    """Base exception for anp-identity operations."""


class UnsupportedAlgorithmError(ANPError):
    """Requested key algorithm is not supported."""

    def __init__(self, algorithm: object) -> None:
        super().__init__(f"Unsupported key algorithm: {algorithm!r}")
        self.algorithm = algorithm


class InvalidDIDError(ANPError):
    """DID format is invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid DID format: {message}")


class InvalidSignatureError(ANPError):
    """Signature verification failed."""

    def __init__(self, message: str = "Signature verification failed") -> None:
        super().__init__(message)


class KeyError(ANPError):
    """Key operation failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Key error: {message}")


class SerializationError(ANPError):
    """Serialization or canonicalization failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Serialization error: {message}")


class ValidationError(ANPError):
    """Validation failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Validation error: {message}")


class AuthorizationHeaderError(ANPError):
    """DIDWba Authorization header is malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Authorization header error: {message}")


class NotConfiguredError(ANPError):
    """Identity accessor was used before setup completed."""

    def __init__(self, what: str) -> None:
        super().__init__(f"{what} not configured yet. Call setup() first.")
