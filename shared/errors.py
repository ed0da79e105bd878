"""
Shared error handling for jwks-to-pem.
"""

from typing import Dict, Any, List, Optional


class JwksToPemError(Exception):
    """Base exception for jwks-to-pem."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a loggable dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class ConfigError(JwksToPemError):
    """Configuration-related errors."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIG_ERROR", message, details)


class PatternError(JwksToPemError):
    """Output pattern could not be parsed."""

    def __init__(self, message: str = "pattern could not be parsed", details: Optional[Dict[str, Any]] = None):
        super().__init__("PATTERN_ERROR", message, details)


class FetchError(JwksToPemError):
    """JWKS retrieval errors."""

    def __init__(self, url: str, message: str = "could not fetch JWKS", details: Optional[Dict[str, Any]] = None):
        self.url = url
        super().__init__("FETCH_ERROR", f"{message}: {url}", details)


class KeyConversionError(JwksToPemError):
    """A JWK could not be converted to a public key."""

    reason = "invalid key"

    def __init__(self, key_id: str = "", message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.key_id = key_id
        message = message or self.reason
        if key_id:
            message = f"{message} (KID: {key_id})"
        super().__init__("KEY_CONVERSION_ERROR", message, details)


class UnsupportedAlgorithmError(KeyConversionError):
    """The key type is not RSA or ECDSA."""

    reason = "unsupported key algorithm"


class NotRSAPublicKeyError(KeyConversionError):
    """The key claims an RSA algorithm but is not a usable RSA public key."""

    reason = "was not a RSA public key"


class NotECPublicKeyError(KeyConversionError):
    """The key claims an ECDSA algorithm but is not a usable EC public key."""

    reason = "was not a ECDSA public key"


class KeyWriteError(JwksToPemError):
    """A key could not be written to its output file."""

    def __init__(self, message: str, key_id: str = "", cause: Optional[BaseException] = None):
        self.key_id = key_id
        self.cause = cause
        text = message
        if key_id:
            text = f"{text} (KID: {key_id})"
        if cause is not None:
            text = f"{text}: {cause}"
        super().__init__("KEY_WRITE_ERROR", text, {"key_id": key_id} if key_id else None)


class KeyProcessingError(JwksToPemError):
    """One or more keys failed to process."""

    def __init__(self, errors: List[Exception], message: str = "problem processing keys"):
        self.errors = list(errors)
        joined = "\n".join(str(e) for e in self.errors)
        super().__init__(
            "KEY_PROCESSING_ERROR",
            f"{message}: {joined}" if joined else message,
            {"error_count": len(self.errors)}
        )


class ReloadError(JwksToPemError):
    """Reload trigger errors."""

    def __init__(self, message: str = "reload error", details: Optional[Dict[str, Any]] = None):
        super().__init__("RELOAD_ERROR", message, details)
