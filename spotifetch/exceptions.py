"""
Exception classes for spotifetch.

Every error raised by the library derives from SpotifetchError so callers
can catch the whole family with a single except clause.

Exception Hierarchy:
    SpotifetchError (base)
        ConfigError - Settings file or credential issues
        AuthError - Token exchange rejected or failed on the network
            NotAuthenticatedError - Resource call attempted without a bearer token
            TokenExpiredError - Bearer token rejected mid-session and could not be renewed
        CallbackError - Local redirect listener produced no usable code
        PageFetchError - A single page or batch request failed
        FormatError - A raw item could not be turned into an output record
"""

from typing import Any, Dict, Optional


class SpotifetchError(Exception):
    """
    Base exception for all spotifetch errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (urls, status codes,
                 the operation that failed). Never contains plaintext secrets.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(SpotifetchError):
    """
    Raised when settings are unusable.

    Common causes:
        - client_id / client_secret missing
        - failure_policy not one of the known policies
        - batch size configured above the provider limit
    """
    pass


class AuthError(SpotifetchError):
    """
    Raised (or returned inside an AuthResult) when a token exchange fails.

    Covers both rejection by the accounts service (HTTP 4xx, malformed
    response) and network failures while talking to it.

    Attributes:
        grant_type: The grant family that was attempted, if known.
        status_code: HTTP status of the token response, if one was received.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        grant_type: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, details)
        self.grant_type = grant_type
        self.status_code = status_code

    @property
    def is_rejection(self) -> bool:
        """True when the provider answered and refused the grant."""
        return self.status_code is not None and 400 <= self.status_code < 500


class NotAuthenticatedError(AuthError):
    """
    Raised when a resource call is made while no bearer token is installed.

    This is how a failed authorization surfaces to dependent calls: the
    client refuses to send unauthenticated requests instead of letting the
    provider answer 401 for every page.
    """
    pass


class TokenExpiredError(AuthError):
    """
    Raised when the provider rejects the bearer token (HTTP 401) and
    reauthorization is disabled or did not produce a working token.
    """
    pass


class CallbackError(SpotifetchError):
    """
    Raised when the local redirect listener cannot deliver an authorization code.

    Attributes:
        reason: Short machine-readable cause: 'denied', 'timeout', 'cancelled',
                'bind_failed' or 'missing_code'.
    """

    def __init__(self, message: str, reason: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.reason = reason


class PageFetchError(SpotifetchError):
    """
    Raised when a single page or batch request fails.

    Attributes:
        operation: Name of the aggregation being performed (e.g. 'playlist tracks').
        url: URL or path that was requested.
        status_code: HTTP status if the server answered, None for network failures.
    """

    def __init__(
        self,
        message: str,
        operation: str = "",
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation
        self.url = url
        self.status_code = status_code


class FormatError(SpotifetchError):
    """
    Recorded when a formatter raises on a raw item.

    The walk never aborts on a FormatError; the item is skipped and the
    error is reported on the FetchResult.
    """
    pass
