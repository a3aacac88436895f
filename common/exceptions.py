"""Custom exception classes for the apifile client."""

from typing import Any, Optional


class ApifileError(Exception):
    """
    Base exception class for all apifile client errors.
    """
    pass


class ValidationError(ApifileError):
    """
    Raised when an upload cannot start because its input is invalid.
    """
    pass


class EmptyFileError(ValidationError):
    """
    Raised when the selected file has zero bytes.
    """
    pass


class NoCredentialError(ValidationError):
    """
    Raised when no bearer token is available to authorize requests.
    """
    pass


class SessionBusyError(ApifileError):
    """
    Raised when an upload is started on a session that already has one in flight.
    """
    pass


class ChunkTransportError(ApifileError):
    """
    Raised when a chunk request fails at the HTTP or network level.

    status_code is None when no response was received (timeout, connection
    failure); such failures are classified as transient unless the caller
    passes transient=False, as for a malformed response or a redirect loop.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        transient: Optional[bool] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self._transient = transient

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code == 401

    @property
    def is_transient(self) -> bool:
        if self._transient is not None:
            return self._transient
        return self.status_code is None or self.status_code >= 500


class ProtocolShapeError(ApifileError):
    """
    Raised when a successful response does not carry the expected JSON shape.
    """

    def __init__(self, message: str, body: str = "", payload: Any = None):
        super().__init__(message)
        self.body = body
        self.payload = payload


class FinalizeError(ApifileError):
    """
    Raised when a finalize endpoint rejects or fails the assembly request.
    """

    def __init__(self, message: str, endpoint: str = "", status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body


class ChecksumError(ApifileError):
    """
    Raised when a chunk digest cannot be computed.
    """
    pass


class AuthenticationError(ApifileError):
    """
    Raised when the identity provider rejects a login.
    """
    pass


class CredentialRenewalError(ApifileError):
    """
    Raised when a bearer token cannot be renewed.
    """
    pass


class ApiError(ApifileError):
    """
    Raised when a search, download or health request returns a non-2xx status.
    """

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ApiConnectionError(ApifileError):
    """
    Raised when the API cannot be reached or the request times out.
    """
    pass
