"""Relay error taxonomy.

Every error the relay raises on purpose derives from RelayError and is
rendered by the handlers in relay.main as an OpenAI-style error envelope.
UpstreamStatusError is the exception: the backend's own response is
passed through untouched.
"""

from __future__ import annotations


class RelayError(Exception):
    status_code: int = 500
    error_type: str = "server_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.status_code,
            }
        }


class AuthorizationError(RelayError):
    """No credential could be resolved for the backend call."""

    status_code = 403
    error_type = "permission_error"

    def __init__(self, message: str = "Not allowed"):
        super().__init__(message)


class InvalidRequestError(RelayError):
    status_code = 400
    error_type = "invalid_request_error"


class UpstreamTransportError(RelayError):
    """Backend unreachable, or the connection dropped mid-response."""

    status_code = 502
    error_type = "upstream_error"


class UpstreamResponseError(RelayError):
    """Backend answered 2xx but the body could not be decoded."""

    status_code = 502
    error_type = "upstream_error"


class UpstreamStatusError(RelayError):
    """Backend answered with a non-2xx status."""

    error_type = "upstream_status"

    def __init__(self, status_code: int, body: bytes, headers: dict[str, str] | None = None):
        super().__init__(f"Backend returned HTTP {status_code}", status_code=status_code)
        self.body = body
        self.headers = headers or {}