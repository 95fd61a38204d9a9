"""Error taxonomy shared by the gateway layers; the chat route maps them to HTTP."""

from __future__ import annotations


class GatewayError(RuntimeError):
    """Client-visible failure with an HTTP status and OpenAI error type."""

    status_code: int = 400
    error_type: str = "invalid_request_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(GatewayError):
    """Raised when the chat completion body is malformed or has no usable input."""

    status_code = 400


class SessionNotFoundError(GatewayError):
    """Raised when a caller references a session id the store does not know."""

    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id
