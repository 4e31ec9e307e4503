"""Signaling error taxonomy.

Every error is reported only to the connection that caused it. The same
classes map to HTTP responses on the REST surface.
"""

from __future__ import annotations


class SignalingError(Exception):
    code: str = "signaling_error"
    status_code: int = 500
    default_detail: str = "Signaling error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class AuthError(SignalingError):
    code = "auth_error"
    status_code = 401
    default_detail = "Not authenticated"


class ValidationError(SignalingError):
    code = "validation_error"
    status_code = 400
    default_detail = "Invalid request"


class ConflictError(SignalingError):
    code = "conflict"
    status_code = 409
    default_detail = "User is busy"


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"
    default_detail = "Call is not in a state that allows this action"


class NotFoundError(SignalingError):
    code = "not_found"
    status_code = 404
    default_detail = "Call not found"


class ProtocolError(SignalingError):
    code = "protocol_error"
    status_code = 400
    default_detail = "Invalid message format"
