"""
Service errors

Raised by the lifecycle engine, the account service and the identity layer.
main.py renders every ServiceError as {"detail": ...} with its status code.
"""
from typing import Optional


class ServiceError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(ServiceError):
    status_code = 400
    default_detail = "Invalid request"

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()))
            parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        return cls("; ".join(parts) or cls.default_detail)


class DuplicateIdentity(ServiceError):
    status_code = 400
    default_detail = "Email already exists. Please use a different email."


class Unauthenticated(ServiceError):
    status_code = 401
    default_detail = "Authentication failed. No token provided."


class Forbidden(ServiceError):
    status_code = 403
    default_detail = "Forbidden"


class NotFound(ServiceError):
    status_code = 404
    default_detail = "Post not found"


class Conflict(ServiceError):
    status_code = 409
    default_detail = "Post was updated by another request"


class InternalError(ServiceError):
    status_code = 500
