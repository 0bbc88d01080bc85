import enum
from typing import Optional


class ErrorKind(enum.Enum):
    VALIDATION = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL = 500

    @property
    def status_code(self) -> int:
        return self.value


class ServiceError(Exception):
    """Domain failure tagged with an ``ErrorKind``.

    Services raise this at the point of detection; ``server.py`` installs the
    only handler that turns the kind into an HTTP status.
    """

    def __init__(self, kind: ErrorKind, detail: str, errors: Optional[list] = None):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        self.errors = errors


def bad_request(detail: str) -> ServiceError:
    return ServiceError(ErrorKind.VALIDATION, detail)


def unauthorized(detail: str = "Could not validate credentials") -> ServiceError:
    return ServiceError(ErrorKind.UNAUTHORIZED, detail)


def forbidden(detail: str) -> ServiceError:
    return ServiceError(ErrorKind.FORBIDDEN, detail)


def not_found(detail: str) -> ServiceError:
    return ServiceError(ErrorKind.NOT_FOUND, detail)


def conflict(detail: str) -> ServiceError:
    return ServiceError(ErrorKind.CONFLICT, detail)


def internal(detail: str) -> ServiceError:
    return ServiceError(ErrorKind.INTERNAL, detail)
