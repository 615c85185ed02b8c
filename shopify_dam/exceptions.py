# exceptions.py


class DamError(Exception):
    """Base class for every error the asset manager reports to its callers."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DamError):
    """Missing or malformed input, or an upload outside the size/type limits."""

    kind = "validation"
    status_code = 400


class ConflictError(DamError):
    """A name collision, a cyclic move, an attempt on the root folder, or a stale catalog."""

    kind = "conflict"
    status_code = 400


class NotFoundError(DamError):
    """A referenced folder or file does not exist."""

    kind = "not_found"
    status_code = 404


class AccessDeniedError(DamError):
    """The caller's role tags do not grant the required capability."""

    kind = "access_denied"
    status_code = 403


class ExternalServiceError(DamError):
    """The content host failed or could not be reached."""

    kind = "external_service"
    status_code = 500
