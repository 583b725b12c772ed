"""
Failure kinds raised by the service layer.

Every kind maps to exactly one HTTP status; the mapping is installed once in
labelprint.main and routes never build error responses by hand.
"""
from typing import Optional


class LabelPrintError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(LabelPrintError):
    """Malformed or missing input. Nothing has been attempted yet."""
    status_code = 400
    code = "validation_error"


class ConstraintViolation(LabelPrintError):
    """A uniqueness rule was broken (duplicate email, name or product code)."""
    status_code = 400
    code = "constraint_violation"


class Unauthenticated(LabelPrintError):
    """Credential missing, malformed or rejected by the identity provider."""
    status_code = 401
    code = "unauthenticated"


class Forbidden(LabelPrintError):
    """Identity is established but the caller may not do this."""
    status_code = 403
    code = "forbidden"


class RoleUnresolvable(Forbidden):
    """The caller's role could not be read from the record store."""


class MissingProfile(Forbidden):
    """
    The caller has an identity but no profile row.

    Recoverable when profile recovery is configured; otherwise it is a plain
    403 and never an implicit allow.
    """

    def __init__(self, identity_id: str):
        self.identity_id = identity_id
        super().__init__("Unauthorized: Cannot verify user role")


class NotFound(LabelPrintError):
    status_code = 404
    code = "not_found"


class ProviderError(LabelPrintError):
    """The identity provider or the record store failed during a mutation."""
    status_code = 500
    code = "provider_error"

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        self.upstream_status = upstream_status
        super().__init__(message)


class ConfigurationError(LabelPrintError):
    status_code = 500
    code = "configuration_error"
