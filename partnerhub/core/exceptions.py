"""
PartnerHub service-layer errors.

Services raise these; ``blueprints.register_error_handlers`` turns any
``PartnerHubError`` into ``{"error": ..., "details"?: ...}`` with the
class's ``status_code``.

    raise NotFoundError(resource="ApprovalRequest", resource_id=42)
    raise ValidationError("A comment is required when rejecting", details={"comment": "required"})
    raise ConflictError("ApprovalRequest", "version", "3")
"""


class PartnerHubError(Exception):
    """Base class for errors a blueprint should surface to the client."""

    status_code = 500

    def to_dict(self) -> dict:
        return {"error": str(self)}


class NotFoundError(PartnerHubError):
    """A partner, deliverable, submission or approval request id that does not exist."""

    status_code = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        label = resource if resource_id is None else f"{resource} id={resource_id}"
        super().__init__(f"{label} not found")


class ValidationError(PartnerHubError):
    """Well-formed input that breaks a business rule.

    Examples: responding to an approval request you are not assigned to,
    rejecting without a comment, a reminder with no positive day offset.
    Malformed input (wrong JSON types, missing ids) is a 400 decided in the
    blueprint and never reaches this class.

    Args:
        message: Human-readable explanation.
        details: Optional field -> problem mapping echoed to the client.
    """

    status_code = 422

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": str(self), "details": self.details}


class ConflictError(PartnerHubError):
    """A write lost against concurrent state.

    Raised for a duplicate submission version and for an approval request
    whose row version moved between read and write.
    """

    status_code = 409

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} {field}={value!r} is stale or already taken; reload and retry")
