"""Structural errors for the plan builder and adaptation engine.

Rule violations are never raised; they are returned as Violation records
or safety reasons. These exceptions cover malformed input only.
"""


class PlanBuilderError(Exception):
    """Base exception for all plan builder errors."""

    pass


class InvalidDraftSetupError(PlanBuilderError):
    """Raised when a setup payload cannot be parsed into a DraftPlanSetup."""

    pass


class UnknownPolicyProfileError(PlanBuilderError):
    """Raised on a strict lookup of a policy profile id that is not registered."""

    pass


class PolicyRegistryError(PlanBuilderError):
    """Raised when the static policy table is missing or malformed."""

    pass


class InvalidSessionDetailError(PlanBuilderError):
    """Raised when a session detail payload violates its structure rules."""

    pass


class InvalidPlanDiffError(PlanBuilderError):
    """Raised when a diff payload is not a list of known diff operations."""

    pass


class DiffApplicationError(PlanBuilderError):
    """Raised when a diff cannot be applied to a draft as a whole.

    Attributes:
        code: Error code (NOT_FOUND, SESSION_LOCKED, WEEK_LOCKED, STALE_SWAP)
        details: Identifiers of the offending week/session
    """

    def __init__(self, code: str, message: str, details: dict[str, str | int] | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"{code}: {message}")
