class CRMError(Exception):
    """Base class for all CRM domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except CRMError`` clause can catch any domain error.  The
    ``kind`` attribute names the error family and is copied into rule
    action results and HTTP error bodies.
    """

    kind = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Configuration errors: malformed rule conditions or action parameters
# ---------------------------------------------------------------------------


class ConfigurationError(CRMError):
    """Raised when a rule, condition or action is misconfigured.

    The offending rule or action is skipped and processing continues.
    """

    kind = "configuration"

    def __init__(self, detail: str = "Invalid rule configuration"):
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Not-found errors
# ---------------------------------------------------------------------------


class NotFoundError(CRMError):
    """Raised when a referenced entity does not exist."""

    kind = "not_found"

    def __init__(self, detail: str = "Entity not found"):
        super().__init__(detail)


class ContactNotFoundError(NotFoundError):
    """Raised when a requested contact does not exist or is unresolved."""

    def __init__(self, detail: str = "Contact not found"):
        super().__init__(detail)


class OpportunityNotFoundError(NotFoundError):
    """Raised when a requested opportunity does not exist."""

    def __init__(self, detail: str = "Opportunity not found"):
        super().__init__(detail)


class CommunicationNotFoundError(NotFoundError):
    """Raised when a requested communication (email) does not exist."""

    def __init__(self, detail: str = "Email not found"):
        super().__init__(detail)


class EmailRuleNotFoundError(NotFoundError):
    """Raised when a requested email rule does not exist."""

    def __init__(self, detail: str = "Rule not found"):
        super().__init__(detail)


class CategoryMappingNotFoundError(NotFoundError):
    """Raised when a requested category mapping does not exist."""

    def __init__(self, detail: str = "Category mapping not found"):
        super().__init__(detail)


class DisputeNotFoundError(NotFoundError):
    """Raised when a requested commission dispute does not exist."""

    def __init__(self, detail: str = "Dispute not found"):
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Conflict errors: rejected guarded writes
# ---------------------------------------------------------------------------


class ConflictError(CRMError):
    """Raised when a write would violate a guarded invariant.

    Nothing is written when this is raised; in particular the audit
    trail is not updated for a rejected transition.
    """

    kind = "conflict"

    def __init__(self, detail: str = "Conflicting update"):
        super().__init__(detail)


class InvalidStatusTransitionError(ConflictError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, detail: str = "Invalid status transition"):
        super().__init__(detail)


class DuplicateCommissionSnapshotError(ConflictError):
    """Raised when an opportunity already has a commission snapshot."""

    def __init__(self, detail: str = "Commission snapshot already exists"):
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Transient errors
# ---------------------------------------------------------------------------


class TransientError(CRMError):
    """Raised when processing should be retried later."""

    kind = "transient"

    def __init__(self, detail: str = "Temporary failure"):
        super().__init__(detail)


class DataStoreUnavailableError(TransientError):
    """Raised when the relational store cannot be reached.

    Aborts processing of the current email only; its transaction is
    rolled back so the email stays unprocessed for a later retry.
    """

    def __init__(self, detail: str = "Data store unavailable"):
        super().__init__(detail)
