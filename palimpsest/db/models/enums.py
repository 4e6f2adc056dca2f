from enum import StrEnum


class SuggestionKind(StrEnum):
    """What a proposer wants changed."""

    CORRECTION = "correction"
    CLARIFICATION = "clarification"
    EXAMPLE = "example"
    OTHER = "other"


class ChangeType(StrEnum):
    """Origin of a ledger entry."""

    SUGGESTION = "suggestion"
    ROLLBACK = "rollback"
    MANUAL = "manual"


class RecordState(StrEnum):
    """Lifecycle of a change history record. ROLLED_BACK is terminal."""

    ACTIVE = "active"
    ROLLED_BACK = "rolled_back"
