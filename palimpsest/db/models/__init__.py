from palimpsest.db.models.change_record import ChangeHistoryRecord
from palimpsest.db.models.content_item import ContentItem
from palimpsest.db.models.enums import ChangeType, RecordState, SuggestionKind
from palimpsest.db.models.suggestion import Suggestion

__all__ = ["ChangeHistoryRecord", "ChangeType", "ContentItem", "RecordState", "Suggestion", "SuggestionKind"]
