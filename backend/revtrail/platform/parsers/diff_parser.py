"""Turns the HTML diff fragments of row activities into change events.

Each activity carries a ``diffRowHtml`` fragment with one or more
``.historicalCellContainer`` blocks, one per changed cell. A block holds the
field label, a value type attribute and the rendered value tokens; polarity
rules decide which tokens were removed and which were added.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from revtrail.core.config import settings
from revtrail.core.datetime_utils import to_naive_utc
from revtrail.core.logging import ContextualLogger
from revtrail.core.logging import logger as default_logger
from revtrail.core.shared_models import FieldKind, TokenPolarity
from revtrail.platform.parsers.polarity_rules import TOKEN_SELECTOR, PolarityClassifier
from revtrail.platform.sync.exceptions import DiffParseError
from revtrail.schemas.change_event import ChangeEvent
from revtrail.schemas.raw_activity import RawActivity

CONTAINER_SELECTOR = ".historicalCellContainer"
LABEL_SELECTOR = ".micro.strong.caps"
VALUE_TYPE_ATTRIBUTES = ("columntypeifunchanged", "data-columntype")

ASSIGNEE_LABEL_HINTS = ("assign", "developer")
ASSIGNEE_VALUE_TYPES = frozenset({"foreignKey", "collaborator", "multipleCollaborators", "select"})
STATUS_LABEL_HINTS = ("status",)
STATUS_VALUE_TYPES = frozenset({"select", "singleSelect"})


class FieldClassifier:
    """Maps a (label, value type) pair to a tracked field kind."""

    def classify(self, label: str, value_type: Optional[str]) -> Optional[FieldKind]:
        """Return the field kind, or None for fields that are not tracked."""
        if not value_type:
            return None
        label = label.lower()
        if any(hint in label for hint in ASSIGNEE_LABEL_HINTS) and value_type in ASSIGNEE_VALUE_TYPES:
            return FieldKind.ASSIGNEE
        if any(hint in label for hint in STATUS_LABEL_HINTS) and value_type in STATUS_VALUE_TYPES:
            return FieldKind.STATUS
        return None


@dataclass
class CellChange:
    """Old/new values read from one cell block."""

    field_kind: FieldKind
    old_value: Optional[str]
    new_value: Optional[str]


def _value_type(container: Tag) -> Optional[str]:
    for attribute in VALUE_TYPE_ATTRIBUTES:
        if container.has_attr(attribute):
            return container[attribute]
        element = container.find(attrs={attribute: True})
        if element is not None:
            return element[attribute]
    return None


def _token_text(token: Tag) -> str:
    inner = token.select_one(".truncate-pre")
    source = inner if inner is not None else token
    return (source.get("title") or source.get_text(strip=True) or "").strip()


def _outermost_tokens(container: Tag) -> List[Tag]:
    tokens = container.select(TOKEN_SELECTOR)
    selected = set(map(id, tokens))
    return [t for t in tokens if not any(id(p) in selected for p in t.parents)]


class DiffParser:
    """Parses activities into assignee/status change events."""

    def __init__(
        self,
        polarity: Optional[PolarityClassifier] = None,
        field_classifier: Optional[FieldClassifier] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the parser; the polarity profile defaults to settings."""
        self.polarity = polarity or PolarityClassifier.from_profile(settings.DIFF_POLARITY_PROFILE)
        self.field_classifier = field_classifier or FieldClassifier()
        self._logger = logger or default_logger.with_context(component="diff_parser")

    def parse_cell(self, container: Tag) -> Optional[CellChange]:
        """Read one ``.historicalCellContainer`` block.

        Returns None for untracked fields and for blocks with no values.
        Within a polarity, the last token wins.
        """
        label_element = container.select_one(LABEL_SELECTOR)
        label = label_element.get_text(strip=True).lower() if label_element else ""
        field_kind = self.field_classifier.classify(label, _value_type(container))
        if field_kind is None:
            return None

        old_value: Optional[str] = None
        new_value: Optional[str] = None
        for token in _outermost_tokens(container):
            text = _token_text(token)
            if not text:
                continue
            if self.polarity.classify(token) == TokenPolarity.REMOVED:
                old_value = text
            else:
                new_value = text

        if old_value is None and new_value is None:
            return None
        return CellChange(field_kind=field_kind, old_value=old_value, new_value=new_value)

    def parse(self, activity: RawActivity, record_id: str) -> List[ChangeEvent]:
        """Parse one activity.

        Raises:
            DiffParseError: The fragment or the activity metadata is unusable
        """
        if not activity.diff_row_html:
            return []
        if not activity.id or activity.created_time is None:
            raise DiffParseError(f"Activity {activity.id!r} is missing its id or timestamp")

        try:
            soup = BeautifulSoup(activity.diff_row_html, "html.parser")
        except Exception as e:
            raise DiffParseError(f"Unparseable diff fragment in activity {activity.id}: {e}") from e

        events: List[ChangeEvent] = []
        occurred_at = to_naive_utc(activity.created_time)
        for index, container in enumerate(soup.select(CONTAINER_SELECTOR)):
            change = self.parse_cell(container)
            if change is None:
                continue
            events.append(
                ChangeEvent(
                    id=activity.id if index == 0 else f"{activity.id}-{index}",
                    record_id=record_id,
                    field_kind=change.field_kind,
                    old_value=change.old_value,
                    new_value=change.new_value,
                    occurred_at=occurred_at,
                    actor=activity.actor,
                )
            )
        return events

    def parse_many(self, activities: Iterable[RawActivity], record_id: str) -> List[ChangeEvent]:
        """Parse activities in order, skipping the ones that fail."""
        events: List[ChangeEvent] = []
        for activity in activities:
            try:
                events.extend(self.parse(activity, record_id))
            except DiffParseError as e:
                self._logger.warning(f"[DiffParser] Skipping activity for {record_id}: {e}")
        return events


def sort_events(events: Sequence[ChangeEvent]) -> List[ChangeEvent]:
    """Events in chronological order."""
    return sorted(events, key=lambda e: e.occurred_at)
