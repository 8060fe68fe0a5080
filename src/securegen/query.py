"""History query engine: filter, sort and group credential records.

Everything here is pure and works on plain sequences of
:class:`~securegen.models.CredentialRecord`; storage is someone else's job.
"""

from __future__ import annotations

import locale
import unicodedata
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Literal, Optional, Sequence, Union

from pydantic import BaseModel

from .models import CredentialRecord

SortKey = Literal["created_at", "username", "group", "remark"]
SortDirection = Literal["asc", "desc"]
ViewMode = Literal["list", "grouped"]
DatePreset = Literal["today", "yesterday", "last7", "last30", "this_month"]

SORT_KEYS: tuple[str, ...] = ("created_at", "username", "group", "remark")
DATE_PRESETS: tuple[str, ...] = ("today", "yesterday", "last7", "last30", "this_month")
UNCATEGORIZED = "Uncategorized"

DayBound = Union[date, str, None]


class HistoryQuery(BaseModel):
    """Everything the presentation layer can ask of the history view."""

    search: str = ""
    group: str = ""
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    sort_key: SortKey = "created_at"
    sort_direction: SortDirection = "desc"
    view_mode: ViewMode = "list"

    def has_filters(self) -> bool:
        return bool(self.search or self.group or self.date_start or self.date_end)

    def toggle_sort(self, key: SortKey) -> "HistoryQuery":
        """Same key flips asc to desc; anything else starts ascending."""
        direction: SortDirection = (
            "desc" if key == self.sort_key and self.sort_direction == "asc" else "asc"
        )
        return self.model_copy(update={"sort_key": key, "sort_direction": direction})

    def cleared(self) -> "HistoryQuery":
        """Drop every filter but keep sort and view mode."""
        return self.model_copy(
            update={"search": "", "group": "", "date_start": None, "date_end": None}
        )


class HistoryView(BaseModel):
    records: list[CredentialRecord]
    groups: Optional[dict[str, list[CredentialRecord]]] = None


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def matches_search(record: CredentialRecord, term: str) -> bool:
    if not term:
        return True
    needle = term.lower()
    return any(
        needle in value.lower()
        for value in (record.username, record.id, record.remark, record.group)
        if value
    )


def matches_group(record: CredentialRecord, group: str) -> bool:
    return not group or record.group == group


def record_day(record: CredentialRecord, tz: Optional[tzinfo] = None) -> date:
    """Calendar day of the creation instant in *tz* (system local zone if ``None``).

    Naive timestamps are read as UTC.
    """
    created = record.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.astimezone(tz).date()


def _as_day(bound: DayBound) -> Optional[date]:
    if bound is None or bound == "":
        return None
    if isinstance(bound, datetime):
        return bound.date()
    if isinstance(bound, date):
        return bound
    return date.fromisoformat(bound)


def matches_dates(
    record: CredentialRecord,
    start: DayBound = None,
    end: DayBound = None,
    tz: Optional[tzinfo] = None,
) -> bool:
    lo, hi = _as_day(start), _as_day(end)
    if lo is None and hi is None:
        return True
    day = record_day(record, tz)
    if lo is not None and day < lo:
        return False
    if hi is not None and day > hi:
        return False
    return True


def filter_records(
    records: Iterable[CredentialRecord],
    search: str = "",
    group: str = "",
    date_start: DayBound = None,
    date_end: DayBound = None,
    tz: Optional[tzinfo] = None,
) -> list[CredentialRecord]:
    return [
        r
        for r in records
        if matches_search(r, search)
        and matches_group(r, group)
        and matches_dates(r, date_start, date_end, tz)
    ]


# ---------------------------------------------------------------------------
# Sorting & grouping
# ---------------------------------------------------------------------------


def _fold(text: str) -> str:
    """Strip accents and case: ``"Émile"`` becomes ``"emile"``."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def collation_key(value: Optional[str]) -> str:
    """Locale-aware sort key; ``None`` sorts as the empty string.

    Accents and case are folded before collation so ``"Émile"`` lands
    between ``"Adam"`` and ``"Zed"`` even under the C locale. Values that
    fold to the same key keep their incoming order.
    """
    return locale.strxfrm(_fold(value or ""))


def _instant(record: CredentialRecord) -> float:
    created = record.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.timestamp()


def sort_records(
    records: Iterable[CredentialRecord],
    key: SortKey = "created_at",
    direction: SortDirection = "desc",
) -> list[CredentialRecord]:
    """Stable sort: records with equal keys keep their incoming order.

    ``sorted(..., reverse=True)`` preserves the relative order of equal
    elements, so descending output is stable too.
    """
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key {key!r}; expected one of {SORT_KEYS}.")
    if key == "created_at":
        keyfunc = _instant
    else:
        def keyfunc(r: CredentialRecord) -> str:
            return collation_key(getattr(r, key))
    return sorted(records, key=keyfunc, reverse=direction == "desc")


def group_records(
    records: Iterable[CredentialRecord],
) -> dict[str, list[CredentialRecord]]:
    """Partition by group in order of first appearance."""
    groups: dict[str, list[CredentialRecord]] = {}
    for record in records:
        groups.setdefault(record.group or UNCATEGORIZED, []).append(record)
    return groups


def run_query(
    records: Iterable[CredentialRecord],
    query: HistoryQuery,
    tz: Optional[tzinfo] = None,
) -> HistoryView:
    """Filter, then sort, then (in grouped mode) partition."""
    visible = filter_records(
        records, query.search, query.group, query.date_start, query.date_end, tz
    )
    ordered = sort_records(visible, query.sort_key, query.sort_direction)
    groups = group_records(ordered) if query.view_mode == "grouped" else None
    return HistoryView(records=ordered, groups=groups)


def unique_groups(records: Iterable[CredentialRecord]) -> list[str]:
    return sorted({r.group for r in records if r.group})


def date_preset(preset: DatePreset, today: Optional[date] = None) -> tuple[date, date]:
    """Inclusive (start, end) day range for a named quick filter."""
    today = today or date.today()
    if preset == "today":
        return today, today
    if preset == "yesterday":
        day = today - timedelta(days=1)
        return day, day
    if preset == "last7":
        return today - timedelta(days=7), today
    if preset == "last30":
        return today - timedelta(days=30), today
    if preset == "this_month":
        return today.replace(day=1), today
    raise ValueError(f"Unknown date preset {preset!r}.")


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class Selection:
    """Ordered set of selected record ids that survives filter changes."""

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._ids: dict[str, None] = dict.fromkeys(ids)

    @property
    def ids(self) -> list[str]:
        return list(self._ids)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def toggle(self, record_id: str) -> None:
        if record_id in self._ids:
            del self._ids[record_id]
        else:
            self._ids[record_id] = None

    def all_selected(self, visible: Sequence[CredentialRecord]) -> bool:
        return bool(visible) and all(r.id in self._ids for r in visible)

    def toggle_all(self, visible: Sequence[CredentialRecord]) -> None:
        """Select every visible record, or deselect exactly those if all already are.

        Ids selected outside the current view are never touched.
        """
        if self.all_selected(visible):
            for r in visible:
                self._ids.pop(r.id, None)
        else:
            for r in visible:
                self._ids.setdefault(r.id, None)

    def clear(self) -> None:
        self._ids.clear()
