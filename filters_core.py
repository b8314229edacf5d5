"""
HISAB - Filter/Sort Engine
==========================

Builds filtered, ordered views of a collection without touching the
source list. Records can be entities, project summaries or plain dicts
(rows straight from the store); every field read goes through
`get_field()`.

The selection set used for bulk deletes also lives here. It is the only
stateful object in the core and is owned by the page that creates it.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from entities_core import parse_date

# ============================================================================
# CONSTANTS
# ============================================================================

NO_FILTER_VALUES = (None, "", "all")

# UI sort keys -> record fields
SORT_FIELDS = {
    'name': 'name',
    'value': 'total_value',
    'balance': 'balance',
    'status': 'status',
    'date': 'date',
    'amount': 'amount',
}


# ============================================================================
# FIELD ACCESS
# ============================================================================

def get_field(record: Any, name: str, default=None):
    """Reads a field from a dict or an object attribute"""
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


# ============================================================================
# FILTERS
# ============================================================================

def search(records: Iterable, term: Optional[str], fields: Sequence[str]) -> list:
    """
    Case-insensitive substring search over several text fields.

    A record matches when ANY of the fields contains the term as typed,
    surrounding spaces included. An empty or blank term matches
    everything.

    Examples:
        >>> search([{'name': 'Linkist'}, {'name': '4C'}], 'link', ['name'])
        [{'name': 'Linkist'}]
    """
    records = list(records)
    needle = (term or "").casefold()
    if not needle.strip():
        return records

    def matches(record) -> bool:
        for name in fields:
            value = get_field(record, name)
            if value is not None and needle in str(value).casefold():
                return True
        return False

    return [r for r in records if matches(r)]


def filter_equals(records: Iterable, **criteria) -> list:
    """
    Exact-match filters per field.

    None, '' and 'all' mean "no constraint" for that field.

    Examples:
        >>> rows = [{'status': 'active'}, {'status': 'pending'}]
        >>> filter_equals(rows, status='active')
        [{'status': 'active'}]
        >>> len(filter_equals(rows, status='all'))
        2
    """
    active = {k: v for k, v in criteria.items() if v not in NO_FILTER_VALUES}
    records = list(records)
    if not active:
        return records
    return [
        r for r in records
        if all(get_field(r, name) == value for name, value in active.items())
    ]


def _as_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return parse_date(value)


def filter_date_range(
    records: Iterable,
    field_name: str,
    start=None,
    end=None
) -> list:
    """
    Inclusive date range on one field; either bound may be omitted.

    Records without a value in the field are dropped as soon as any bound
    is given. Bounds accept dates or ISO strings.
    """
    records = list(records)
    start = _as_date(start)
    end = _as_date(end)
    if start is None and end is None:
        return records

    selected = []
    for record in records:
        value = _as_date(get_field(record, field_name))
        if value is None:
            continue
        if start is not None and value < start:
            continue
        if end is not None and value > end:
            continue
        selected.append(record)
    return selected


# ============================================================================
# SORT
# ============================================================================

def _sort_value(value):
    if isinstance(value, str):
        return value.casefold()
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return value


def sort_records(records: Iterable, key: str, descending: bool = False) -> list:
    """
    Stable sort by a UI sort key or any field name.

    Strings compare case-insensitively, numbers and dates natively. Ties
    keep their input order in both directions; records missing the field
    go last in both directions.
    """
    field_name = SORT_FIELDS.get(key, key)
    records = list(records)

    present = [r for r in records if get_field(r, field_name) is not None]
    missing = [r for r in records if get_field(r, field_name) is None]

    present.sort(key=lambda r: _sort_value(get_field(r, field_name)), reverse=descending)
    return present + missing


# ============================================================================
# COMBINED VIEW
# ============================================================================

@dataclass
class ViewCriteria:
    """Everything a list page can filter and sort by"""
    search_term: str = ""
    search_fields: Tuple[str, ...] = ()
    equals: Dict[str, Any] = field(default_factory=dict)
    date_field: Optional[str] = None
    date_from: Any = None
    date_to: Any = None
    sort_key: Optional[str] = None
    descending: bool = False


def apply_view(records: Iterable, criteria: ViewCriteria) -> list:
    """Search, equality filters, date range, then sort (when a key is set)"""
    view = search(records, criteria.search_term, criteria.search_fields)
    view = filter_equals(view, **criteria.equals)
    if criteria.date_field:
        view = filter_date_range(view, criteria.date_field, criteria.date_from, criteria.date_to)
    if criteria.sort_key:
        view = sort_records(view, criteria.sort_key, criteria.descending)
    return view


# ============================================================================
# SELECTION SET
# ============================================================================

class SelectionSet:
    """
    Identifiers selected for a bulk action.

    toggle_all() works on the visible (filtered) ids only: it selects all
    of them, or clears them when every one is already selected.
    """

    def __init__(self, ids: Iterable[str] = ()):
        self._ids = set(ids)

    def toggle(self, record_id: str) -> bool:
        """Flips one id; returns True when it ends up selected"""
        if record_id in self._ids:
            self._ids.discard(record_id)
            return False
        self._ids.add(record_id)
        return True

    def toggle_all(self, visible_ids: Iterable[str]) -> None:
        visible = set(visible_ids)
        if visible and visible <= self._ids:
            self._ids -= visible
        else:
            self._ids |= visible

    def all_selected(self, visible_ids: Iterable[str]) -> bool:
        visible = set(visible_ids)
        return bool(visible) and visible <= self._ids

    def retain(self, ids: Iterable[str]) -> None:
        """Drops ids that no longer exist (e.g. after a reload)"""
        self._ids &= set(ids)

    def clear(self) -> None:
        self._ids.clear()

    @property
    def ids(self) -> frozenset:
        return frozenset(self._ids)

    def __contains__(self, record_id) -> bool:
        return record_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self):
        return iter(sorted(self._ids))

    def __repr__(self) -> str:
        return f"SelectionSet({sorted(self._ids)!r})"
