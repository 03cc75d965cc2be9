"""
In-memory patient record browser: search, date filter, pagination and the
single "currently inspected" record for the reviewing view.
"""

import math
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, List, Optional, Sequence, Union

from model.models import PatientRecord

logger = logging.getLogger(__name__)

Day = Union[date, str]


@dataclass
class RecordQuery:
    text: Optional[str] = None
    date: Optional[Day] = None


@dataclass
class LoadResult:
    records: List[PatientRecord]
    available: bool = True
    error: Optional[str] = None


@dataclass
class Page:
    items: List[PatientRecord]
    number: int
    count: int
    total: int

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.count


def parse_instant(value: str) -> Optional[datetime]:
    """Parse an ISO instant; naive values are taken as UTC. None when unparseable."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _as_day(value: Day) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def filter_records(records: Sequence[PatientRecord], query: RecordQuery, tz: tzinfo) -> List[PatientRecord]:
    text = (query.text or "").strip().lower()
    day = _as_day(query.date) if query.date else None

    def matches(r: PatientRecord) -> bool:
        if text and not (
            text in r.first_name.lower()
            or text in r.last_name.lower()
            or text in r.id_number.lower()
        ):
            return False
        if day is not None:
            instant = parse_instant(r.date_time)
            if instant is None or instant.astimezone(tz).date() != day:
                return False
        return True

    return [r for r in records if matches(r)]


def page_count(total: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")
    return max(1, math.ceil(total / page_size))


def paginate(records: Sequence[PatientRecord], page_size: int, page: int) -> Page:
    count = page_count(len(records), page_size)
    number = min(max(1, page), count)
    start = (number - 1) * page_size
    return Page(list(records[start:start + page_size]), number, count, len(records))


class RecordBrowser:
    def __init__(self, store, tz: tzinfo, page_size: int = 10):
        page_count(0, page_size)  # validates page_size
        self.store = store
        self.tz = tz
        self.page_size = page_size

        self.records: List[PatientRecord] = []
        self.available = True
        self.error: Optional[str] = None
        self.query = RecordQuery()
        self.page = 1
        self.selected: Optional[PatientRecord] = None
        self._listeners: List[Callable[["RecordBrowser"], None]] = []

    # ---------- observers ----------
    def subscribe(self, callback: Callable[["RecordBrowser"], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self):
        for cb in list(self._listeners):
            cb(self)

    # ---------- loading ----------
    def load(self) -> LoadResult:
        try:
            records = list(self.store.list_patients())
        except Exception as e:
            logger.error("Error fetching patient data: %s", e)
            self.records = []
            self.available = False
            self.error = str(e)
            result = LoadResult([], available=False, error=self.error)
        else:
            self.records = records
            self.available = True
            self.error = None
            result = LoadResult(records)
            logger.info("Loaded %d patient records", len(records))

        if self.selected is not None and self.find(self.selected.record_id) is None:
            self.selected = None
        self.page = min(self.page, self.visible().count)
        self._notify()
        return result

    def find(self, record_id: str) -> Optional[PatientRecord]:
        for r in self.records:
            if r.record_id == record_id:
                return r
        return None

    def replace(self, record: PatientRecord):
        for i, r in enumerate(self.records):
            if r.record_id == record.record_id:
                self.records[i] = record
                if self.selected is not None and self.selected.record_id == record.record_id:
                    self.selected = record
                self._notify()
                return
        raise KeyError(record.record_id)

    # ---------- views ----------
    def filter(self, query: Optional[RecordQuery] = None) -> List[PatientRecord]:
        return filter_records(self.records, query or self.query, self.tz)

    def matching(self) -> List[PatientRecord]:
        return self.filter(self.query)

    def visible(self) -> Page:
        return paginate(self.matching(), self.page_size, self.page)

    def set_query(self, text: Optional[str] = None, date: Optional[Day] = None):
        # bad dates raise ValueError here, not on every redraw
        self.query = RecordQuery(text=text, date=_as_day(date) if date else None)
        self.page = 1
        self._notify()

    def go_to(self, page: int) -> Page:
        visible = paginate(self.matching(), self.page_size, page)
        self.page = visible.number
        # changing page and inspecting a record are exclusive
        self.selected = None
        self._notify()
        return visible

    def next_page(self) -> Page:
        return self.go_to(self.page + 1)

    def previous_page(self) -> Page:
        return self.go_to(self.page - 1)

    # ---------- selection ----------
    def select(self, record_id: str) -> PatientRecord:
        record = self.find(record_id)
        if record is None:
            raise KeyError(record_id)
        self.selected = record
        self._notify()
        return record

    def clear(self):
        self.selected = None
        self._notify()
