# utils/query.py
"""Helpers shared by the list endpoints: lenient parsing of query-string
values, pagination, sorting, text search and time-range filters."""
import math
from datetime import datetime, time as dtime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query

DEFAULT_PAGE = 1
DEFAULT_PERPAGE = 10
MAX_PERPAGE = 100
# Largest row offset SQL engines accept (signed 64-bit)
MAX_OFFSET = 2 ** 63 - 1


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Parse an int from form/query/spreadsheet input, falling back to default."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    text = str(value).strip()
    if not text:
        return default
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return default
    return int(number) if math.isfinite(number) else default


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    return number if math.isfinite(number) else default


def page_params(page: Any, perpage: Any) -> Tuple[int, int]:
    # Non-numeric or non-positive values fall back to the defaults; oversized
    # ones are clamped so the row offset fits a 64-bit INTEGER
    p = to_int(page, DEFAULT_PAGE)
    pp = to_int(perpage, DEFAULT_PERPAGE)
    pp = min(pp, MAX_PERPAGE) if pp > 0 else DEFAULT_PERPAGE
    p = min(p, MAX_OFFSET // pp + 1) if p > 0 else DEFAULT_PAGE
    return p, pp


def _parse_bound(text: str, end: bool) -> Optional[datetime]:
    text = text.strip()
    if not text:
        return None
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        return None
    # A bare date covers the whole day
    if len(text) == 10:
        value = datetime.combine(value.date(), dtime.max if end else dtime.min)
    return value.replace(tzinfo=None)


def parse_time_range(value: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Parse ``<from>,<to>``; either side may be empty. A single value without
    a comma is treated as one day."""
    if not value:
        return None, None
    if "," not in value:
        return _parse_bound(value, end=False), _parse_bound(value, end=True)
    start, _, stop = value.partition(",")
    return _parse_bound(start, end=False), _parse_bound(stop, end=True)


def apply_time_range(query: Query, column, value: Optional[str]) -> Query:
    start, stop = parse_time_range(value)
    if start is not None:
        query = query.filter(column >= start)
    if stop is not None:
        query = query.filter(column <= stop)
    return query


def apply_search(query: Query, columns: List, search: Optional[str]) -> Query:
    # Every whitespace separated term has to match at least one column
    if not search or not search.strip():
        return query
    clauses = []
    for term in search.split():
        like = f"%{term}%"
        clauses.append(or_(*[col.ilike(like) for col in columns]))
    return query.filter(and_(*clauses))


def apply_sort(query: Query, allowed: Dict[str, Any], sort: Optional[str], order: Optional[str],
               default: str) -> Tuple[Query, str, str]:
    sort_key = sort if sort in allowed else default
    direction = "asc" if (order or "").lower() == "asc" else "desc"
    col = allowed[sort_key]
    query = query.order_by(col.asc() if direction == "asc" else col.desc())
    return query, sort_key, direction


def paginate(query: Query, page: int, perpage: int) -> Tuple[list, int, int]:
    # Count runs on the filtered query before offset/limit are applied
    total = query.order_by(None).count()
    items = query.offset((page - 1) * perpage).limit(perpage).all()
    pages = math.ceil(total / perpage) if total else 0
    return items, total, pages
