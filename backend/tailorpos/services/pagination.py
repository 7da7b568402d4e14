# Overview: Keyset (cursor) pagination shared by the inventory, sales and customer lists.

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from flask import current_app
from sqlalchemy import and_, or_

from ..validation import ValidationError


@dataclass
class Page:
    """One page of a keyset scan. next_cursor is None when has_more is False."""
    items: list = field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False

    def to_dict(self, serialize: Callable[[Any], dict] | None = None) -> dict:
        serialize = serialize or (lambda obj: obj.to_dict())
        return {
            "items": [serialize(obj) for obj in self.items],
            "next_cursor": self.next_cursor,
            "has_more": self.has_more,
        }


def resolve_page_size(page_size, default_key: str) -> int:
    max_size = current_app.config.get("MAX_PAGE_SIZE", 100)
    if page_size is None or page_size == "":
        return min(current_app.config.get(default_key, 20), max_size)
    try:
        size = int(page_size)
    except (TypeError, ValueError):
        raise ValidationError("page_size must be an integer")
    if size < 1:
        raise ValidationError("page_size must be >= 1")
    return min(size, max_size)


def encode_cursor(sort_value, row_id: int) -> str:
    """
    Opaque, URL-safe token for the ordering key of the last row of a page.

    Datetimes are tagged so they decode back to datetimes (with microseconds)
    and compare equal to the stored column values.
    """
    if isinstance(sort_value, datetime):
        payload = {"v": sort_value.isoformat(), "dt": True, "id": row_id}
    else:
        payload = {"v": sort_value, "id": row_id}
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> tuple[Any, Any]:
    """Returns (sort_value, id). Raises ValidationError on anything malformed."""
    if not isinstance(token, str) or not token:
        raise ValidationError("Invalid cursor")
    try:
        padded = token + "=" * (-len(token) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError):
        raise ValidationError("Invalid cursor")
    if not isinstance(payload, dict) or "v" not in payload or "id" not in payload:
        raise ValidationError("Invalid cursor")

    value = payload["v"]
    if payload.get("dt"):
        try:
            value = datetime.fromisoformat(value)
        except (TypeError, ValueError):
            raise ValidationError("Invalid cursor")
    return value, payload["id"]


def keyset_filter(sort_expr, id_col, last_value, last_id, *, descending: bool):
    """WHERE clause selecting rows strictly after (last_value, last_id)."""
    if descending:
        return or_(sort_expr < last_value, and_(sort_expr == last_value, id_col < last_id))
    return or_(sort_expr > last_value, and_(sort_expr == last_value, id_col > last_id))


def keyset_order(sort_expr, id_col, *, descending: bool) -> tuple:
    if descending:
        return sort_expr.desc(), id_col.desc()
    return sort_expr.asc(), id_col.asc()


def page_from_rows(rows: list, page_size: int, key: Callable[[Any], tuple]) -> Page:
    """
    Build a Page from page_size + 1 fetched rows.

    key(row) -> (sort_value, id) of a row; the last row kept on the page
    becomes the next cursor.
    """
    has_more = len(rows) > page_size
    items = rows[:page_size]
    next_cursor = None
    if has_more and items:
        next_cursor = encode_cursor(*key(items[-1]))
    return Page(items=items, next_cursor=next_cursor, has_more=has_more)


def paginate_in_memory(rows: list, cursor: str | None, page_size: int, key: Callable[[Any], tuple], *, descending: bool) -> Page:
    """
    Keyset pagination over an already filtered list.

    Used where the predicate cannot be pushed down to the store. Rows are
    ordered by (sort_value, id) in the requested direction and the cursor is
    applied exactly like the SQL keyset so both paths hand out the same tokens.
    """
    ordered = sorted(rows, key=key, reverse=descending)
    if cursor:
        last = decode_cursor(cursor)
        try:
            if descending:
                ordered = [r for r in ordered if key(r) < last]
            else:
                ordered = [r for r in ordered if key(r) > last]
        except TypeError:
            raise ValidationError("Invalid cursor")
    return page_from_rows(ordered[: page_size + 1], page_size, key)


class ListSession:
    """
    Per-viewer paging state over a keyset-paginated list.

    Holds the cursor used to load every visited page on a stack: next()
    pushes, prev() pops, refresh() reloads the top. Going back never
    re-issues a reverse scan.
    """

    def __init__(self, page_size: int | None = None):
        self.page_size = page_size
        self.page: Page | None = None
        self._cursors: list[str | None] = []

    def _fetch(self, cursor: str | None) -> Page:
        raise NotImplementedError

    @property
    def page_number(self) -> int:
        return len(self._cursors)

    @property
    def has_prev(self) -> bool:
        return len(self._cursors) > 1

    def first(self) -> Page:
        self._cursors = [None]
        return self._load()

    def next(self) -> Page:
        if self.page is None:
            return self.first()
        if not self.page.has_more:
            return self.page
        self._cursors.append(self.page.next_cursor)
        return self._load()

    def prev(self) -> Page:
        if len(self._cursors) <= 1:
            return self.first()
        self._cursors.pop()
        return self._load()

    def refresh(self) -> Page:
        """Reload the current page, e.g. after any write to the list's rows."""
        if not self._cursors:
            return self.first()
        return self._load()

    def _load(self) -> Page:
        self.page = self._fetch(self._cursors[-1])
        return self.page


def prefix_filter(expr, prefix: str):
    """expr starts with prefix, as an index-friendly range [prefix, prefix + U+F8FF)."""
    return and_(expr >= prefix, expr < prefix + "\uf8ff")
