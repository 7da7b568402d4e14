# Overview: Filtered, sorted, cursor-paginated inventory listing.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryItem
from ..validation import ITEM_TYPES, ValidationError
from .pagination import (
    ListSession,
    Page,
    decode_cursor,
    keyset_filter,
    keyset_order,
    page_from_rows,
    paginate_in_memory,
    prefix_filter,
    resolve_page_size,
)

SORT_FIELDS = ("created_at", "name", "quantity", "cost_cents", "barcode")
SORT_DIRECTIONS = ("asc", "desc")


@dataclass
class InventoryFilters:
    branch_id: int | None = None
    item_type: str | None = None  # raw, finished, all/None
    search: str | None = None
    sort_field: str = "created_at"
    sort_dir: str = "desc"
    low_stock_only: bool = False

    def validate(self) -> None:
        if self.item_type in ("", "all"):
            self.item_type = None
        if self.item_type is not None and self.item_type not in ITEM_TYPES:
            raise ValidationError(f"type must be one of: all, {', '.join(ITEM_TYPES)}")
        if self.sort_field not in SORT_FIELDS:
            raise ValidationError(f"sort must be one of: {', '.join(SORT_FIELDS)}")
        if self.sort_dir not in SORT_DIRECTIONS:
            raise ValidationError("direction must be asc or desc")
        if self.search is not None:
            self.search = self.search.strip() or None

    @property
    def search_field(self) -> str | None:
        """A purely numeric search token is a (partial) barcode, anything else a name."""
        if not self.search:
            return None
        return "barcode" if self.search.isdigit() else "name"


def _sort_expr(field: str):
    if field == "barcode":
        return func.coalesce(InventoryItem.barcode, "")
    return getattr(InventoryItem, field)


def _sort_value(item: InventoryItem, field: str):
    if field == "barcode":
        return item.barcode or ""
    return getattr(item, field)


def _base_query(filters: InventoryFilters):
    q = db.session.query(InventoryItem)
    if filters.branch_id is not None:
        q = q.filter(InventoryItem.branch_id == filters.branch_id)
    if filters.item_type is not None:
        q = q.filter(InventoryItem.type == filters.item_type)
    field = filters.search_field
    if field is not None:
        q = q.filter(prefix_filter(_sort_expr(field), filters.search))
    return q


def list_inventory(filters: InventoryFilters | None = None, cursor: str | None = None, page_size: int | None = None) -> Page:
    """
    One page of inventory.

    Three paths:
    - plain: keyset on (sort_field, id) in the requested direction.
    - search: prefix range + keyset on (search field, id) ascending; the
      requested sort only reorders the rows of the fetched page.
    - low stock: quantity <= min_quantity compares two columns, so candidates
      are fetched, filtered, sorted and paged in memory.
    An empty result is an empty page, never an error.
    """
    filters = filters or InventoryFilters()
    filters.validate()
    size = resolve_page_size(page_size, "INVENTORY_PAGE_SIZE")
    descending = filters.sort_dir == "desc"

    if filters.low_stock_only:
        candidates = _base_query(filters).all()
        low = [item for item in candidates if item.is_low_stock]
        sort_field = filters.search_field or filters.sort_field
        sort_desc = descending if filters.search_field is None else False
        page = paginate_in_memory(
            low,
            cursor,
            size,
            key=lambda item: (_sort_value(item, sort_field), item.id),
            descending=sort_desc,
        )
        if filters.search_field is not None:
            _reorder_page(page, filters)
        return page

    if filters.search_field is not None:
        key_field = filters.search_field
        key_desc = False
    else:
        key_field = filters.sort_field
        key_desc = descending

    sort_expr = _sort_expr(key_field)
    q = _base_query(filters)
    if cursor:
        last_value, last_id = decode_cursor(cursor)
        q = q.filter(keyset_filter(sort_expr, InventoryItem.id, last_value, last_id, descending=key_desc))
    rows = q.order_by(*keyset_order(sort_expr, InventoryItem.id, descending=key_desc)).limit(size + 1).all()

    page = page_from_rows(rows, size, key=lambda item: (_sort_value(item, key_field), item.id))
    if filters.search_field is not None:
        _reorder_page(page, filters)
    return page


def _reorder_page(page: Page, filters: InventoryFilters) -> None:
    # Secondary sort within the page only; the cursor keeps the search-field key
    page.items.sort(
        key=lambda item: (_sort_value(item, filters.sort_field), item.id),
        reverse=filters.sort_dir == "desc",
    )


class InventoryListSession(ListSession):
    """
    Paging state of one inventory list view.

    Changing filters starts over at page one; after any write (checkout,
    transfer, edit) call refresh() to reload the current page.
    """

    def __init__(self, filters: InventoryFilters | None = None, page_size: int | None = None):
        super().__init__(page_size=page_size)
        self.filters = filters or InventoryFilters()

    def set_filters(self, filters: InventoryFilters) -> Page:
        self.filters = filters
        return self.first()

    def _fetch(self, cursor: str | None) -> Page:
        return list_inventory(self.filters, cursor=cursor, page_size=self.page_size)
