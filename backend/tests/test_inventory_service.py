import pytest

from tailorpos.models import Counter, InventoryItem
from tailorpos.services import inventory_service
from tailorpos.services.inventory_service import (
    create_item,
    delete_item,
    guarded_decrement,
    increment_quantity,
    inventory_summary,
    lookup_by_barcode,
    update_item,
)
from tailorpos.time_utils import business_today, date_stamp
from tailorpos.validation import ConflictError, NotFoundError, ValidationError


class TestCreate:
    def test_allocates_day_sequence_barcodes(self, db_session, branch):
        first = create_item({"name": "Linen", "type": "raw", "unit": "meter", "quantity": 30, "branch_id": branch.id})
        second = create_item({"name": "Vest", "type": "finished", "selling_price_cents": 900, "branch_id": branch.id})

        stamp = date_stamp(business_today())
        assert first.barcode == stamp + "001"
        assert second.barcode == stamp + "002"
        assert first.branch_name == "Downtown"
        assert first.version_id == 1

    def test_unknown_fields_are_ignored_and_name_trimmed(self, db_session):
        item = create_item({"name": "  Thread ", "barcode": "forged", "quantity": 3})
        assert item.name == "Thread"
        assert item.type == "raw"
        assert item.barcode != "forged"

    @pytest.mark.parametrize("fields,message", [
        ({"name": " "}, "name is required"),
        ({"name": "Linen", "type": "scrap"}, "type must be one of"),
        ({"name": "Linen", "quantity": -1}, "quantity must be >= 0"),
        ({"name": "Linen", "type": "raw", "selling_price_cents": 100}, "only allowed for finished"),
        ({"name": "Linen", "branch_id": 9999}, "Branch not found"),
    ])
    def test_rejects_bad_fields_without_consuming_barcode(self, db_session, fields, message):
        with pytest.raises(ValidationError, match=message):
            create_item(fields)
        assert db_session.query(InventoryItem).count() == 0
        assert db_session.query(Counter).count() == 0


class TestUpdate:
    def test_overwrites_quantity(self, db_session, shirt):
        item = update_item(shirt.id, {"quantity": 12, "name": "Oxford shirt"})
        assert (item.quantity, item.name) == (12, "Oxford shirt")
        assert item.version_id == 2

    def test_version_mismatch_is_not_retried(self, db_session, shirt):
        update_item(shirt.id, {"quantity": 12}, expected_version=1)
        with pytest.raises(ConflictError):
            update_item(shirt.id, {"quantity": 1}, expected_version=1)
        db_session.expire_all()
        assert db_session.get(InventoryItem, shirt.id).quantity == 12

    def test_moving_branch_updates_branch_name(self, db_session, shirt, other_branch):
        item = update_item(shirt.id, {"branch_id": other_branch.id})
        assert item.branch_name == "Warehouse"

    def test_raw_item_loses_selling_price(self, db_session, fabric):
        item = update_item(fabric.id, {"min_quantity": 2})
        assert item.selling_price_cents is None
        assert item.min_quantity == 2

    def test_blank_name(self, db_session, shirt):
        with pytest.raises(ValidationError):
            update_item(shirt.id, {"name": ""})

    def test_missing(self, db_session):
        with pytest.raises(NotFoundError):
            update_item(4242, {"quantity": 1})


class TestGuardedWrites:
    def test_decrement_never_goes_negative(self, db_session, shirt):
        guarded_decrement(shirt.id, 5)
        with pytest.raises(ConflictError):
            guarded_decrement(shirt.id, 1)
        db_session.commit()
        db_session.expire_all()
        item = db_session.get(InventoryItem, shirt.id)
        assert item.quantity == 0
        assert item.version_id == 2

    def test_decrement_missing_item(self, db_session):
        with pytest.raises(NotFoundError):
            guarded_decrement(4242, 1)

    def test_increment(self, db_session, shirt):
        increment_quantity(shirt.id, 4)
        db_session.commit()
        db_session.expire_all()
        assert db_session.get(InventoryItem, shirt.id).quantity == 9
        with pytest.raises(NotFoundError):
            increment_quantity(4242, 1)


def test_delete(db_session, shirt):
    delete_item(shirt.id)
    assert db_session.get(InventoryItem, shirt.id) is None
    with pytest.raises(NotFoundError):
        delete_item(shirt.id)


def test_barcode_lookup_prefers_oldest(db_session, shirt, other_branch, item_factory):
    clone = item_factory(other_branch, barcode=shirt.barcode)

    assert lookup_by_barcode(" 01012026001 ").id == shirt.id
    assert lookup_by_barcode("01012026001", branch_id=other_branch.id).id == clone.id
    with pytest.raises(NotFoundError):
        lookup_by_barcode("99999999999")
    with pytest.raises(ValidationError):
        lookup_by_barcode("")


def test_summary(db_session, shirt, fabric, other_branch, item_factory, branch):
    item_factory(other_branch, quantity=0, barcode="02012026001")

    overall = inventory_summary()
    assert overall["item_count"] == 3
    assert overall["total_quantity"] == 25
    assert overall["total_value_cents"] == 5 * 60 + 20 * 15
    assert overall["low_stock_count"] == 1

    scoped = inventory_summary(branch.id)
    assert scoped == {
        "branch_id": branch.id,
        "item_count": 2,
        "total_quantity": 25,
        "total_value_cents": 600,
        "low_stock_count": 0,
    }


def test_module_documents_its_stock_rules():
    assert "never goes below zero" in inventory_service.__doc__
