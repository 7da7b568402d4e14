import pytest

from tailorpos.models import InventoryItem, Sale, User
from tailorpos.services.branch_service import (
    create_branch,
    delete_branch,
    list_branches,
    update_branch,
)
from tailorpos.services.catalog_service import (
    create_service,
    delete_service,
    list_services,
    update_service,
)
from tailorpos.validation import NotFoundError, ValidationError


class TestBranches:
    def test_create_and_list(self, db_session):
        create_branch("Uptown", location="5th Ave")
        create_branch("Depot", type="warehouse")
        assert [b.name for b in list_branches()] == ["Depot", "Uptown"]

    def test_duplicate_and_bad_type(self, db_session, branch):
        with pytest.raises(ValidationError, match="already exists"):
            create_branch("Downtown")
        with pytest.raises(ValidationError, match="type must be one of"):
            create_branch("Kiosk", type="kiosk")

    def test_rename_rewrites_item_branch_names(self, db_session, branch, shirt):
        update_branch(branch.id, {"name": "Old Town", "location": "Market Sq"})
        db_session.expire_all()
        assert db_session.get(InventoryItem, shirt.id).branch_name == "Old Town"

    def test_rename_keeps_sale_history(self, db_session, branch):
        db_session.add(Sale(
            kind="goods", customer_name="Walk-in customer", customer_phone="Walk-in",
            total_amount_cents=100, amount_paid_cents=100, status="completed",
            branch_id=branch.id, branch_name=branch.name,
        ))
        db_session.commit()
        update_branch(branch.id, {"name": "Old Town"})
        assert db_session.query(Sale).one().branch_name == "Downtown"

    def test_delete_refused_while_stocked(self, db_session, branch, shirt):
        with pytest.raises(ValidationError, match="still holds inventory"):
            delete_branch(branch.id)

    def test_delete_unpins_users(self, db_session, other_branch, user_factory):
        user = user_factory("warehouse", "inventory", branch_id=other_branch.id)
        delete_branch(other_branch.id)
        db_session.expire_all()
        assert db_session.get(User, user.id).branch_id is None
        with pytest.raises(NotFoundError):
            delete_branch(other_branch.id)


class TestServiceCatalog:
    def test_crud(self, db_session):
        service = create_service("tailoring", " Suit fitting ", 1500)
        assert service.name == "Suit fitting"

        updated = update_service(service.id, {"price_cents": 1750})
        assert updated.price_cents == 1750

        delete_service(service.id)
        with pytest.raises(NotFoundError):
            delete_service(service.id)

    @pytest.mark.parametrize("type_,name,price", [
        ("knitting", "Scarf", 100),
        ("repair", "", 100),
        ("repair", "Zip", -5),
    ])
    def test_create_rejects(self, db_session, type_, name, price):
        with pytest.raises(ValidationError):
            create_service(type_, name, price)

    def test_list_by_type(self, db_session):
        create_service("tailoring", "Hemming", 250)
        create_service("repair", "Zip", 300)
        create_service("repair", "Button", 50)

        repairs = list_services("repair")
        assert [s.name for s in repairs.items] == ["Button", "Zip"]
        assert len(list_services("all").items) == 3
        with pytest.raises(ValidationError):
            list_services("knitting")
