"""
Concurrent checkouts against a file-backed database.

Each worker thread runs in its own app context and therefore its own
session and connection, like separate registers hitting the same store.
"""

import threading

import pytest

from tailorpos import create_app
from tailorpos.extensions import db
from tailorpos.models import Branch, Customer, DailyStat, InventoryItem, Sale
from tailorpos.services.checkout_service import CartLine, CheckoutRequest, CustomerRef, checkout
from tailorpos.validation import ConflictError, TransientIOError, ValidationError

WORKERS = 6


@pytest.fixture
def shared_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'registers.sqlite3'}",
        'CHECKOUT_RETRY_ATTEMPTS': 10,
        'RETRY_BACKOFF_BASE': 0.01,
        'BUSINESS_TIMEZONE': 'UTC',
    })
    with app.app_context():
        db.create_all()
        branch = Branch(name="Downtown", type="store")
        db.session.add(branch)
        db.session.flush()
        item = InventoryItem(
            name="Shirt", type="finished", unit="piece", quantity=4, min_quantity=1,
            cost_cents=60, selling_price_cents=100, branch_id=branch.id, branch_name=branch.name,
        )
        db.session.add(item)
        db.session.commit()
        app.config["ITEM_ID"] = item.id
        app.config["BRANCH_ID"] = branch.id
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def _run_registers(app, requests):
    results = [None] * len(requests)
    start = threading.Barrier(len(requests))

    def worker(index, request):
        with app.app_context():
            start.wait()
            try:
                results[index] = checkout(request)
            except (ValidationError, ConflictError, TransientIOError) as exc:
                results[index] = exc

    threads = [threading.Thread(target=worker, args=(i, r)) for i, r in enumerate(requests)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def test_last_units_are_never_oversold(shared_app):
    item_id = shared_app.config["ITEM_ID"]
    branch_id = shared_app.config["BRANCH_ID"]
    requests = [
        CheckoutRequest(
            kind="goods", branch_id=branch_id, lines=[CartLine(ref_id=item_id, qty=1)], operator=f"register{i}",
        )
        for i in range(WORKERS)
    ]

    results = _run_registers(shared_app, requests)

    committed = [r for r in results if r is not None and not isinstance(r, Exception)]
    assert len(committed) <= 4
    assert committed

    with shared_app.app_context():
        item = db.session.get(InventoryItem, item_id)
        assert item.quantity == 4 - len(committed)
        assert item.quantity >= 0
        assert db.session.query(Sale).count() == len(committed)
        stat = db.session.query(DailyStat).one()
        assert stat.order_count == len(committed)
        assert stat.total_sales_cents == 100 * len(committed)


def test_first_purchases_of_one_customer_do_not_fork(shared_app):
    item_id = shared_app.config["ITEM_ID"]
    branch_id = shared_app.config["BRANCH_ID"]
    requests = [
        CheckoutRequest(
            kind="goods",
            branch_id=branch_id,
            lines=[CartLine(ref_id=item_id, qty=1)],
            customer=CustomerRef(phone=phone, name="Mona", is_new=True),
        )
        # Three spellings of the same number
        for phone in ("01060558591", "1060558591", "+20 106 055 8591")
    ]

    results = _run_registers(shared_app, requests)
    committed = [r for r in results if r is not None and not isinstance(r, Exception)]
    assert committed

    with shared_app.app_context():
        customers = db.session.query(Customer).all()
        assert [c.phone for c in customers] == ["01060558591"]
        assert customers[0].order_count == len(committed)
        assert customers[0].total_spent_cents == 100 * len(committed)
        assert sum(1 for r in committed if r.customer_created) == 1
