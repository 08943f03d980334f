"""
Concurrency tests against the shared file database.

Each worker thread runs in its own app context (and so its own session),
like concurrent requests. Individual attempts may lose a race and come back
as ValidationError (nothing left) or ConflictError (retries exhausted);
the invariants must hold regardless.
"""

import threading

import pytest
from sqlalchemy.exc import IntegrityError

from bms_pos.errors import ConflictError, ValidationError
from bms_pos.extensions import db
from bms_pos.models import InventoryCount, Product, ReturnItem, SaleItem, SystemSettings
from bms_pos.models.settings import SETTINGS_ROW_ID
from bms_pos.services import count_service, return_service, sales_service, settings_service


def _run_concurrently(app, workers, fn):
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def target(index):
        with app.app_context():
            barrier.wait()
            try:
                fn(index)
                result = "ok"
            except (ValidationError, ConflictError) as e:
                result = type(e).__name__
            except Exception as e:  # surfaced through the assertion below
                result = f"unexpected: {e!r}"
            finally:
                db.session.remove()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=target, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=120)
    return outcomes


class TestConcurrentReturns:
    def test_returns_never_exceed_sold(self, app, db_session, product, cashier_actor, default_settings):
        sale = sales_service.create_sale(
            {"items": [{"product_id": product.id, "quantity": 10}]}, cashier_actor, default_settings,
        )
        sale_id = sale.id
        item_id = sale.items[0].id

        def worker(_):
            return_service.process_return(
                sale_id,
                [{"original_sale_item_id": item_id, "return_quantity": 3, "line_total_cents": None,
                  "condition": "good", "reason": "race"}],
                cashier_actor,
                default_settings,
            )

        outcomes = _run_concurrently(app, 6, worker)
        assert not [o for o in outcomes if o.startswith("unexpected")], outcomes

        db_session.expire_all()
        returned = db_session.query(db.func.coalesce(db.func.sum(ReturnItem.return_quantity), 0)).scalar()
        sale_item = db_session.get(SaleItem, item_id)
        assert returned <= 10
        assert returned == outcomes.count("ok") * 3
        assert sale_item.returned_quantity == returned
        assert db_session.get(Product, product.id).stock_quantity == 90 + returned


class TestConcurrentSales:
    def test_stock_never_negative(self, app, db_session, cheap_product, cashier_actor, default_settings):
        product_id = cheap_product.id

        def worker(_):
            sales_service.create_sale(
                {"items": [{"product_id": product_id, "quantity": 3}]}, cashier_actor, default_settings,
            )

        outcomes = _run_concurrently(app, 10, worker)
        assert not [o for o in outcomes if o.startswith("unexpected")], outcomes

        db_session.expire_all()
        stock = db_session.get(Product, product_id).stock_quantity
        assert stock >= 0
        assert stock == 20 - outcomes.count("ok") * 3


class TestConcurrentCounts:
    def test_single_in_progress(self, app, db_session, manager_actor):
        def worker(index):
            count_service.start_count(f"Count {index}", "SPOT", manager_actor)

        outcomes = _run_concurrently(app, 5, worker)
        assert not [o for o in outcomes if o.startswith("unexpected")], outcomes

        db_session.expire_all()
        in_progress = db_session.query(InventoryCount).filter_by(status="IN_PROGRESS").count()
        assert in_progress == 1
        assert outcomes.count("ok") == 1


class TestSettingsRow:
    def test_first_use_race_leaves_one_row(self, app, db_session):
        def worker(_):
            settings_service.get_settings_row()

        outcomes = _run_concurrently(app, 5, worker)
        assert outcomes == ["ok"] * 5

        db_session.expire_all()
        rows = db_session.query(SystemSettings).all()
        assert [row.id for row in rows] == [SETTINGS_ROW_ID]

    def test_second_row_rejected(self, db_session, settings_row):
        assert settings_service.get_settings_row().id == settings_row.id == SETTINGS_ROW_ID

        db_session.add(SystemSettings(id=SETTINGS_ROW_ID + 1))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()
