# Overview: Pytest coverage for racing process-stock and commit calls on one database.

"""
Concurrency Tests

Two threads, each with its own app context and connection, are released
together. Exactly one of them may change the database; the other must see
the first one's result and fail with a state or conflict error.
"""

import threading

from truckcheck.extensions import db
from truckcheck.models import CheckoutInvoice, StockMovement
from truckcheck.models.inventory import MOVEMENT_TRUCK_ADD_BACK
from truckcheck.services import checkout_service, inventory_service, stock_processor


def _race(app, *calls):
    """Run each call in its own thread, started together; return outcome names."""
    barrier = threading.Barrier(len(calls))
    outcomes = []
    lock = threading.Lock()

    def worker(call):
        with app.app_context():
            barrier.wait()
            try:
                call()
                outcome = "ok"
            except Exception as exc:
                outcome = type(exc).__name__
            finally:
                db.session.remove()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    return sorted(outcomes)


class TestProcessStockRace:
    def test_only_one_caller_adds_stock_back(self, file_app):
        directory = file_app.extensions["invoice_directory"]
        directory.add("INV-1", [("Widget", 6)])
        with file_app.app_context():
            item = inventory_service.register_item("Widget", opening_quantity=20)
            checkout = checkout_service.create_checkout("Dana Ortiz", [{"name": "Widget", "quantity": 10}])
            checkout_service.commit_invoices(checkout.id, ["INV-1"], "closed")
            item_id, checkout_id = item.id, checkout.id

        outcomes = _race(
            file_app,
            lambda: stock_processor.process_stock(checkout_id),
            lambda: stock_processor.process_stock(checkout_id),
        )

        assert outcomes == ["InvalidStateError", "ok"]
        with file_app.app_context():
            add_backs = db.session.query(StockMovement).filter_by(movement_type=MOVEMENT_TRUCK_ADD_BACK).count()
            assert add_backs == 1
            # 20 opening, 10 onto the truck, 6 sold and added back once
            assert inventory_service.get_quantity_on_hand(item_id) == 16


class TestCommitRace:
    def test_one_invoice_claimed_by_only_one_checkout(self, file_app):
        directory = file_app.extensions["invoice_directory"]
        directory.add("INV-1", [("Widget", 10)])
        with file_app.app_context():
            a = checkout_service.create_checkout("Dana Ortiz", [{"name": "Widget", "quantity": 10}])
            b = checkout_service.create_checkout("Lee Park", [{"name": "Widget", "quantity": 10}])
            a_id, b_id = a.id, b.id

        outcomes = _race(
            file_app,
            lambda: checkout_service.commit_invoices(a_id, ["INV-1"], "closed"),
            lambda: checkout_service.commit_invoices(b_id, ["INV-1"], "closed"),
        )

        assert outcomes == ["ConflictError", "ok"]
        with file_app.app_context():
            claims = db.session.query(CheckoutInvoice).all()
            assert len(claims) == 1
            winner = checkout_service.get_checkout(claims[0].checkout_id)
            loser_id = b_id if winner.id == a_id else a_id
            assert winner.status == "completed"
            assert checkout_service.get_checkout(loser_id).status == "checked_out"
