# Overview: Threaded concurrency tests for balance updates, order numbering and loyalty redemption.

"""
Concurrency tests against a file-backed SQLite database.

In-memory SQLite shares one connection, so these tests use a temp file to
get real concurrent transactions.
"""
import os
import tempfile
import threading
import unittest

from laundry import create_app
from laundry.extensions import db
from laundry.errors import InvariantViolation
from laundry.models import Branch, Customer, Order
from laundry.services import order_service, payment_service


def _payload(customer_id, *, total="10.00", payment_method="pay_later", **extra):
    payload = {
        "customer_id": customer_id,
        "customer_name": "Concurrent Customer",
        "customer_phone": "555-0900",
        "items": [{"clothing_item": "Shirt", "service": "wash", "quantity": 1, "unit_price": total}],
        "subtotal": total,
        "tax": "0.00",
        "total": total,
        "payment_method": payment_method,
    }
    payload.update(extra)
    return payload


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "RETRY_ATTEMPTS": 10,
            "RETRY_BACKOFF_SECONDS": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            branch = Branch(code="CC", name="Concurrency Branch", tax_rate_bps=0, is_active=True)
            db.session.add(branch)
            db.session.commit()
            self.branch_id = branch.id

            customer = Customer(
                branch_id=self.branch_id,
                phone="555-0900",
                name="Concurrent Customer",
                loyalty_points=10,
            )
            db.session.add(customer)
            db.session.commit()
            self.customer_id = customer.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_threads(self, target, count):
        results = []
        errors = []
        lock = threading.Lock()

        def worker(index):
            with self.app.app_context():
                try:
                    value = target(index)
                    with lock:
                        results.append(value)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results, errors

    def test_concurrent_pay_later_orders_accumulate(self):
        def create(_index):
            order = order_service.create_order(
                _payload(self.customer_id), branch_id=self.branch_id, seller_name="clerk",
            )
            return order.id

        results, errors = self._run_threads(create, 10)

        self.assertFalse(errors)
        self.assertEqual(len(results), 10)
        with self.app.app_context():
            customer = db.session.get(Customer, self.customer_id)
            self.assertEqual(customer.balance_due_cents, 10 * 1000)
            self.assertEqual(customer.total_spent_cents, 10 * 1000)

    def test_order_numbers_unique(self):
        def create(_index):
            order = order_service.create_order(
                _payload(None, payment_method="cash"), branch_id=self.branch_id, seller_name="clerk",
            )
            return order.order_number

        results, errors = self._run_threads(create, 12)

        self.assertFalse(errors)
        self.assertEqual(len(results), 12)
        self.assertEqual(len(set(results)), 12)
        self.assertEqual(sorted(results), [f"CC-{n:04d}" for n in range(1, 13)])

    def test_orders_and_payments_interleave(self):
        def work(index):
            if index % 2:
                return payment_service.record_payment(
                    customer_id=self.customer_id,
                    amount="3.00",
                    payment_method="cash",
                    received_by="clerk",
                    branch_id=self.branch_id,
                ).id
            return order_service.create_order(
                _payload(self.customer_id), branch_id=self.branch_id, seller_name="clerk",
            ).id

        results, errors = self._run_threads(work, 10)

        self.assertFalse(errors)
        with self.app.app_context():
            customer = db.session.get(Customer, self.customer_id)
            # 5 orders of 10.00, 5 payments of 3.00
            self.assertEqual(customer.balance_due_cents, 5 * 1000 - 5 * 300)

    def test_concurrent_redemptions_never_overdraw(self):
        def redeem(_index):
            order = order_service.create_order(
                _payload(self.customer_id, payment_method="cash", loyalty_points_redeemed=4),
                branch_id=self.branch_id,
                seller_name="clerk",
            )
            return order.id

        results, errors = self._run_threads(redeem, 5)

        self.assertEqual(len(results), 2)
        self.assertEqual(len(errors), 3)
        self.assertTrue(all(isinstance(exc, InvariantViolation) for exc in errors))
        with self.app.app_context():
            customer = db.session.get(Customer, self.customer_id)
            self.assertEqual(customer.loyalty_points, 2)
            self.assertEqual(db.session.query(Order).count(), 2)


if __name__ == "__main__":
    unittest.main()
