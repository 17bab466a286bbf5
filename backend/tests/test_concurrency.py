"""
Concurrent requests against the same product or the same source document:
stock read-modify-write, conversions and payments are applied one after the
other, never interleaved.
"""

import threading

import pytest


def run_threads(worker, args_list):
    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


@pytest.fixture
def product_id(client):
    resp = client.post("/api/products", json={
        "sku": "P1", "name": "Carrelage Blanc 30x30", "price_cents": 2000, "vat_rate": 21, "stock_qty": 100,
    })
    assert resp.status_code == 201
    return resp.get_json()["id"]


def line(product_id, qty):
    return {"product_id": product_id, "qty": qty, "unit_price_cents": 2000, "vat_rate": 21}


class TestConcurrentStock:

    def test_parallel_sales_decrement_one_product(self, app, client, product_id):
        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            thread_client = app.test_client()
            for _ in range(5):
                resp = thread_client.post("/api/sales", json={"items": [line(product_id, 2)]})
                with lock:
                    if resp.status_code == 201:
                        results.append(resp.get_json()["number"])
                    else:
                        errors.append(resp.get_json())

        run_threads(worker, [() for _ in range(8)])

        assert errors == []
        assert len(set(results)) == 40
        assert client.get(f"/api/products/{product_id}").get_json()["stock_qty"] == 100 - 40 * 2


class TestConcurrentConversions:

    def test_same_quote_converted_from_many_threads(self, app, client, product_id):
        quote = client.post("/api/documents", json={"doc_type": "quote", "items": [line(product_id, 5)]}).get_json()
        results = []
        lock = threading.Lock()

        def worker():
            resp = app.test_client().post(f"/api/documents/{quote['id']}/convert?target_type=delivery_note")
            with lock:
                results.append((resp.status_code, resp.get_json()))

        run_threads(worker, [() for _ in range(6)])

        assert [status for status, _ in results] == [201] * 6
        deliveries = [body for _, body in results]
        assert len({d["number"] for d in deliveries}) == 6
        assert {d["source_document_id"] for d in deliveries} == {quote["id"]}
        assert client.get(f"/api/products/{product_id}").get_json()["stock_qty"] == 100 - 6 * 5

        listed = client.get("/api/documents?doc_type=delivery_note").get_json()
        assert sorted(d["number"] for d in listed) == sorted(d["number"] for d in deliveries)

    def test_only_one_credit_note_per_invoice(self, app, client, product_id):
        invoice = client.post("/api/documents", json={"doc_type": "invoice", "items": [line(product_id, 5)]}).get_json()
        statuses = []
        lock = threading.Lock()

        def worker():
            resp = app.test_client().post(f"/api/documents/{invoice['id']}/convert?target_type=credit_note")
            with lock:
                statuses.append(resp.status_code)

        run_threads(worker, [() for _ in range(6)])

        assert sorted(statuses) == [201] + [409] * 5
        returnable = client.get(f"/api/invoices/{invoice['id']}/returnable").get_json()
        assert returnable["items"][0]["qty_credited"] == 5
        assert len(client.get("/api/documents?doc_type=credit_note").get_json()) == 1


class TestConcurrentPayments:

    def test_parallel_payments_on_one_invoice(self, app, client, product_id):
        invoice = client.post("/api/documents", json={"doc_type": "invoice", "items": [line(product_id, 5)]}).get_json()
        assert invoice["total_cents"] == 12100
        statuses = []
        lock = threading.Lock()

        def worker():
            resp = app.test_client().post(
                f"/api/documents/{invoice['id']}/pay", json={"method": "cash", "amount_cents": 1000}
            )
            with lock:
                statuses.append(resp.status_code)

        run_threads(worker, [() for _ in range(10)])

        assert statuses == [200] * 10
        doc = client.get(f"/api/documents/{invoice['id']}").get_json()
        assert doc["paid_total_cents"] == 10000
        assert len(doc["payments"]) == 10
        assert doc["status"] == "partially_paid"
