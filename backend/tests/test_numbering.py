"""
Document numbering: one process-wide sequence, type prefix, never reused,
also under concurrent creation.
"""

import re
import threading

import pytest

from retailpos.extensions import db
from retailpos.models import DocumentSequence
from retailpos.services import document_service
from retailpos.validation import ValidationError


NUMBER_RE = re.compile(r"^(DEV|BC|BL|FAC|AV|DOC)-(\d{6})$")


class TestSequence:

    def test_first_values(self, db_session):
        assert document_service.next_sequence_value("DOCUMENT") == 1
        assert document_service.next_sequence_value("DOCUMENT") == 2
        assert document_service.next_sequence_value("RETURN") == 1

    def test_numbers_share_one_sequence(self, db_session):
        quote = document_service.create_document({"doc_type": "quote", "items": []})
        invoice = document_service.create_document({"doc_type": "invoice", "items": []})
        proforma = document_service.create_document({"doc_type": "proforma", "items": []})

        assert quote.number == "DEV-000001"
        assert invoice.number == "FAC-000002"
        assert proforma.number == "DOC-000003"

    def test_return_number_format(self, db_session):
        assert document_service.next_return_number(2026) == "RET-2026-000001"
        assert document_service.next_return_number(2026) == "RET-2026-000002"

    def test_failed_creation_gives_number_back(self, db_session):
        document_service.create_document({"doc_type": "quote", "items": []})
        # Fails after its number was drawn: store credit needs a customer
        with pytest.raises(ValidationError):
            document_service.create_document({
                "doc_type": "quote",
                "items": [],
                "payments": [{"method": "customer_credit", "amount_cents": 100}],
            })
        third = document_service.create_document({"doc_type": "quote", "items": []})

        assert third.number == "DEV-000002"
        row = db.session.query(DocumentSequence).filter_by(sequence_name="DOCUMENT").one()
        assert row.next_number == 3


class TestConcurrentNumbering:

    def test_concurrent_creation_yields_distinct_numbers(self, app):
        types = ["quote", "invoice", "purchase_order", "delivery_note", "credit_note"]
        results = []
        errors = []
        lock = threading.Lock()

        def worker(doc_type):
            client = app.test_client()
            for _ in range(4):
                resp = client.post("/api/documents", json={"doc_type": doc_type, "items": []})
                with lock:
                    if resp.status_code == 201:
                        results.append((doc_type, resp.get_json()["number"]))
                    else:
                        errors.append(resp.get_json())

        threads = [threading.Thread(target=worker, args=(t,)) for t in types for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(results) == 40

        numbers = [number for _, number in results]
        assert len(set(numbers)) == 40

        prefixes = {"quote": "DEV", "invoice": "FAC", "purchase_order": "BC", "delivery_note": "BL", "credit_note": "AV"}
        sequences = []
        for doc_type, number in results:
            match = NUMBER_RE.match(number)
            assert match is not None
            assert match.group(1) == prefixes[doc_type]
            sequences.append(int(match.group(2)))
        assert sorted(sequences) == list(range(1, 41))
