"""
Tests del módulo de documentos

- Generación de líneas y recargos (objetos ORM sin persistir)
- Totales, pagos y estado de pago derivado
- API: generación, consultas, pagos y reversión
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

from textil.common.exceptions import MixedClientError, NoBillableItems, ValidationError
from textil.modules.deliveries.models import Delivery, DeliveryItem
from textil.modules.documents import totals
from textil.modules.documents.generator import generate_document_lines
from textil.modules.documents.models import PaymentStatus
from textil.modules.documents.reversal import ReversalCoordinator
from textil.modules.documents.totals import DerivedPaymentStatus, calculate_totals
from textil.modules.entries import state_machine
from textil.modules.entries.models import Entry, EntryItem, EntryStatus
from textil.modules.products.models import Product


# ===== FIXTURES =====

CLIENT_ID = uuid4()


def build_product(price="5.00"):
    return Product(id=uuid4(), reference=f"REF-{uuid4().hex[:6]}", model_name="Camiseta", price=Decimal(price))


def build_entry(code, product, sizes, client_id=CLIENT_ID, status=EntryStatus.DELIVERED):
    entry = Entry(id=uuid4(), code=code, client_id=client_id, status=status)
    entry.items = [
        EntryItem(
            id=uuid4(),
            product_id=product.id,
            product_ref=product.reference,
            description="Camiseta básica",
            size_quantities=sizes,
        )
    ]
    return entry


def build_delivery(entry, sizes, delivery_date=date(2024, 3, 1)):
    item = entry.items[0]
    delivery = Delivery(id=uuid4(), entry_code=entry.code, delivery_date=delivery_date, who_delivered="Pedro")
    delivery.items = [
        DeliveryItem(id=uuid4(), entry_id=entry.id, entry_item_id=item.id, product_id=item.product_id, size_quantities=sizes)
    ]
    return delivery


class TestLineGeneration:
    def test_worked_example(self):
        """{S:10, M:10} entregado en dos veces a 5.00 -> 100.00 + 21% = 121.00"""
        product = build_product("5.00")
        entry = build_entry("1", product, {"S": 10, "M": 10})
        deliveries = [build_delivery(entry, {"S": 10}, date(2024, 3, 1)), build_delivery(entry, {"M": 10}, date(2024, 3, 5))]

        lines = generate_document_lines([entry], [product], deliveries, is_special_client=False)

        assert len(lines.items) == 1
        line = lines.items[0]
        assert line.ordered_qty == 20
        assert line.delivered_qty == 20
        assert line.pending_qty == 0
        assert line.unit_price == Decimal("5.00")
        assert line.total == Decimal("100.00")
        assert line.last_delivery_date == date(2024, 3, 5)
        assert line.entry_code == "1"
        assert line.reference == product.reference
        assert line.description == "Camiseta básica"
        assert line.status == "delivered"
        assert lines.surcharges == []

        totals = calculate_totals(lines.items, lines.surcharges, Decimal("21.00"))
        assert totals.subtotal == Decimal("100.00")
        assert totals.tax_amount == Decimal("21.00")
        assert totals.total == Decimal("121.00")

    def test_bills_delivered_not_ordered(self):
        product = build_product("2.50")
        entry = build_entry("1", product, {"S": 10, "M": 10})
        lines = generate_document_lines([entry], [product], [build_delivery(entry, {"S": 4})], False)
        assert lines.items[0].delivered_qty == 4
        assert lines.items[0].pending_qty == 16
        assert lines.items[0].total == Decimal("10.00")

    def test_unpriced_product_is_skipped(self):
        priced, unpriced = build_product("3.00"), build_product("0")
        first = build_entry("1", priced, {"S": 30})
        second = build_entry("2", unpriced, {"S": 30})
        deliveries = [build_delivery(first, {"S": 30}), build_delivery(second, {"S": 30})]

        lines = generate_document_lines([first, second], [priced, unpriced], deliveries, False)
        assert [line.entry_code for line in lines.items] == ["1"]

    def test_missing_product_is_skipped(self):
        product = build_product()
        entry = build_entry("1", product, {"S": 30})
        other = build_entry("2", build_product(), {"S": 30})
        lines = generate_document_lines(
            [entry, other], [product], [build_delivery(entry, {"S": 30}), build_delivery(other, {"S": 30})], False
        )
        assert len(lines.items) == 1

    def test_all_unpriced_raises(self):
        product = build_product("0")
        entry = build_entry("1", product, {"S": 10})
        with pytest.raises(NoBillableItems):
            generate_document_lines([entry], [product], [build_delivery(entry, {"S": 10})], False)

    def test_nothing_delivered_raises(self):
        product = build_product()
        entry = build_entry("1", product, {"S": 10})
        with pytest.raises(NoBillableItems):
            generate_document_lines([entry], [product], [], False)

    def test_mixed_clients_rejected(self):
        product = build_product()
        first = build_entry("1", product, {"S": 10})
        second = build_entry("2", product, {"S": 10}, client_id=uuid4())
        with pytest.raises(MixedClientError):
            generate_document_lines([first, second], [product], [], False)

    def test_empty_selection_rejected(self):
        with pytest.raises(ValidationError):
            generate_document_lines([], [], [], False)


class TestSurcharges:
    def test_special_client_small_line(self):
        product = build_product("5.00")
        entry = build_entry("1", product, {"S": 15})
        lines = generate_document_lines([entry], [product], [build_delivery(entry, {"S": 15})], True)

        assert len(lines.surcharges) == 1
        assert lines.surcharges[0].reason == "Recargo por cantidad pequeña (≤20 unidades)"
        assert lines.surcharges[0].amount == Decimal("7.50")
        # El precio unitario nunca incluye el recargo
        assert lines.items[0].unit_price == Decimal("5.00")
        assert lines.items[0].total == Decimal("75.00")

    def test_no_double_surcharge(self):
        """Línea elegible para ambas bolsas: solo cuenta en la del cliente especial"""
        product = build_product("5.00")
        entry = build_entry("1", product, {"S": 15})
        lines = generate_document_lines(
            [entry], [product], [build_delivery(entry, {"S": 15})], True,
            quantity_threshold=20, surcharge_percent=Decimal("10"),
        )
        assert [s.reason for s in lines.surcharges] == ["Recargo por cantidad pequeña (≤20 unidades)"]
        assert sum(s.amount for s in lines.surcharges) == Decimal("7.50")

    def test_special_client_large_line_uses_dynamic_rule(self):
        product = build_product("2.00")
        entry = build_entry("1", product, {"S": 25})
        lines = generate_document_lines(
            [entry], [product], [build_delivery(entry, {"S": 25})], True,
            quantity_threshold=30, surcharge_percent=Decimal("5"),
        )
        assert len(lines.surcharges) == 1
        assert lines.surcharges[0].reason == "Recargo por cantidad (5%) para pedidos ≤ 30 uds"
        assert lines.surcharges[0].amount == Decimal("2.50")

    def test_threshold_is_inclusive(self):
        product = build_product("5.00")
        entry = build_entry("1", product, {"S": 10, "M": 10})
        deliveries = [build_delivery(entry, {"S": 10, "M": 10})]

        at_threshold = generate_document_lines(
            [entry], [product], deliveries, False, quantity_threshold=20, surcharge_percent=Decimal("12.5")
        )
        assert len(at_threshold.surcharges) == 1
        assert at_threshold.surcharges[0].reason == "Recargo por cantidad (12.5%) para pedidos ≤ 20 uds"
        assert at_threshold.surcharges[0].amount == Decimal("12.50")

        below = generate_document_lines(
            [entry], [product], deliveries, False, quantity_threshold=19, surcharge_percent=Decimal("12.5")
        )
        assert below.surcharges == []

    def test_dynamic_rule_needs_threshold_and_percent(self):
        product = build_product("5.00")
        entry = build_entry("1", product, {"S": 5})
        deliveries = [build_delivery(entry, {"S": 5})]
        assert generate_document_lines([entry], [product], deliveries, False, 0, Decimal("10")).surcharges == []
        assert generate_document_lines([entry], [product], deliveries, False, 10, Decimal("0")).surcharges == []

    def test_pools_accumulate_across_entries(self):
        product = build_product("1.00")
        small = build_entry("1", product, {"S": 10})
        medium = build_entry("2", product, {"S": 40})
        deliveries = [build_delivery(small, {"S": 10}), build_delivery(medium, {"S": 40})]

        lines = generate_document_lines(
            [small, medium], [product], deliveries, True, quantity_threshold=50, surcharge_percent=Decimal("20")
        )
        special, dynamic = lines.surcharges
        assert special.amount == Decimal("1.00")
        assert dynamic.amount == Decimal("8.00")

        totals = calculate_totals(lines.items, lines.surcharges, Decimal("21"))
        assert totals.subtotal == Decimal("50.00")
        assert totals.total_surcharges == Decimal("9.00")
        assert totals.tax_amount == Decimal("12.39")
        assert totals.total == totals.subtotal + totals.total_surcharges + totals.tax_amount


def payment(amount):
    return SimpleNamespace(amount=Decimal(amount))


class TestCalculateTotals:
    def test_total_identity(self):
        items = [SimpleNamespace(total=Decimal("33.33")), SimpleNamespace(total=Decimal("66.67"))]
        surcharges = [{"reason": "x", "amount": "4.35"}]
        result = totals.calculate_totals(items, surcharges, Decimal("21"))

        assert result.subtotal == Decimal("100.00")
        assert result.total_surcharges == Decimal("4.35")
        assert result.tax_amount == totals.money((Decimal("104.35")) * Decimal("0.21"))
        assert result.total == result.subtotal + result.total_surcharges + result.tax_amount

    def test_tax_rounds_half_up(self):
        result = totals.calculate_totals([SimpleNamespace(total=Decimal("0.50"))], [], Decimal("21"))
        # 0.105 -> 0.11
        assert result.tax_amount == Decimal("0.11")

    def test_zero_tax_rate(self):
        result = totals.calculate_totals([SimpleNamespace(total=Decimal("10"))], [], Decimal("0"))
        assert result.tax_amount == Decimal("0.00")
        assert result.total == Decimal("10.00")


class TestPaymentLedger:
    def test_amount_due(self):
        payments = [payment("20.00"), payment("30.50")]
        assert totals.amount_paid(payments) == Decimal("50.50")
        assert totals.amount_due(Decimal("121.00"), payments) == Decimal("70.50")

    def test_derived_paid_within_epsilon(self):
        status = totals.derive_payment_status(
            date(2020, 1, 1), Decimal("100.00"), [payment("99.9995")], today=date(2024, 1, 1)
        )
        assert status == DerivedPaymentStatus.PAID

    def test_derived_overdue_after_thirty_days(self):
        today = date(2024, 6, 30)
        assert totals.derive_payment_status(
            today - timedelta(days=31), Decimal("10"), [], today=today
        ) == DerivedPaymentStatus.OVERDUE
        assert totals.derive_payment_status(
            today - timedelta(days=30), Decimal("10"), [], today=today
        ) == DerivedPaymentStatus.PENDING

    def test_stored_status_is_two_state(self):
        assert totals.stored_payment_status(Decimal("100"), [payment("100")]) == PaymentStatus.PAID
        assert totals.stored_payment_status(Decimal("100"), [payment("60")]) == PaymentStatus.PENDING

    def test_stored_and_derived_are_independent(self):
        """Un documento vencido sigue guardado como pending"""
        today = date(2024, 6, 30)
        old = today - timedelta(days=90)
        assert totals.stored_payment_status(Decimal("100"), []) == PaymentStatus.PENDING
        assert totals.derive_payment_status(old, Decimal("100"), [], today=today) == DerivedPaymentStatus.OVERDUE


class TestValidatePaymentAmount:
    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_rejects_non_positive(self, amount):
        with pytest.raises(ValidationError):
            totals.validate_payment_amount(Decimal(amount), Decimal("50"))

    def test_rejects_over_payment(self):
        with pytest.raises(ValidationError):
            totals.validate_payment_amount(Decimal("50.01"), Decimal("50.00"))

    def test_accepts_exact_balance(self):
        totals.validate_payment_amount(Decimal("50.00"), Decimal("50.00"))
        totals.validate_payment_amount(Decimal("50.0005"), Decimal("50.00"))


def generate(api, headers, entry_ids, document_type="Factura", **extra):
    payload = {"entry_ids": entry_ids, "document_type": document_type, **extra}
    return api.post("/documents/", json=payload, headers=headers)


class TestGenerateDocument:
    def test_worked_example(self, api, admin_headers, delivered_entry):
        response = generate(api, admin_headers, [delivered_entry["id"]], quantity_threshold=0)
        assert response.status_code == 201, response.text
        document = response.json()

        assert document["document_number"] == "FA-0001"
        assert Decimal(document["subtotal"]) == Decimal("100.00")
        assert document["surcharges"] == []
        assert Decimal(document["tax_rate"]) == Decimal("21.00")
        assert Decimal(document["tax_amount"]) == Decimal("21.00")
        assert Decimal(document["total"]) == Decimal("121.00")
        assert document["payment_status"] == "pending"
        assert document["derived_status"] == "pending"
        assert document["created_by"] == "Ana Admin"

        line = document["items"][0]
        assert line["delivered_qty"] == 20
        assert line["pending_qty"] == 0
        assert line["last_delivery_date"] == "2024-03-05"
        assert line["status"] == "delivered"

        entry = api.get(f"/entries/{delivered_entry['id']}", headers=admin_headers).json()
        assert entry["status"] == "invoiced"
        assert entry["invoice_id"] == document["id"]

    def test_numbering_per_type(self, api, admin_headers, client_record, make_product, make_entry, deliver):
        product = make_product()
        numbers = []
        for document_type in ("Prefactura", "Factura", "Prefactura"):
            entry = make_entry(client_record["id"], [(product, {"S": 2})])
            deliver(entry, {0: {"S": 2}})
            numbers.append(generate(api, admin_headers, [entry["id"]], document_type).json()["document_number"])
        assert numbers == ["PR-0001", "FA-0001", "PR-0002"]

    def test_prefactura_marks_pre_invoiced(self, api, admin_headers, delivered_entry):
        generate(api, admin_headers, [delivered_entry["id"]], "Prefactura")
        entry = api.get(f"/entries/{delivered_entry['id']}", headers=admin_headers).json()
        assert entry["status"] == "pre_invoiced"
        assert entry["invoice_id"] is not None

    def test_special_client_surcharge(self, api, admin_headers, special_client_record, make_product, make_entry, deliver):
        entry = make_entry(special_client_record["id"], [(make_product(price="5.00"), {"S": 15})])
        deliver(entry, {0: {"S": 15}})

        document = generate(
            api, admin_headers, [entry["id"]], quantity_threshold=20, surcharge_percent="10"
        ).json()
        assert len(document["surcharges"]) == 1
        assert document["surcharges"][0]["reason"] == "Recargo por cantidad pequeña (≤20 unidades)"
        assert Decimal(document["surcharges"][0]["amount"]) == Decimal("7.50")
        assert Decimal(document["total"]) == Decimal("99.83")

    def test_custom_tax_rate(self, api, admin_headers, delivered_entry):
        document = generate(api, admin_headers, [delivered_entry["id"]], tax_rate="10").json()
        assert Decimal(document["tax_amount"]) == Decimal("10.00")
        assert Decimal(document["total"]) == Decimal("110.00")

    def test_tax_rate_limited_to_cents(self, api, admin_headers, delivered_entry):
        response = generate(api, admin_headers, [delivered_entry["id"]], tax_rate="21.555")
        assert response.status_code == 422
        entry = api.get(f"/entries/{delivered_entry['id']}", headers=admin_headers).json()
        assert entry["invoice_id"] is None

        document = generate(api, admin_headers, [delivered_entry["id"]], tax_rate="21.5").json()
        stored = api.get(f"/documents/{document['id']}", headers=admin_headers).json()
        base = Decimal(stored["subtotal"]) + sum(Decimal(s["amount"]) for s in stored["surcharges"])
        expected = (base * Decimal(stored["tax_rate"]) / 100).quantize(Decimal("0.01"))
        assert Decimal(stored["tax_rate"]) == Decimal("21.50")
        assert Decimal(stored["tax_amount"]) == expected == Decimal("21.50")

    def test_requires_admin(self, api, user_headers, delivered_entry):
        assert generate(api, user_headers, [delivered_entry["id"]]).status_code == 403

    def test_empty_selection(self, api, admin_headers):
        response = generate(api, admin_headers, [])
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_mixed_clients(self, api, admin_headers, client_record, special_client_record, make_product, make_entry, deliver):
        product = make_product()
        first = make_entry(client_record["id"], [(product, {"S": 2})])
        second = make_entry(special_client_record["id"], [(product, {"S": 2})])
        deliver(first, {0: {"S": 2}})
        deliver(second, {0: {"S": 2}})

        response = generate(api, admin_headers, [first["id"], second["id"]])
        assert response.status_code == 422
        assert response.json()["error"] == "MixedClientError"

    def test_no_billable_items(self, api, admin_headers, client_record, make_product, make_entry, deliver):
        entry = make_entry(client_record["id"], [(make_product(price="0"), {"S": 2})])
        deliver(entry, {0: {"S": 2}})

        response = generate(api, admin_headers, [entry["id"]])
        assert response.status_code == 422
        assert response.json()["error"] == "NoBillableItems"

        stored = api.get(f"/entries/{entry['id']}", headers=admin_headers).json()
        assert stored["invoice_id"] is None
        assert stored["status"] == "delivered"
        assert api.get("/documents/", headers=admin_headers).json()["total"] == 0

    def test_undelivered_entry_rejected(self, api, admin_headers, client_record, make_product, make_entry):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 2})])
        response = generate(api, admin_headers, [entry["id"]])
        assert response.status_code == 422

    def test_unknown_entry(self, api, admin_headers):
        response = generate(api, admin_headers, ["00000000-0000-0000-0000-000000000001"])
        assert response.status_code == 404

    def test_entry_invoiced_at_most_once(self, api, admin_headers, delivered_entry):
        assert generate(api, admin_headers, [delivered_entry["id"]], "Prefactura").status_code == 201

        response = generate(api, admin_headers, [delivered_entry["id"]], "Factura")
        assert response.status_code == 409
        assert response.json()["error"] == "ConcurrentInvoicingConflict"
        assert api.get("/documents/", headers=admin_headers).json()["total"] == 1

    def test_lost_claim_rolls_back(self, api, admin_headers, delivered_entry, db_session, monkeypatch):
        """Si otra operación reclama la entrada entre la lectura y el UPDATE, no queda nada a medias"""
        first = generate(api, admin_headers, [delivered_entry["id"]], "Prefactura").json()
        monkeypatch.setattr(state_machine, "check_invoiceable", lambda entry: None)

        response = generate(api, admin_headers, [delivered_entry["id"]], "Factura")
        assert response.status_code == 409
        assert response.json()["error"] == "ConcurrentInvoicingConflict"

        documents = api.get("/documents/", headers=admin_headers).json()
        assert [d["id"] for d in documents["documents"]] == [first["id"]]
        entry = db_session.query(Entry).first()
        assert str(entry.invoice_id) == first["id"]


class TestPreviewAndQuery:
    def test_preview_persists_nothing(self, api, admin_headers, delivered_entry):
        response = api.post("/documents/preview", json={
            "entry_ids": [delivered_entry["id"]], "document_type": "Factura",
        }, headers=admin_headers)
        assert response.status_code == 200
        assert Decimal(response.json()["total"]) == Decimal("121.00")

        entry = api.get(f"/entries/{delivered_entry['id']}", headers=admin_headers).json()
        assert entry["invoice_id"] is None
        assert api.get("/documents/", headers=admin_headers).json()["total"] == 0

    def test_invoiceable_entries(self, api, admin_headers, delivered_entry, client_record, make_product, make_entry):
        make_entry(client_record["id"], [(make_product("OTRA-1"), {"S": 2})])

        listed = api.get("/documents/invoiceable-entries", headers=admin_headers).json()
        assert [e["id"] for e in listed] == [delivered_entry["id"]]

        generate(api, admin_headers, [delivered_entry["id"]])
        assert api.get("/documents/invoiceable-entries", headers=admin_headers).json() == []

    def test_overdue_is_derived(self, api, admin_headers, delivered_entry):
        issue_date = (date.today() - timedelta(days=45)).isoformat()
        document = generate(api, admin_headers, [delivered_entry["id"]], issue_date=issue_date).json()

        assert document["payment_status"] == "pending"
        assert document["derived_status"] == "overdue"

        overdue = api.get("/documents/", params={"derived_status": "overdue"}, headers=admin_headers).json()
        assert overdue["total"] == 1
        pending = api.get("/documents/", params={"derived_status": "pending"}, headers=admin_headers).json()
        assert pending["total"] == 0


class TestPayments:
    def test_partial_then_full_payment(self, api, admin_headers, delivered_entry):
        document = generate(api, admin_headers, [delivered_entry["id"]]).json()
        url = f"/documents/{document['id']}/payments"

        first = api.post(url, json={"amount": "21.00", "method": "cash"}, headers=admin_headers)
        assert first.status_code == 201
        current = api.get(f"/documents/{document['id']}", headers=admin_headers).json()
        assert Decimal(current["amount_due"]) == Decimal("100.00")
        assert current["payment_status"] == "pending"

        assert api.post(url, json={"amount": "100.01"}, headers=admin_headers).status_code == 422
        assert api.post(url, json={"amount": "0"}, headers=admin_headers).status_code == 422

        assert api.post(url, json={"amount": "100.00"}, headers=admin_headers).status_code == 201
        current = api.get(f"/documents/{document['id']}", headers=admin_headers).json()
        assert current["payment_status"] == "paid"
        assert current["derived_status"] == "paid"
        assert Decimal(current["amount_paid"]) == Decimal("121.00")

        payments = api.get(url, headers=admin_headers).json()
        assert sorted(Decimal(p["amount"]) for p in payments) == [Decimal("21.00"), Decimal("100.00")]

    def test_sub_cent_amount_rejected(self, api, admin_headers, delivered_entry):
        document = generate(api, admin_headers, [delivered_entry["id"]]).json()
        url = f"/documents/{document['id']}/payments"

        assert api.post(url, json={"amount": "0.004"}, headers=admin_headers).status_code == 422
        assert api.post(url, json={"amount": "10.005"}, headers=admin_headers).status_code == 422
        assert api.post(url, json={"amount": "0.00"}, headers=admin_headers).status_code == 422
        assert api.get(url, headers=admin_headers).json() == []

    def test_payment_on_missing_document(self, api, admin_headers):
        response = api.post(
            "/documents/00000000-0000-0000-0000-000000000001/payments",
            json={"amount": "1.00"},
            headers=admin_headers,
        )
        assert response.status_code == 404


class TestReversal:
    def test_round_trip(self, api, admin_headers, client_record, make_product, make_entry, deliver):
        product = make_product()
        entries = []
        for _ in range(2):
            entry = make_entry(client_record["id"], [(product, {"S": 3})])
            deliver(entry, {0: {"S": 3}})
            entries.append(entry)

        document = generate(api, admin_headers, [e["id"] for e in entries]).json()
        assert api.delete(f"/documents/{document['id']}", headers=admin_headers).status_code == 204

        for entry in entries:
            stored = api.get(f"/entries/{entry['id']}", headers=admin_headers).json()
            assert stored["status"] == "delivered"
            assert stored["invoice_id"] is None
        assert api.get(f"/documents/{document['id']}", headers=admin_headers).status_code == 404

        again = generate(api, admin_headers, [e["id"] for e in entries])
        assert again.status_code == 201

    def test_entry_linked_elsewhere_is_left_alone(self, api, admin_headers, delivered_entry, db_session):
        document = generate(api, admin_headers, [delivered_entry["id"]]).json()
        other_document_id = uuid4()

        entry = db_session.query(Entry).first()
        entry.invoice_id = other_document_id
        db_session.commit()

        assert api.delete(f"/documents/{document['id']}", headers=admin_headers).status_code == 204
        stored = api.get(f"/entries/{delivered_entry['id']}", headers=admin_headers).json()
        assert stored["invoice_id"] == str(other_document_id)
        assert stored["status"] == "invoiced"

    def test_deleted_entry_is_skipped(self, api, admin_headers, delivered_entry):
        document = generate(api, admin_headers, [delivered_entry["id"]]).json()
        assert api.delete(f"/entries/{delivered_entry['id']}", headers=admin_headers).status_code == 204
        assert api.delete(f"/documents/{document['id']}", headers=admin_headers).status_code == 204

    def test_failed_reversal_changes_nothing(self, api, admin_headers, client_record, make_product, make_entry, deliver, monkeypatch):
        product = make_product()
        entries = []
        for _ in range(2):
            entry = make_entry(client_record["id"], [(product, {"S": 3})])
            deliver(entry, {0: {"S": 3}})
            entries.append(entry)
        document = generate(api, admin_headers, [e["id"] for e in entries]).json()

        original = ReversalCoordinator._reverse_entries

        def reverse_then_fail(self, doc):
            original(self, doc)
            # Las entradas ya se escribieron en la transacción antes del fallo
            self.db.flush()
            raise RuntimeError("fallo al borrar el documento")

        monkeypatch.setattr(ReversalCoordinator, "_reverse_entries", reverse_then_fail)
        assert api.delete(f"/documents/{document['id']}", headers=admin_headers).status_code == 500

        assert api.get(f"/documents/{document['id']}", headers=admin_headers).status_code == 200
        for entry in entries:
            stored = api.get(f"/entries/{entry['id']}", headers=admin_headers).json()
            assert stored["status"] == "invoiced"
            assert stored["invoice_id"] == document["id"]

    def test_bulk_delete_is_atomic_per_document(self, api, admin_headers, client_record, make_product, make_entry, deliver, monkeypatch):
        product = make_product()
        documents, entries = [], []
        for _ in range(2):
            entry = make_entry(client_record["id"], [(product, {"S": 3})])
            deliver(entry, {0: {"S": 3}})
            entries.append(entry)
            documents.append(generate(api, admin_headers, [entry["id"]]).json())
        kept_id = documents[1]["id"]

        original = ReversalCoordinator._reverse_entries

        def fail_for_second(self, doc):
            reverted = original(self, doc)
            if str(doc.id) == kept_id:
                self.db.flush()
                raise RuntimeError("fallo al borrar el documento")
            return reverted

        monkeypatch.setattr(ReversalCoordinator, "_reverse_entries", fail_for_second)
        result = api.post(
            "/documents/bulk-delete",
            json={"document_ids": [d["id"] for d in documents]},
            headers=admin_headers,
        ).json()
        assert result["deleted"] == [documents[0]["id"]]
        assert [f["document_id"] for f in result["failed"]] == [kept_id]

        first = api.get(f"/entries/{entries[0]['id']}", headers=admin_headers).json()
        assert first["status"] == "delivered"
        assert first["invoice_id"] is None

        second = api.get(f"/entries/{entries[1]['id']}", headers=admin_headers).json()
        assert second["status"] == "invoiced"
        assert second["invoice_id"] == kept_id
        assert api.get(f"/documents/{kept_id}", headers=admin_headers).status_code == 200

    def test_bulk_delete(self, api, admin_headers, delivered_entry):
        document = generate(api, admin_headers, [delivered_entry["id"]]).json()
        missing = "00000000-0000-0000-0000-000000000001"

        result = api.post("/documents/bulk-delete", json={"document_ids": [document["id"], missing]}, headers=admin_headers).json()
        assert result["deleted"] == [document["id"]]
        assert [f["document_id"] for f in result["failed"]] == [missing]

        stored = api.get(f"/entries/{delivered_entry['id']}", headers=admin_headers).json()
        assert stored["status"] == "delivered"

    def test_delete_missing_document(self, api, admin_headers):
        response = api.delete("/documents/00000000-0000-0000-0000-000000000001", headers=admin_headers)
        assert response.status_code == 404
