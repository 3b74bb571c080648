"""
Tests del módulo de entradas

- Libro de cantidades por talla (funciones puras)
- Máquina de estados: avance automático, edición manual y bloqueo
- API: alta, consulta, paginación, edición y estado manual
"""
import pytest
from uuid import uuid4

from textil.common.exceptions import (
    ConcurrentInvoicingConflict,
    EntryLockedError,
    ForbiddenError,
    ValidationError,
)
from textil.core.config import settings
from textil.modules.documents.models import DocumentType
from textil.modules.entries import ledger, state_machine
from textil.modules.entries.models import Entry, EntryStatus


class TestTotalUnits:
    def test_sums_all_sizes(self):
        assert ledger.total_units({"S": 10, "M": 5, "XL": 1}) == 16

    def test_missing_values_count_as_zero(self):
        assert ledger.total_units(None) == 0
        assert ledger.total_units({}) == 0
        assert ledger.total_units({"S": None, "M": 3}) == 3

    def test_negative_values_are_clamped(self):
        assert ledger.total_units({"S": -4, "M": 2}) == 2

    def test_units_for_size(self):
        assert ledger.units_for_size({"S": 4}, "S") == 4
        assert ledger.units_for_size({"S": 4}, "M") == 0
        assert ledger.units_for_size(None, "S") == 0


class TestSubtract:
    def test_pending_quantity(self):
        assert ledger.subtract(20, 5) == 15

    def test_never_negative(self):
        """Entregar de más deja el pendiente en 0, no en negativo"""
        assert ledger.subtract(10, 12) == 0
        assert ledger.subtract(0, 0) == 0


class TestMergeAndClean:
    def test_merge_adds_per_size(self):
        assert ledger.merge({"S": 2, "M": 1}, {"S": 3}, None) == {"S": 5, "M": 1}

    def test_merge_skips_empty_sizes(self):
        assert ledger.merge({"S": 0}, {"M": None}) == {}

    def test_clean_drops_non_positive(self):
        assert ledger.clean({"S": 0, "M": -1, "L": 3, "XL": None}) == {"L": 3}


class TestValidateNonNegative:
    def test_returns_clean_map(self):
        assert ledger.validate_non_negative({"S": 3, "M": 0}, ["S", "M"]) == {"S": 3}

    def test_rejects_negative(self):
        with pytest.raises(ValidationError):
            ledger.validate_non_negative({"S": -1})

    def test_rejects_non_integer(self):
        with pytest.raises(ValidationError):
            ledger.validate_non_negative({"S": 1.5})
        with pytest.raises(ValidationError):
            ledger.validate_non_negative({"S": True})

    def test_rejects_unknown_size(self):
        with pytest.raises(ValidationError):
            ledger.validate_non_negative({"XXS": 1}, ["S", "M"])


def build_entry(status, invoice_id=None):
    return Entry(id=uuid4(), code="100", client_id=uuid4(), status=status, invoice_id=invoice_id)


class TestStatusAfterDelivery:
    def test_partial_delivery_moves_to_in_process(self):
        assert state_machine.status_after_delivery(EntryStatus.RECEIVED, 20, 10) == EntryStatus.IN_PROCESS

    def test_complete_delivery_moves_to_delivered(self):
        assert state_machine.status_after_delivery(EntryStatus.IN_PROCESS, 20, 20) == EntryStatus.DELIVERED
        assert state_machine.status_after_delivery(EntryStatus.RECEIVED, 20, 20) == EntryStatus.DELIVERED

    def test_nothing_delivered_stays_received(self):
        assert state_machine.status_after_delivery(EntryStatus.RECEIVED, 20, 0) == EntryStatus.RECEIVED

    @pytest.mark.parametrize("status", [EntryStatus.DELIVERED, EntryStatus.PRE_INVOICED, EntryStatus.INVOICED])
    def test_later_statuses_are_not_touched(self, status):
        assert state_machine.status_after_delivery(status, 20, 5) == status


class TestManualTransition:
    def test_options(self):
        assert state_machine.manual_status_options(EntryStatus.RECEIVED) == {
            EntryStatus.RECEIVED, EntryStatus.DELIVERED, EntryStatus.PRE_INVOICED
        }

    def test_admin_can_mark_delivered(self):
        entry = build_entry(EntryStatus.IN_PROCESS)
        assert state_machine.check_manual_transition(entry, EntryStatus.DELIVERED, "admin") == EntryStatus.DELIVERED

    def test_non_admin_is_forbidden(self):
        entry = build_entry(EntryStatus.IN_PROCESS)
        with pytest.raises(ForbiddenError):
            state_machine.check_manual_transition(entry, EntryStatus.DELIVERED, "user")

    def test_same_status_needs_no_privilege(self):
        entry = build_entry(EntryStatus.IN_PROCESS)
        assert state_machine.check_manual_transition(entry, EntryStatus.IN_PROCESS, "user") == EntryStatus.IN_PROCESS

    def test_jump_outside_options_rejected(self):
        entry = build_entry(EntryStatus.DELIVERED)
        with pytest.raises(ValidationError):
            state_machine.check_manual_transition(entry, EntryStatus.INVOICED, "admin")
        with pytest.raises(ValidationError):
            state_machine.check_manual_transition(entry, EntryStatus.RECEIVED, "admin")

    def test_locked_entry_rejected(self):
        entry = build_entry(EntryStatus.INVOICED, invoice_id=uuid4())
        with pytest.raises(EntryLockedError):
            state_machine.check_manual_transition(entry, EntryStatus.DELIVERED, "admin")


class TestInvoicing:
    def test_status_for_document(self):
        assert state_machine.status_for_document(DocumentType.FACTURA) == EntryStatus.INVOICED
        assert state_machine.status_for_document(DocumentType.PREFACTURA) == EntryStatus.PRE_INVOICED

    def test_reversal_goes_back_to_delivered(self):
        assert state_machine.REVERSAL_STATUS == EntryStatus.DELIVERED

    def test_locked_entry_is_not_invoiceable(self):
        entry = build_entry(EntryStatus.PRE_INVOICED, invoice_id=uuid4())
        assert state_machine.is_locked(entry)
        with pytest.raises(ConcurrentInvoicingConflict):
            state_machine.check_invoiceable(entry)

    def test_undelivered_entry_is_not_invoiceable(self):
        with pytest.raises(ValidationError):
            state_machine.check_invoiceable(build_entry(EntryStatus.IN_PROCESS))

    @pytest.mark.parametrize("status", [EntryStatus.DELIVERED, EntryStatus.PRE_INVOICED])
    def test_invoiceable(self, status):
        state_machine.check_invoiceable(build_entry(status))


class TestCreateEntry:
    def test_codes_are_sequential(self, client_record, make_product, make_entry):
        product = make_product()
        first = make_entry(client_record["id"], [(product, {"S": 5})])
        second = make_entry(client_record["id"], [(product, {"M": 5})])

        assert first["code"] == "1"
        assert second["code"] == "2"
        assert first["status"] == "received"
        assert first["who_input"] == "Pedro Operario"
        assert first["invoice_id"] is None

    def test_next_code_skips_non_numeric(self, api, user_headers, client_record, make_product, make_entry):
        product = make_product()
        make_entry(client_record["id"], [(product, {"S": 5})], code="41")
        make_entry(client_record["id"], [(product, {"S": 5})], code="ESP-1")

        response = api.get("/entries/next-code", headers=user_headers)
        assert response.json() == {"code": "42"}

    def test_duplicate_code_rejected(self, api, user_headers, client_record, make_product, make_entry):
        product = make_product()
        make_entry(client_record["id"], [(product, {"S": 5})], code="7")

        response = api.post("/entries/", json={
            "code": "7",
            "client_id": client_record["id"],
            "items": [{"product_id": product["id"], "size_quantities": {"S": 1}}],
        }, headers=user_headers)
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_product_resolved_by_reference_ignoring_case(self, api, user_headers, client_record, make_product):
        product = make_product("CAM-001")
        response = api.post("/entries/", json={
            "client_id": client_record["id"],
            "items": [{"product_ref": "cam-001", "size_quantities": {"S": 3, "M": 0}}],
        }, headers=user_headers)

        assert response.status_code == 201
        item = response.json()["items"][0]
        assert item["product_id"] == product["id"]
        assert item["product_ref"] == "CAM-001"
        assert item["size_quantities"] == {"S": 3}

    def test_unknown_reference_rejected(self, api, user_headers, client_record):
        response = api.post("/entries/", json={
            "client_id": client_record["id"],
            "items": [{"product_ref": "NUEVO-9", "size_quantities": {"S": 3}}],
        }, headers=user_headers)
        assert response.status_code == 422

    def test_unknown_reference_creates_unpriced_product(self, api, user_headers, client_record):
        response = api.post("/entries/", json={
            "client_id": client_record["id"],
            "create_missing_products": True,
            "items": [{"product_ref": "NUEVO-9", "description": "Polo", "size_quantities": {"S": 3}}],
        }, headers=user_headers)
        assert response.status_code == 201

        products = api.get("/products/", headers=user_headers).json()["products"]
        assert len(products) == 1
        assert products[0]["reference"] == "NUEVO-9"
        assert products[0]["needs_pricing"] is True
        assert products[0]["category"] == "Uncategorized"
        assert products[0]["code"] == "N/A"

    def test_unknown_size_rejected(self, api, user_headers, client_record, make_product):
        product = make_product()
        response = api.post("/entries/", json={
            "client_id": client_record["id"],
            "items": [{"product_id": product["id"], "size_quantities": {"XXXS": 3}}],
        }, headers=user_headers)
        assert response.status_code == 422

    def test_negative_quantity_rejected(self, api, user_headers, client_record, make_product):
        product = make_product()
        response = api.post("/entries/", json={
            "client_id": client_record["id"],
            "items": [{"product_id": product["id"], "size_quantities": {"S": -3}}],
        }, headers=user_headers)
        assert response.status_code == 422

    def test_unknown_client_not_found(self, api, user_headers, make_product):
        product = make_product()
        response = api.post("/entries/", json={
            "client_id": "00000000-0000-0000-0000-000000000001",
            "items": [{"product_id": product["id"], "size_quantities": {"S": 1}}],
        }, headers=user_headers)
        assert response.status_code == 404

    def test_requires_token(self, api, client_record):
        response = api.post("/entries/", json={"client_id": client_record["id"], "items": []})
        assert response.status_code in (401, 403)


class TestQueryEntries:
    def test_list_by_status_group(self, api, user_headers, client_record, make_product, make_entry, deliver):
        product = make_product()
        pending = make_entry(client_record["id"], [(product, {"S": 5})])
        done = make_entry(client_record["id"], [(product, {"S": 5})])
        deliver(done, {0: {"S": 5}})

        response = api.get("/entries/", params={"status_group": "pending"}, headers=user_headers)
        assert [e["id"] for e in response.json()["entries"]] == [pending["id"]]

        response = api.get("/entries/", params={"status_group": "delivered"}, headers=user_headers)
        assert [e["id"] for e in response.json()["entries"]] == [done["id"]]

    def test_entries_are_tenant_scoped(self, api, make_headers, client_record, make_product, make_entry):
        make_entry(client_record["id"], [(make_product(), {"S": 5})])
        other_tenant = make_headers("admin", "Otra Empresa", tenant="11111111-1111-1111-1111-111111111111")

        assert api.get("/entries/", headers=other_tenant).json()["total"] == 0

    def test_summary(self, api, user_headers, client_record, make_product, make_entry, deliver):
        product = make_product()
        entry = make_entry(client_record["id"], [(product, {"S": 10, "M": 10})])
        deliver(entry, {0: {"S": 10}})

        summary = api.get(f"/entries/{entry['id']}/summary", headers=user_headers).json()
        assert summary["total_ordered"] == 20
        assert summary["total_delivered"] == 10
        assert summary["total_pending"] == 10
        assert summary["last_delivered_by"] == "Pedro Operario"
        assert summary["can_receive_deliveries"] is True
        assert summary["items"][0]["pending_by_size"] == {"M": 10}

    def test_missing_entry(self, api, user_headers):
        response = api.get("/entries/00000000-0000-0000-0000-000000000001", headers=user_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_pagination_limits(self, api, user_headers, client_record, make_product, make_entry):
        product = make_product()
        for _ in range(3):
            make_entry(client_record["id"], [(product, {"S": 1})])

        page = api.get("/entries/", headers=user_headers).json()
        assert page["limit"] == settings.DEFAULT_PAGE_SIZE
        assert page["total"] == 3

        page = api.get("/entries/", params={"limit": 2, "offset": 2}, headers=user_headers).json()
        assert len(page["entries"]) == 1

        too_big = api.get("/entries/", params={"limit": settings.MAX_PAGE_SIZE + 1}, headers=user_headers)
        assert too_big.status_code == 422


class TestUpdateEntry:
    def test_manual_status_requires_admin(self, api, user_headers, client_record, make_product, make_entry):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 5})])
        response = api.patch(f"/entries/{entry['id']}", json={"status": "delivered"}, headers=user_headers)
        assert response.status_code == 403

    def test_admin_manual_status(self, api, admin_headers, client_record, make_product, make_entry):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 5})])
        response = api.patch(f"/entries/{entry['id']}", json={"status": "delivered"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "delivered"

    def test_manual_status_cannot_invoice(self, api, admin_headers, client_record, make_product, make_entry):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 5})])
        response = api.patch(f"/entries/{entry['id']}", json={"status": "invoiced"}, headers=admin_headers)
        assert response.status_code == 422

    def test_edit_items_keeps_line_ids(self, api, user_headers, client_record, make_product, make_entry):
        product = make_product()
        entry = make_entry(client_record["id"], [(product, {"S": 5})])
        item_id = entry["items"][0]["id"]

        response = api.patch(f"/entries/{entry['id']}", json={"items": [
            {"id": item_id, "product_id": product["id"], "size_quantities": {"S": 0, "M": 8}},
            {"product_id": product["id"], "size_quantities": {"L": 2}},
        ]}, headers=user_headers)

        assert response.status_code == 200
        items = response.json()["items"]
        assert items[0]["id"] == item_id
        assert items[0]["size_quantities"] == {"M": 8}
        assert items[1]["size_quantities"] == {"L": 2}

    def test_code_frozen_after_deliveries(self, api, user_headers, client_record, make_product, make_entry, deliver):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 5})])
        deliver(entry, {0: {"S": 1}})
        response = api.patch(f"/entries/{entry['id']}", json={"code": "900"}, headers=user_headers)
        assert response.status_code == 422

    def test_delete_requires_admin(self, api, user_headers, admin_headers, client_record, make_product, make_entry):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 5})])
        assert api.delete(f"/entries/{entry['id']}", headers=user_headers).status_code == 403
        assert api.delete(f"/entries/{entry['id']}", headers=admin_headers).status_code == 204
        assert api.get(f"/entries/{entry['id']}", headers=admin_headers).status_code == 404
