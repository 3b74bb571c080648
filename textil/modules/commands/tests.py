"""
Tests del endpoint de comandos tipados.
"""
from decimal import Decimal


def run(api, headers, action, payload):
    return api.post("/commands/", json={"command": {"action": action, "payload": payload}}, headers=headers)


class TestCommands:
    def test_full_cycle(self, api, user_headers, admin_headers, client_record, make_product):
        product = make_product(price="5.00")

        created = run(api, user_headers, "create_entry", {
            "client_id": client_record["id"],
            "items": [{"product_id": product["id"], "size_quantities": {"S": 10, "M": 10}}],
        })
        assert created.status_code == 200, created.text
        entry = created.json()["entry"]
        assert entry["status"] == "received"

        delivered = run(api, user_headers, "record_delivery", {
            "entry_id": entry["id"],
            "items": [{"entry_item_id": entry["items"][0]["id"], "size_quantities": {"S": 10, "M": 10}}],
        })
        assert delivered.json()["delivery"]["entry_status"] == "delivered"

        invoiced = run(api, admin_headers, "generate_invoice", {
            "entry_ids": [entry["id"]],
            "document_type": "Factura",
        })
        document = invoiced.json()["document"]
        assert Decimal(document["total"]) == Decimal("121.00")

        deleted = run(api, admin_headers, "delete_document", {"document_id": document["id"]})
        assert deleted.json()["deleted_document_id"] == document["id"]

        stored = api.get(f"/entries/{entry['id']}", headers=user_headers).json()
        assert stored["status"] == "delivered"
        assert stored["invoice_id"] is None

    def test_invoicing_commands_require_admin(self, api, user_headers, delivered_entry):
        response = run(api, user_headers, "generate_invoice", {
            "entry_ids": [delivered_entry["id"]],
            "document_type": "Factura",
        })
        assert response.status_code == 403
        assert response.json()["error"] == "ForbiddenError"

    def test_unknown_action_rejected(self, api, admin_headers):
        assert run(api, admin_headers, "void_invoice", {}).status_code == 422

    def test_payload_is_typed(self, api, admin_headers):
        response = run(api, admin_headers, "delete_document", {"document_id": "no-es-un-uuid"})
        assert response.status_code == 422

    def test_domain_errors_pass_through(self, api, admin_headers):
        response = run(api, admin_headers, "generate_invoice", {"entry_ids": [], "document_type": "Factura"})
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"
