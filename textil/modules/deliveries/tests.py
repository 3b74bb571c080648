"""
Tests del módulo de entregas

- Agregación de entregas sobre objetos ORM sin persistir
- API: registro validado contra lo pendiente, avance de estado y consultas
"""
from datetime import date
from uuid import uuid4

from textil.modules.deliveries import aggregator
from textil.modules.deliveries.models import Delivery, DeliveryItem
from textil.modules.entries.models import Entry, EntryItem, EntryStatus


# ===== FIXTURES =====

def build_entry(code="100", *item_sizes):
    entry = Entry(id=uuid4(), code=code, client_id=uuid4(), status=EntryStatus.RECEIVED)
    entry.items = [
        EntryItem(id=uuid4(), product_id=uuid4(), product_ref=f"REF-{i}", size_quantities=sizes)
        for i, sizes in enumerate(item_sizes)
    ]
    return entry


def build_delivery(entry_code, delivery_date, *lines):
    delivery = Delivery(id=uuid4(), entry_code=entry_code, delivery_date=delivery_date, who_delivered="Pedro")
    delivery.items = [
        DeliveryItem(id=uuid4(), entry_id=uuid4(), entry_item_id=item.id, product_id=item.product_id, size_quantities=sizes)
        for item, sizes in lines
    ]
    return delivery


class TestDeliveryAggregator:
    def test_example_partial_then_complete(self):
        entry = build_entry("100", {"S": 10, "M": 10})
        item = entry.items[0]
        d1 = build_delivery("100", date(2024, 3, 1), (item, {"S": 10}))

        assert aggregator.delivered_qty(entry, item, [d1]) == 10
        assert aggregator.pending_qty(entry, item, [d1]) == 10

        d2 = build_delivery("100", date(2024, 3, 5), (item, {"M": 10}))
        assert aggregator.delivered_qty(entry, item, [d1, d2]) == 20
        assert aggregator.pending_qty(entry, item, [d1, d2]) == 0
        assert aggregator.last_delivery_date(entry, [d2, d1]) == date(2024, 3, 5)

    def test_delivered_by_size(self):
        entry = build_entry("100", {"S": 10, "M": 10})
        item = entry.items[0]
        deliveries = [
            build_delivery("100", date(2024, 3, 1), (item, {"S": 4})),
            build_delivery("100", date(2024, 3, 2), (item, {"S": 3, "M": 1})),
        ]
        assert aggregator.delivered_by_size(entry, item, "S", deliveries) == 7
        assert aggregator.delivered_by_size(entry, item, "M", deliveries) == 1
        assert aggregator.delivered_by_size(entry, item, "L", deliveries) == 0
        assert aggregator.delivered_sizes(entry, item, deliveries) == {"S": 7, "M": 1}

    def test_matches_by_exact_entry_code(self):
        """Las entregas de otros códigos se ignoran, sin normalizar mayúsculas"""
        entry = build_entry("A-7", {"S": 5})
        item = entry.items[0]
        deliveries = [
            build_delivery("a-7", date(2024, 1, 1), (item, {"S": 5})),
            build_delivery("999", date(2024, 1, 1), (item, {"S": 5})),
        ]
        assert aggregator.delivered_qty(entry, item, deliveries) == 0
        assert aggregator.last_delivery_date(entry, deliveries) is None
        assert aggregator.deliveries_for_entry(entry, deliveries) == []

    def test_ignores_other_items(self):
        entry = build_entry("100", {"S": 5}, {"M": 5})
        first, second = entry.items
        delivery = build_delivery("100", date(2024, 1, 1), (second, {"M": 2}))
        assert aggregator.delivered_qty(entry, first, [delivery]) == 0
        assert aggregator.delivered_qty(entry, second, [delivery]) == 2
        assert aggregator.total_delivered(entry, [delivery]) == 2
        assert aggregator.total_ordered(entry) == 10

    def test_entry_without_items(self):
        entry = build_entry("100")
        aggregate = aggregator.aggregate_entry(entry, [])
        assert aggregate.total_ordered == 0
        assert aggregate.total_delivered == 0
        assert aggregate.total_pending == 0
        assert aggregate.last_delivery_date is None
        assert aggregate.items == []

    def test_over_delivery_clamps_pending(self, caplog):
        entry = build_entry("100", {"S": 5})
        item = entry.items[0]
        delivery = build_delivery("100", date(2024, 1, 1), (item, {"S": 8}))

        assert aggregator.pending_qty(entry, item, [delivery]) == 0
        assert "exceeds ordered" in caplog.text

        aggregate = aggregator.aggregate_entry(entry, [delivery])
        assert aggregate.total_delivered == 8
        assert aggregate.total_pending == 0
        assert aggregate.items[0].pending_by_size == {}

    def test_aggregation_is_repeatable(self):
        entry = build_entry("100", {"S": 10, "M": 4})
        item = entry.items[0]
        deliveries = [build_delivery("100", date(2024, 2, 1), (item, {"S": 6, "M": 4}))]

        first = aggregator.aggregate_entry(entry, deliveries)
        second = aggregator.aggregate_entry(entry, deliveries)
        assert first == second
        assert first.items[0].pending_by_size == {"S": 4}

    def test_last_delivery_reports_who_delivered(self):
        entry = build_entry("100", {"S": 10})
        item = entry.items[0]
        older = build_delivery("100", date(2024, 1, 1), (item, {"S": 1}))
        newer = build_delivery("100", date(2024, 1, 9), (item, {"S": 1}))
        newer.who_delivered = "Lucia"
        assert aggregator.last_delivery(entry, [older, newer]).who_delivered == "Lucia"


class TestRecordDelivery:
    def test_partial_then_complete(self, api, user_headers, client_record, make_product, make_entry, deliver):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 10, "M": 10})])

        first = deliver(entry, {0: {"S": 10}}, date(2024, 3, 1))
        assert first["entry_status"] == "in_process"
        assert first["total_delivered"] == 10
        assert first["total_pending"] == 10
        assert first["delivery"]["entry_code"] == entry["code"]
        assert first["delivery"]["who_delivered"] == "Pedro Operario"

        second = deliver(entry, {0: {"M": 10}}, date(2024, 3, 5))
        assert second["entry_status"] == "delivered"
        assert second["total_delivered"] == 20
        assert second["total_pending"] == 0
        assert second["entry_version"] > first["entry_version"]

        stored = api.get(f"/entries/{entry['id']}", headers=user_headers).json()
        assert stored["status"] == "delivered"

    def test_over_delivery_rejected(self, api, user_headers, client_record, make_product, make_entry, deliver):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 10})])
        deliver(entry, {0: {"S": 8}})

        body = deliver(entry, {0: {"S": 3}}, expected_status=422)
        assert "quedan 2" in body["detail"]

        listed = api.get("/deliveries/", params={"entry_code": entry["code"]}, headers=user_headers).json()
        assert listed["total"] == 1

    def test_size_not_ordered_rejected(self, client_record, make_product, make_entry, deliver):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 10})])
        deliver(entry, {0: {"M": 1}}, expected_status=422)

    def test_empty_delivery_rejected(self, client_record, make_product, make_entry, deliver):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 10})])
        deliver(entry, {0: {"S": 0}}, expected_status=422)

    def test_unknown_line_rejected(self, api, user_headers, client_record, make_product, make_entry):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 10})])
        response = api.post("/deliveries/", json={
            "entry_id": entry["id"],
            "items": [{"entry_item_id": "00000000-0000-0000-0000-000000000001", "size_quantities": {"S": 1}}],
        }, headers=user_headers)
        assert response.status_code == 422

    def test_unknown_entry(self, api, user_headers):
        response = api.post("/deliveries/", json={
            "entry_id": "00000000-0000-0000-0000-000000000001",
            "items": [{"entry_item_id": "00000000-0000-0000-0000-000000000002", "size_quantities": {"S": 1}}],
        }, headers=user_headers)
        assert response.status_code == 404

    def test_stale_version_rejected(self, api, user_headers, client_record, make_product, make_entry, deliver):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 10})])
        deliver(entry, {0: {"S": 1}})

        response = api.post("/deliveries/", json={
            "entry_id": entry["id"],
            "expected_version": entry["version_id"],
            "items": [{"entry_item_id": entry["items"][0]["id"], "size_quantities": {"S": 1}}],
        }, headers=user_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "ConcurrentModificationError"

    def test_invoiced_entry_rejects_deliveries(self, api, admin_headers, client_record, make_product, make_entry, deliver):
        entry = make_entry(client_record["id"], [(make_product(), {"S": 10, "M": 5})])
        deliver(entry, {0: {"S": 10}})
        api.patch(f"/entries/{entry['id']}", json={"status": "delivered"}, headers=admin_headers)
        created = api.post("/documents/", json={"entry_ids": [entry["id"]], "document_type": "Factura"}, headers=admin_headers)
        assert created.status_code == 201

        body = deliver(entry, {0: {"M": 5}}, expected_status=409)
        assert body["error"] == "EntryLockedError"

    def test_quantities_are_conserved(self, api, user_headers, client_record, make_product, make_entry):
        """Ninguna secuencia de entregas válidas deja lo entregado por encima de lo pedido"""
        entry = make_entry(client_record["id"], [(make_product(), {"S": 4, "M": 3})])
        statuses = []
        for sizes in ({"S": 1}, {"S": 2, "M": 1}, {"S": 2}, {"M": 2}, {"M": 1}, {"S": 1}):
            response = api.post("/deliveries/", json={
                "entry_id": entry["id"],
                "items": [{"entry_item_id": entry["items"][0]["id"], "size_quantities": sizes}],
            }, headers=user_headers)
            statuses.append(response.status_code)

        assert statuses == [201, 201, 422, 201, 422, 201]

        summary = api.get(f"/entries/{entry['id']}/summary", headers=user_headers).json()
        assert summary["total_delivered"] == summary["total_ordered"] == 7
        assert summary["total_pending"] == 0
        assert summary["can_receive_deliveries"] is False


class TestQueryDeliveries:
    def test_list_and_get(self, api, user_headers, client_record, make_product, make_entry, deliver):
        product = make_product()
        first = make_entry(client_record["id"], [(product, {"S": 10})])
        second = make_entry(client_record["id"], [(product, {"S": 10})])
        recorded = deliver(first, {0: {"S": 2}})
        deliver(second, {0: {"S": 2}})

        listed = api.get("/deliveries/", params={"entry_code": first["code"]}, headers=user_headers).json()
        assert [d["id"] for d in listed["deliveries"]] == [recorded["delivery"]["id"]]

        fetched = api.get(f"/deliveries/{recorded['delivery']['id']}", headers=user_headers).json()
        assert fetched["items"][0]["size_quantities"] == {"S": 2}
