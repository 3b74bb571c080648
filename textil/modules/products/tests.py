"""
Tests del catálogo de productos.
"""


class TestProducts:
    def test_list_by_client(self, api, user_headers, client_record, make_product):
        own = make_product("CLI-1", client_id=client_record["id"])
        make_product("GEN-1")

        listed = api.get("/products/", params={"client_id": client_record["id"]}, headers=user_headers).json()
        assert [p["id"] for p in listed["products"]] == [own["id"]]

    def test_negative_price_rejected(self, api, admin_headers):
        response = api.post("/products/", json={"reference": "X", "model_name": "X", "price": "-1"}, headers=admin_headers)
        assert response.status_code == 422

    def test_zero_price_needs_pricing(self, make_product):
        assert make_product("SIN-PRECIO", price="0")["needs_pricing"] is True
        assert make_product("CON-PRECIO", price="1")["needs_pricing"] is False

    def test_missing_product(self, api, user_headers):
        response = api.get("/products/00000000-0000-0000-0000-000000000001", headers=user_headers)
        assert response.status_code == 404
