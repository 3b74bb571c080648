"""
Tests del registro de clientes.
"""


class TestClients:
    def test_duplicate_name_rejected(self, api, admin_headers, client_record):
        response = api.post("/clients/", json={"name": client_record["name"]}, headers=admin_headers)
        assert response.status_code == 422

    def test_only_admin_registers_clients(self, api, user_headers):
        assert api.post("/clients/", json={"name": "Nuevo"}, headers=user_headers).status_code == 403

    def test_get_and_list(self, api, user_headers, client_record):
        assert api.get(f"/clients/{client_record['id']}", headers=user_headers).json()["name"] == "Confecciones Norte"
        assert api.get("/clients/", headers=user_headers).json()["total"] == 1
