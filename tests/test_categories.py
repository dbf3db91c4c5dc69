"""Tests for the /api/categories endpoints."""

MISSING_ID = "f" * 32


def _create(client, headers, name="Groceries"):
    response = client.post("/api/categories", json={"name": name}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCategories:
    """CRUD and owner scoping for categories."""

    def test_create_and_list(self, client, alice) -> None:
        created = _create(client, alice)

        listed = client.get("/api/categories", headers=alice).json()["data"]

        assert created["owner"] == "alice"
        assert created["name"] == "Groceries"
        assert created["createdAt"]
        assert listed == [created]

    def test_duplicate_names_allowed(self, client, alice) -> None:
        _create(client, alice, "Food")
        _create(client, alice, "Food")

        assert len(client.get("/api/categories", headers=alice).json()["data"]) == 2

    def test_blank_name_rejected(self, client, alice) -> None:
        response = client.post("/api/categories", json={"name": "   "}, headers=alice)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "name"

    def test_get_one(self, client, alice) -> None:
        created = _create(client, alice)

        response = client.get(f"/api/categories/{created['id']}", headers=alice)

        assert response.status_code == 200
        assert response.json()["data"] == created

    def test_update(self, client, alice) -> None:
        created = _create(client, alice)

        response = client.put(
            f"/api/categories/{created['id']}", json={"name": "Supermarket"}, headers=alice
        )

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Supermarket"

    def test_delete(self, client, alice) -> None:
        created = _create(client, alice)

        response = client.delete(f"/api/categories/{created['id']}", headers=alice)

        assert response.status_code == 200
        assert response.json()["message"] == "Category removed"
        assert client.get(f"/api/categories/{created['id']}", headers=alice).status_code == 404

    def test_foreign_category_looks_missing(self, client, alice, bob) -> None:
        created = _create(client, bob)

        get_foreign = client.get(f"/api/categories/{created['id']}", headers=alice)
        get_missing = client.get(f"/api/categories/{MISSING_ID}", headers=alice)
        update = client.put(f"/api/categories/{created['id']}", json={"name": "Mine"}, headers=alice)
        delete = client.delete(f"/api/categories/{created['id']}", headers=alice)

        assert get_foreign.json() == get_missing.json()
        assert get_foreign.status_code == 404
        assert update.status_code == 404
        assert delete.status_code == 404
        assert client.get(f"/api/categories/{created['id']}", headers=bob).json()["data"]["name"] == "Groceries"
