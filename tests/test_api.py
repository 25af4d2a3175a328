"""Tests for the catalog, account and cart endpoints."""

from datetime import datetime, timezone

from jose import jwt

import config


class TestHealthCheck:
    def test_root(self, api_client):
        response = api_client.get("/")
        assert response.status_code == 200
        assert "message" in response.json()

    def test_security_headers(self, api_client):
        response = api_client.get("/")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert response.headers["Referrer-Policy"] == "no-referrer"

    def test_security_headers_on_errors(self, api_client):
        response = api_client.get("/products/not-an-id")
        assert response.status_code == 400
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_health_lists_collections(self, api_client, make_product):
        make_product()
        data = api_client.get("/health").json()
        assert data["database"] == "connected"
        assert "product" in data["collections"]


class TestProducts:
    def test_create_and_fetch(self, api_client):
        response = api_client.post("/products", json={"name": "Mug", "price": 9.99, "stock": 10})
        assert response.status_code == 201
        created = response.json()
        assert len(created["id"]) == 24
        assert created["rating"] == 0
        assert created["reviews"] == []
        assert "createdAt" in created

        fetched = api_client.get(f"/products/{created['id']}").json()
        assert fetched == created

    def test_create_rejects_negative_price(self, api_client):
        response = api_client.post("/products", json={"name": "Mug", "price": -1})
        assert response.status_code == 422

    def test_missing_product_is_404(self, api_client):
        response = api_client.get("/products/" + "0" * 24)
        assert response.status_code == 404
        assert response.json()["error_type"] == "NotFoundError"

    def test_invalid_id_is_400(self, api_client):
        response = api_client.get("/products/not-an-id")
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid product id"

    def test_list_is_bounded(self, api_client, make_product):
        for i in range(config.PRODUCT_PAGE_SIZE + 5):
            make_product(name=f"Item {i}")
        response = api_client.get("/products")
        assert response.status_code == 200
        assert len(response.json()) == config.PRODUCT_PAGE_SIZE

    def test_update_in_place(self, api_client, make_product):
        product_id = make_product()
        response = api_client.put(f"/products/{product_id}", json={"price": 11.5, "stock": 3})
        assert response.status_code == 200
        data = response.json()
        assert data["price"] == 11.5
        assert data["stock"] == 3
        assert data["name"] == "Mug"

    def test_update_without_fields(self, api_client, make_product):
        product_id = make_product()
        response = api_client.put(f"/products/{product_id}", json={})
        assert response.status_code == 400

    def test_update_missing_product(self, api_client):
        response = api_client.put("/products/" + "0" * 24, json={"price": 1})
        assert response.status_code == 404

    def test_reviews_update_rating(self, api_client, make_product):
        product_id = make_product()
        api_client.post(f"/products/{product_id}/reviews", json={"userId": "u1", "comment": "ok", "rating": 3})
        response = api_client.post(f"/products/{product_id}/reviews", json={"userId": "u2", "rating": 4})
        assert response.status_code == 201
        data = response.json()
        assert data["rating"] == 3.5
        assert [r["userId"] for r in data["reviews"]] == ["u1", "u2"]


class TestAuth:
    def test_register_returns_token_and_user(self, registered_user):
        assert registered_user["token"]
        user = registered_user["user"]
        assert user["email"] == "ada@example.com"
        assert user["name"] == "Ada"
        assert "passwordHash" not in user and "password_hash" not in user

    def test_password_is_hashed(self, registered_user, db):
        stored = db["user"].find_one({"email": "ada@example.com"})
        assert stored["password_hash"] != "hunter2"
        assert stored["password_hash"].startswith("$2")

    def test_duplicate_email_rejected(self, api_client, registered_user):
        response = api_client.post(
            "/register",
            json={"email": "ada@example.com", "password": "other", "name": "Imposter"},
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "DuplicateEmailError"

    def test_login(self, api_client, registered_user):
        response = api_client.post("/login", json={"email": "ada@example.com", "password": "hunter2"})
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == registered_user["user"]["id"]
        assert data["token"]

    def test_wrong_password_and_unknown_email_look_the_same(self, api_client, registered_user):
        wrong = api_client.post("/login", json={"email": "ada@example.com", "password": "nope"})
        unknown = api_client.post("/login", json={"email": "bob@example.com", "password": "nope"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_token_carries_only_user_id_and_week_expiry(self, registered_user):
        payload = jwt.decode(registered_user["token"], config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        assert set(payload) == {"sub", "exp"}
        assert payload["sub"] == registered_user["user"]["id"]
        days_left = (payload["exp"] - datetime.now(timezone.utc).timestamp()) / 86400
        assert 6.9 < days_left <= 7

    def test_me(self, api_client, registered_user):
        response = api_client.get("/me", headers={"Authorization": f"Bearer {registered_user['token']}"})
        assert response.status_code == 200
        assert response.json()["email"] == "ada@example.com"

    def test_me_requires_token(self, api_client):
        assert api_client.get("/me").status_code == 401
        response = api_client.get("/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401


class TestCart:
    def test_repeat_add_increments(self, api_client, registered_user, make_product):
        user_id = registered_user["user"]["id"]
        product_id = make_product()
        api_client.post(f"/cart/{user_id}", json={"productId": product_id, "quantity": 2})
        response = api_client.post(f"/cart/{user_id}", json={"productId": product_id, "quantity": 2})
        assert response.json() == [{"productId": product_id, "quantity": 4}]
        assert api_client.get(f"/cart/{user_id}").json() == [{"productId": product_id, "quantity": 4}]

    def test_quantity_defaults_to_one(self, api_client, registered_user, make_product):
        user_id = registered_user["user"]["id"]
        product_id = make_product()
        response = api_client.post(f"/cart/{user_id}", json={"productId": product_id})
        assert response.json() == [{"productId": product_id, "quantity": 1}]

    def test_remove_line(self, api_client, registered_user, make_product):
        user_id = registered_user["user"]["id"]
        mug, tee = make_product(), make_product(name="Tee", price=19.99)
        api_client.post(f"/cart/{user_id}", json={"productId": mug, "quantity": 3})
        api_client.post(f"/cart/{user_id}", json={"productId": tee})
        response = api_client.delete(f"/cart/{user_id}/{mug}")
        assert response.status_code == 200
        assert response.json() == [{"productId": tee, "quantity": 1}]

    def test_clear(self, api_client, registered_user, make_product):
        user_id = registered_user["user"]["id"]
        api_client.post(f"/cart/{user_id}", json={"productId": make_product()})
        assert api_client.delete(f"/cart/{user_id}").json() == []
        assert api_client.get(f"/cart/{user_id}").json() == []

    def test_unknown_user(self, api_client, make_product):
        response = api_client.post("/cart/" + "0" * 24, json={"productId": make_product()})
        assert response.status_code == 404
        assert api_client.get("/cart/" + "0" * 24).status_code == 404

    def test_unknown_product(self, api_client, registered_user):
        user_id = registered_user["user"]["id"]
        response = api_client.post(f"/cart/{user_id}", json={"productId": "0" * 24})
        assert response.status_code == 404
        assert api_client.get(f"/cart/{user_id}").json() == []

    def test_non_positive_quantity_rejected(self, api_client, registered_user, make_product):
        user_id = registered_user["user"]["id"]
        response = api_client.post(f"/cart/{user_id}", json={"productId": make_product(), "quantity": 0})
        assert response.status_code == 422
