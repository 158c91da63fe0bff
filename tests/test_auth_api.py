import re

import resend

from conftest import ADMIN_EMAIL, image_upload, register_and_login


def otp_from(email_payload):
    return re.search(r"Your OTP is: (\d{6})", email_payload["text"]).group(1)


def test_register_login_and_profile(client):
    response = client.post(
        "/api/auth/register",
        json={
            "email": "Asha@Example.com",
            "name": "Asha",
            "password": "secret123",
            "confirmPassword": "secret123",
            "phone": "+91 98765 43210",
        },
    )
    assert response.status_code == 201
    assert response.get_json()["user"]["email"] == "asha@example.com"
    assert response.get_json()["user"]["role"] == "standard"

    login = client.post(
        "/api/auth/login", json={"email": "asha@example.com", "password": "secret123"}
    )
    token = login.get_json()["access_token"]

    profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    assert profile.get_json()["user"]["phone"] == "+91 98765 43210"
    assert "password" not in profile.get_json()["user"]


def test_register_validation(client):
    base = {"email": "a@example.com", "name": "A", "password": "x1", "confirm_password": "x1"}

    assert client.post("/api/auth/register", json={**base, "name": ""}).status_code == 400
    assert (
        client.post("/api/auth/register", json={**base, "confirm_password": "x2"}).status_code
        == 400
    )
    assert client.post("/api/auth/register", json=base).status_code == 201
    assert client.post("/api/auth/register", json=base).status_code == 400


def test_login_rejects_bad_credentials(client, customer_headers):
    response = client.post(
        "/api/auth/login", json={"email": "shopper@example.com", "password": "wrong"}
    )
    assert response.status_code == 401


def test_default_admin_email_is_always_an_admin(client, admin_headers, db):
    db.users.update_one({"email": ADMIN_EMAIL}, {"$set": {"role": "standard"}})

    profile = client.get("/api/auth/profile", headers=admin_headers).get_json()["user"]
    assert profile["role"] == "admin"
    assert client.get("/api/auth/users", headers=admin_headers).status_code == 200


def test_admin_can_promote_users(client, admin_headers, customer_headers, db):
    user_id = str(db.users.find_one({"email": "shopper@example.com"})["_id"])

    assert client.get("/api/auth/users", headers=customer_headers).status_code == 403
    response = client.put(
        f"/api/auth/users/{user_id}/role", json={"role": "admin"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert client.get("/api/auth/users", headers=customer_headers).status_code == 200

    invalid = client.put(
        f"/api/auth/users/{user_id}/role", json={"role": "owner"}, headers=admin_headers
    )
    assert invalid.status_code == 400


def test_otp_profile_update_flow(client, customer_headers, sent_emails):
    response = client.post(
        "/api/auth/request-otp",
        json={"email": "shopper@example.com", "updateData": {"name": "Shopper Prime"}},
    )

    assert response.status_code == 200
    assert response.get_json()["otp_length"] == 6
    assert sent_emails[0]["to"] == ["shopper@example.com"]
    assert sent_emails[0]["subject"] == "Your OTP for Profile Update"

    code = otp_from(sent_emails[0])
    verified = client.post(
        "/api/auth/verify-otp", json={"email": "shopper@example.com", "otp": code}
    )
    assert verified.status_code == 200
    assert verified.get_json()["user"]["name"] == "Shopper Prime"

    replay = client.post("/api/auth/verify-otp", json={"email": "shopper@example.com", "otp": code})
    assert replay.status_code == 400
    assert "No verification request" in replay.get_json()["message"]


def test_otp_password_change(client, customer_headers, sent_emails):
    client.post("/api/auth/request-otp", json={"email": "shopper@example.com"})
    code = otp_from(sent_emails[0])

    response = client.post(
        "/api/auth/verify-otp",
        json={"email": "shopper@example.com", "otp": code, "update_data": {"password": "n3w-pass"}},
    )
    assert response.status_code == 200

    login = client.post(
        "/api/auth/login", json={"email": "shopper@example.com", "password": "n3w-pass"}
    )
    assert login.status_code == 200


def test_otp_only_verification_keeps_the_code(client, customer_headers, sent_emails):
    client.post("/api/auth/request-otp", json={"email": "shopper@example.com"})
    code = otp_from(sent_emails[0])

    first = client.post("/api/auth/verify-otp", json={"email": "shopper@example.com", "otp": code})
    assert first.get_json() == {"message": "OTP verified", "otp_valid": True}

    second = client.post(
        "/api/auth/verify-otp",
        json={"email": "shopper@example.com", "otp": code, "updateData": {"phone": "12345"}},
    )
    assert second.get_json()["user"]["phone"] == "12345"


def test_wrong_otp_is_rejected(client, customer_headers, sent_emails):
    client.post("/api/auth/request-otp", json={"email": "shopper@example.com"})
    code = otp_from(sent_emails[0])
    wrong = f"{(int(code) + 1) % 1000000:06d}"

    response = client.post("/api/auth/verify-otp", json={"email": "shopper@example.com", "otp": wrong})
    assert response.status_code == 400
    assert "incorrect" in response.get_json()["message"]


def test_request_otp_for_unknown_account(client, sent_emails):
    response = client.post("/api/auth/request-otp", json={"email": "ghost@example.com"})
    assert response.status_code == 404
    assert sent_emails == []


def test_failed_otp_delivery_discards_the_code(app, client, customer_headers, monkeypatch):
    def failing_send(payload):
        raise RuntimeError("resend is down")

    monkeypatch.setattr(resend.Emails, "send", failing_send)

    response = client.post("/api/auth/request-otp", json={"email": "shopper@example.com"})

    assert response.status_code == 502
    assert response.get_json()["error"] == "resend is down"
    assert len(app.extensions["storefront.otp_store"]) == 0


def test_avatar_upload_replaces_the_previous_image(client, hosted_images):
    headers = register_and_login(client, "pic@example.com")

    for _ in range(2):
        response = client.post(
            "/api/auth/avatar",
            data=image_upload("me.jpg"),
            headers=headers,
            content_type="multipart/form-data",
        )
        assert response.status_code == 200

    assert response.get_json()["user"]["avatar_url"].endswith("image-2.png")
    assert len(hosted_images["destroyed"]) == 1
    assert hosted_images["uploaded"][0]["transformation"] == [
        {"width": 300, "height": 300, "crop": "limit"}
    ]
