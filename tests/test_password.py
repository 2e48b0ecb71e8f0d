from datetime import timedelta

from conftest import auth
from database import utcnow


def login(client, password, identifier="asha@mail.com"):
    return client.post("/api/auth/login", json={"email_or_mobile": identifier, "password": password})


def test_forgot_and_reset_password(client, db, user_token):
    resp = client.post("/api/password/forgot", json={"email": "asha@mail.com"})
    assert resp.status_code == 200
    token = resp.json()["data"]["reset_token"]
    stored = db["user"].find_one({"email": "asha@mail.com"})
    assert stored["reset_password_token"] != token

    reset = client.post(f"/api/password/reset/{token}",
                        json={"new_password": "fresh-pass", "confirm_password": "fresh-pass"})
    assert reset.status_code == 200
    assert login(client, "fresh-pass").status_code == 200
    assert login(client, "secret123").status_code == 401

    # The token is single use.
    again = client.post(f"/api/password/reset/{token}",
                        json={"new_password": "other-pass", "confirm_password": "other-pass"})
    assert again.status_code == 400


def test_forgot_unknown_email(client):
    assert client.post("/api/password/forgot", json={"email": "nobody@mail.com"}).status_code == 404


def test_reset_requires_matching_passwords(client, user_token):
    token = client.post("/api/password/forgot", json={"email": "asha@mail.com"}).json()["data"]["reset_token"]
    resp = client.post(f"/api/password/reset/{token}",
                       json={"new_password": "fresh-pass", "confirm_password": "other-pass"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Passwords do not match"


def test_expired_reset_token(client, db, user_token):
    token = client.post("/api/password/forgot", json={"email": "asha@mail.com"}).json()["data"]["reset_token"]
    db["user"].update_one({"email": "asha@mail.com"},
                          {"$set": {"reset_password_expiry": utcnow() - timedelta(minutes=1)}})
    resp = client.post(f"/api/password/reset/{token}",
                       json={"new_password": "fresh-pass", "confirm_password": "fresh-pass"})
    assert resp.status_code == 400
    assert login(client, "secret123").status_code == 200


def test_change_password(client, user_token):
    wrong = client.post("/api/password/change", headers=auth(user_token),
                        json={"old_password": "not-it", "new_password": "brand-new"})
    assert wrong.status_code == 401

    short = client.post("/api/password/change", headers=auth(user_token),
                        json={"old_password": "secret123", "new_password": "abc"})
    assert short.status_code == 400

    ok = client.post("/api/password/change", headers=auth(user_token),
                     json={"old_password": "secret123", "new_password": "brand-new"})
    assert ok.status_code == 200
    assert login(client, "brand-new").status_code == 200
