from conftest import auth_headers, make_user
from models.provider import Provider


def _register(client, email, role="customer", password="s3cure-pass"):
    return client.post("/auth/register", json={"email": email, "password": password, "role": role})


def test_register_login_me_with_bearer_token(client):
    assert _register(client, "Jane@Example.com").status_code == 201

    resp = client.post("/auth/login", json={"email": "jane@example.com", "password": "s3cure-pass"})
    assert resp.status_code == 200
    token = resp.get_json()["token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.get_json()["email"] == "jane@example.com"
    assert me.get_json()["role"] == "customer"


def test_register_rejects_bad_input(client):
    assert _register(client, "not-an-email").status_code == 400
    assert _register(client, "a@b.com", password="short").status_code == 400
    assert _register(client, "a@b.com", role="wizard").status_code == 400
    assert _register(client, "a@b.com", role="admin").status_code == 403
    assert _register(client, "dup@b.com").status_code == 201
    assert _register(client, "dup@b.com").status_code == 409


def test_wrong_password_is_401(client):
    _register(client, "x@y.com")
    resp = client.post("/auth/login", json={"email": "x@y.com", "password": "nope-nope1"})
    assert resp.status_code == 401


def test_cookie_sessions_require_csrf_header(client):
    _register(client, "prov@y.com", role="provider")
    client.post("/auth/login", json={"email": "prov@y.com", "password": "s3cure-pass"})

    body = {"business_name": "Sparkle Cleaning", "payout_account_id": "acct_9"}
    assert client.put("/providers/me", json=body).status_code == 403

    csrf = client.get_cookie("csrf_token").value
    resp = client.put("/providers/me", json=body, headers={"X-CSRF-Token": csrf})
    assert resp.status_code == 200
    assert resp.get_json()["payout_account_id"] == "acct_9"


def test_logout_revokes_token(client):
    user = make_user("bye@y.com", "CUSTOMER")
    headers = auth_headers(user)
    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_provider_setup_flow(client, app):
    user = make_user("setup@y.com", "PROVIDER")
    h = auth_headers(user)

    # availability needs a profile first
    resp = client.post("/providers/me/availability",
                       json={"day_of_week": 1, "start_time": "09:00", "end_time": "17:00"}, headers=h)
    assert resp.status_code == 400

    assert client.put("/providers/me", json={"business_name": "Setup Co"}, headers=h).status_code == 200
    provider = Provider.query.filter_by(user_id=user.id).one()

    bad = client.post("/providers/me/availability",
                      json={"day_of_week": 7, "start_time": "09:00", "end_time": "17:00"}, headers=h)
    assert bad.status_code == 400
    inverted = client.post("/providers/me/availability",
                           json={"day_of_week": 1, "start_time": "17:00", "end_time": "09:00"}, headers=h)
    assert inverted.status_code == 400

    window = client.post("/providers/me/availability",
                         json={"day_of_week": 1, "start_time": "09:00", "end_time": "17:00"}, headers=h)
    assert window.status_code == 201

    public = client.get(f"/providers/{provider.id}/availability").get_json()
    assert public == [{"id": window.get_json()["id"], "day_of_week": 1,
                       "start_time": "09:00:00", "end_time": "17:00:00"}]

    svc = client.post("/providers/me/services",
                      json={"name": "Deep clean", "base_price": "80.50", "duration_minutes": 120}, headers=h)
    assert svc.status_code == 201
    assert svc.get_json()["base_price"] == 80.5

    assert client.post("/providers/me/services", json={"name": "Free", "base_price": "0",
                                                      "duration_minutes": 30}, headers=h).status_code == 400

    deleted = client.delete(f"/providers/me/availability/{window.get_json()['id']}", headers=h)
    assert deleted.status_code == 200
    assert client.get("/providers/me/availability", headers=h).get_json() == []


def test_customers_cannot_manage_provider_data(client):
    customer = make_user("c@y.com", "CUSTOMER")
    resp = client.put("/providers/me", json={"business_name": "Nope"}, headers=auth_headers(customer))
    assert resp.status_code == 403


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_non_string_fields_are_400(client):
    assert client.post("/auth/login", json={"email": "x@y.com", "password": 12345678}).status_code == 400
    assert client.post("/auth/login", json=["x@y.com"]).status_code == 400
    assert _register(client, "x@y.com", password=["s3cure-pass"]).status_code == 400
    resp = client.post("/auth/register", json={"email": "x@y.com", "password": "s3cure-pass", "role": 1})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "role must be a string"
