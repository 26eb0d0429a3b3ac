import pytest
from flask import Flask, g

from shortly.auth import AuthService
from shortly.clicks import ClickService
from shortly.config import Config
from shortly.database import connect, run_migrations
from shortly.handlers import AuthHandler, LinkHandler
from shortly.links import LinkService
from shortly.middleware import user_id_from_header

BASE_URL = "https://s.example.com"
FIREFOX_UA = "Mozilla/5.0 (Linux; Android 14) Mobile Firefox/120.0"


def run_now(task):
    task()


@pytest.fixture
def db():
    conn = connect("sqlite://")
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def cfg():
    return Config(base_url=BASE_URL, jwt_secret="secret")


@pytest.fixture
def user_id(db):
    cursor = db.execute(
        "INSERT INTO users (username, email, password_hash) VALUES (?, ?, ?)",
        ("alice", "alice@example.com", "placeholder"),
    )
    return cursor.lastrowid


@pytest.fixture
def app():
    return Flask("handlers_test")


@pytest.fixture
def auth_handler(db):
    return AuthHandler(AuthService(db, "secret", rounds=4))


@pytest.fixture
def clicks(db):
    return ClickService(db)


@pytest.fixture
def link_handler(db, cfg, clicks):
    return LinkHandler(LinkService(db, None, cfg), clicks, background=run_now)


def call(app, view, *args, method="GET", path="/", user=None, **context):
    with app.test_request_context(path, method=method, **context):
        if user is not None:
            g.user_id = user
        return view(*args)


def register(app, handler, username="alice", email="alice@example.com"):
    password = "password"
    body = {"username": username, "email": email, "password": password}
    return call(app, handler.register, method="POST", json=body)


def test_register_returns_token_for_new_user(app, auth_handler):
    resp = register(app, auth_handler)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["user"]["username"] == "alice"
    assert body["user"]["email"] == "alice@example.com"
    assert user_id_from_header("Bearer " + body["token"], "secret") == body["user"]["id"]


@pytest.mark.parametrize(
    "body, message",
    [
        ({"username": "ab", "email": "a@example.com", "password": "password"},
         "username must be 3-50 chars"),
        ({"username": "alice", "email": "nope", "password": "password"}, "invalid email"),
        ({"username": "alice", "email": "a@example.com", "password": "token"},
         "password must be at least 6 chars"),
    ],
)
def test_register_validation(app, auth_handler, body, message):
    resp = call(app, auth_handler.register, method="POST", json=body)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": message}


def test_register_rejects_malformed_body(app, auth_handler):
    resp = call(app, auth_handler.register, method="POST", data="{")
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "invalid request body"}


def test_register_duplicate(app, auth_handler):
    register(app, auth_handler)
    resp = register(app, auth_handler)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "email or username already taken"}


def test_login_roundtrip(app, auth_handler):
    registered = register(app, auth_handler).get_json()
    password = "password"
    resp = call(
        app, auth_handler.login, method="POST",
        json={"email": "alice@example.com", "password": password},
    )
    assert resp.status_code == 200
    assert resp.get_json()["user"]["id"] == registered["user"]["id"]


def test_login_wrong_password(app, auth_handler):
    register(app, auth_handler)
    password = "placeholder"
    resp = call(
        app, auth_handler.login, method="POST",
        json={"email": "alice@example.com", "password": password},
    )
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "invalid credentials"}


def create_link(app, handler, user, **fields):
    return call(app, handler.create, method="POST", user=user, json=fields)


def test_create_link(app, link_handler, user_id):
    resp = create_link(app, link_handler, user_id, url="https://example.com/page")
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["original_url"] == "https://example.com/page"
    assert body["short_url"] == f"{BASE_URL}/{body['short_code']}"
    assert body["user_id"] == user_id


def test_create_link_invalid_url(app, link_handler, user_id):
    resp = create_link(app, link_handler, user_id, url="ftp://files.com")
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "invalid url"}


def test_list_paginates(app, link_handler, user_id):
    for n in range(3):
        create_link(app, link_handler, user_id, url=f"https://example.com/{n}")
    resp = call(app, link_handler.list, path="/api/links?page=1&per_page=2", user=user_id)
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["total"] == 3
    assert len(body["links"]) == 2
    assert body["page"] == 1


def test_list_defaults_for_bad_paging(app, link_handler, user_id):
    resp = call(app, link_handler.list, path="/api/links?page=-4&per_page=500", user=user_id)
    body = resp.get_json()
    assert body["page"] == 1
    assert body["per_page"] == 20


def test_delete_flow(app, link_handler, user_id):
    link = create_link(app, link_handler, user_id, url="https://example.com").get_json()
    bad = call(app, link_handler.delete, "abc", method="DELETE", user=user_id)
    assert bad.status_code == 400
    assert bad.get_json() == {"error": "invalid id"}
    ok = call(app, link_handler.delete, str(link["id"]), method="DELETE", user=user_id)
    assert ok.status_code == 200
    assert ok.get_json() == {"msg": "deleted"}
    again = call(app, link_handler.delete, str(link["id"]), method="DELETE", user=user_id)
    assert again.status_code == 404
    assert again.get_json() == {"error": "not found"}


def test_redirect_records_click(app, link_handler, user_id, clicks):
    link = create_link(app, link_handler, user_id, url="https://example.com/to").get_json()
    resp = call(
        app, link_handler.redirect, link["short_code"],
        headers={"User-Agent": FIREFOX_UA}, environ_base={"REMOTE_ADDR": "127.0.0.1"},
    )
    assert resp.status_code == 301
    assert resp.headers["Location"] == "https://example.com/to"
    stats = clicks.get_stats(link["id"], 30)
    assert stats.total_clicks == 1
    assert [nc.name for nc in stats.top_browsers] == ["Firefox"]


def test_redirect_unknown_code(app, link_handler):
    resp = call(app, link_handler.redirect, "missing")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "not found"}


def test_get_stats(app, link_handler, user_id):
    link = create_link(app, link_handler, user_id, url="https://example.com").get_json()
    call(app, link_handler.redirect, link["short_code"], headers={"User-Agent": FIREFOX_UA})
    resp = call(app, link_handler.get_stats, str(link["id"]), path="/s?days=9999", user=user_id)
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["total_clicks"] == 1
    assert body["top_os"] == [{"name": "Android", "count": 1}]
    assert body["top_devices"] == [{"name": "mobile", "count": 1}]


def test_get_stats_invalid_id(app, link_handler):
    resp = call(app, link_handler.get_stats, "x1")
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "invalid id"}


def test_bulk_create_mixed(app, link_handler, user_id):
    body = {"urls": [{"url": "https://example.com/a"}, {"url": "not-a-url"}]}
    resp = call(app, link_handler.bulk_create, method="POST", user=user_id, json=body)
    result = resp.get_json()
    assert resp.status_code == 201
    assert len(result["links"]) == 1
    assert result["errors"] == [{"index": 1, "url": "not-a-url", "error": "invalid url"}]


def test_bulk_create_omits_errors_when_all_succeed(app, link_handler, user_id):
    body = {"urls": [{"url": "https://example.com/a"}]}
    result = call(app, link_handler.bulk_create, method="POST", user=user_id, json=body).get_json()
    assert "errors" not in result
    assert result["links"][0]["original_url"] == "https://example.com/a"


@pytest.mark.parametrize(
    "count, message", [(0, "urls array is empty"), (51, "max 50 urls per batch")]
)
def test_bulk_create_limits(app, link_handler, user_id, count, message):
    body = {"urls": [{"url": "https://example.com"}] * count}
    resp = call(app, link_handler.bulk_create, method="POST", user=user_id, json=body)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": message}


def test_password_redirect(app, link_handler, user_id, clicks):
    password = "password"
    link = create_link(
        app, link_handler, user_id, url="https://example.com/p", password=password
    ).get_json()
    code = link["short_code"]
    wrong = call(app, link_handler.password_redirect, code, method="POST",
                 json={"password": "placeholder"})
    assert wrong.status_code == 403
    assert wrong.get_json() == {"error": "wrong password"}
    right = call(app, link_handler.password_redirect, code, method="POST",
                 json={"password": "password"})
    assert right.status_code == 200
    assert right.get_json() == {"url": "https://example.com/p"}
    assert clicks.get_stats(link["id"], 30).total_clicks == 1


def test_password_redirect_without_password(app, link_handler, user_id):
    link = create_link(app, link_handler, user_id, url="https://example.com/open").get_json()
    resp = call(app, link_handler.password_redirect, link["short_code"], method="POST", json={})
    assert resp.get_json() == {"url": "https://example.com/open"}


def test_password_redirect_errors(app, link_handler):
    bad = call(app, link_handler.password_redirect, "abc", method="POST", data="nope")
    assert bad.status_code == 400
    assert bad.get_json() == {"error": "invalid request"}
    missing = call(app, link_handler.password_redirect, "abc", method="POST", json={})
    assert missing.status_code == 404
    assert missing.get_json() == {"error": "not found"}