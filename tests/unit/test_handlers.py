"""
Unit tests for the user handlers, driven through the router.
"""

import json

import pytest

from userservice.errors import RequestParseError, StorageUnavailableError
from userservice.handlers import UserHandlers, parse_id
from userservice.http import HTTPStatus, Router, parse_request
from userservice.models import User

from conftest import build_request


def call(router: Router, method: str, path: str, body: str = ""):
    return router.handle(parse_request(build_request(method, path, body)))


class TestParseId:

    @pytest.mark.parametrize("raw,expected", [
        ("1", 1),
        ("42", 42),
        ("-3", -3),
        ("+7", 7),
        ("2147483647", 2147483647),
        ("-2147483648", -2147483648),
    ])
    def test_valid(self, raw: str, expected: int):
        assert parse_id(raw) == expected

    @pytest.mark.parametrize("raw", [
        "",
        "abc",
        "1.5",
        "1a",
        " 1",
        "2147483648",
        "١٢",
    ])
    def test_invalid(self, raw: str):
        with pytest.raises(RequestParseError, match="Invalid ID format"):
            parse_id(raw)


class TestHandlers:

    def test_create(self, router: Router, gateway):
        response = call(router, "POST", "/users", '{"name": "Ann", "email": "ann@x.com"}')

        assert response.status == HTTPStatus.OK
        assert response.text == "User created"
        assert response.content_type == "application/json"
        assert [u.name for u in gateway.list_all()] == ["Ann"]

    def test_create_malformed_json(self, router: Router, gateway):
        response = call(router, "POST", "/users", '{"name": ')

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert gateway.list_all() == []

    def test_get(self, router: Router, gateway):
        created = gateway.create(User(name="Ann", email="ann@x.com"))

        response = call(router, "GET", f"/users/{created.id}")

        assert response.status == HTTPStatus.OK
        assert json.loads(response.body) == {"id": created.id, "name": "Ann", "email": "ann@x.com"}

    def test_get_missing(self, router: Router):
        response = call(router, "GET", "/users/999999")

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.text == "User not found"

    def test_get_bad_id(self, router: Router):
        response = call(router, "GET", "/users/abc")

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.text == "Invalid ID format"

    def test_list_all_not_shadowed(self, router: Router, gateway):
        """GET /users/all lists instead of parsing 'all' as an id."""
        for i in range(3):
            gateway.create(User(name=f"U{i}", email=f"u{i}@x"))

        response = call(router, "GET", "/users/all")

        assert response.status == HTTPStatus.OK
        assert [u["name"] for u in json.loads(response.body)] == ["U0", "U1", "U2"]

    def test_update(self, router: Router, gateway):
        created = gateway.create(User(name="Ann", email="ann@x.com"))

        response = call(router, "PUT", f"/users/{created.id}", '{"name": "Bea", "email": "b@x"}')

        assert response.text == "User updated"
        assert gateway.get(created.id).name == "Bea"

    def test_update_missing_still_ok(self, router: Router):
        response = call(router, "PUT", "/users/777", '{"name": "Bea", "email": "b@x"}')

        assert response.status == HTTPStatus.OK
        assert response.text == "User updated"

    def test_update_bad_body(self, router: Router, gateway):
        created = gateway.create(User(name="Ann", email="ann@x.com"))

        response = call(router, "PUT", f"/users/{created.id}", '{"name": 1}')

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert gateway.get(created.id).name == "Ann"

    def test_delete_then_delete_again(self, router: Router, gateway):
        created = gateway.create(User(name="Ann", email="ann@x.com"))

        first = call(router, "DELETE", f"/users/{created.id}")
        second = call(router, "DELETE", f"/users/{created.id}")

        assert first.status == HTTPStatus.OK
        assert first.text == "User deleted"
        assert second.status == HTTPStatus.NOT_FOUND

    def test_registration_order(self, gateway):
        router = UserHandlers(gateway).register(Router())
        assert [r.prefix for r in router.routes()] == [
            "POST /users",
            "GET /users/all",
            "GET /users",
            "PUT /users",
            "DELETE /users",
        ]


class UnavailableGateway:
    """Every operation fails to get a connection."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise StorageUnavailableError()
        return fail


class TestStorageDown:

    @pytest.mark.parametrize("method,path,body", [
        ("POST", "/users", '{"name": "Ann", "email": "a@x"}'),
        ("GET", "/users/all", ""),
        ("GET", "/users/1", ""),
        ("PUT", "/users/1", '{"name": "Ann", "email": "a@x"}'),
        ("DELETE", "/users/1", ""),
    ])
    def test_every_route_answers_500(self, method, path, body):
        router = UserHandlers(UnavailableGateway()).register(Router())

        response = call(router, method, path, body)

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.text == "Database connection error"
