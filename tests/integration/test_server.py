"""
End-to-end tests: real sockets against a running server.
"""

import json
import socket
import threading
import time

import pytest

from userservice import ServiceConfig, UserServer

from conftest import RunningServer, build_request, send_raw


def split(response: bytes):
    """(status line, header lines, body)"""
    head, _, body = response.partition(b"\r\n\r\n")
    lines = head.decode().split("\r\n")
    return lines[0], lines[1:], body


class TestCrudOverTheWire:

    def test_create_then_read(self, running_server: RunningServer):
        created = running_server.request("POST", "/users", '{"name":"Ann","email":"ann@x.com"}')
        assert created == b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\n\r\nUser created"

        listing = json.loads(split(running_server.request("GET", "/users/all"))[2])
        user_id = listing[0]["id"]

        status, headers, body = split(running_server.request("GET", f"/users/{user_id}"))
        assert status == "HTTP/1.1 200 OK"
        assert headers == ["Content-Type: application/json"]
        assert json.loads(body) == {"id": user_id, "name": "Ann", "email": "ann@x.com"}

    def test_read_missing(self, running_server: RunningServer):
        response = running_server.request("GET", "/users/999999")
        assert response == b"HTTP/1.1 404 NOT FOUND\r\n\r\nUser not found"

    def test_update_missing_is_ok(self, running_server: RunningServer):
        response = running_server.request("PUT", "/users/999999", '{"name":"X","email":"x@x"}')
        assert response.endswith(b"\r\n\r\nUser updated")
        assert response.startswith(b"HTTP/1.1 200 OK\r\n")

    def test_update_existing(self, running_server: RunningServer):
        running_server.request("POST", "/users", '{"name":"Ann","email":"ann@x.com"}')
        user_id = json.loads(split(running_server.request("GET", "/users/all"))[2])[0]["id"]

        running_server.request("PUT", f"/users/{user_id}", '{"name":"Bea","email":"bea@x.com"}')

        body = split(running_server.request("GET", f"/users/{user_id}"))[2]
        assert json.loads(body)["name"] == "Bea"

    def test_delete_twice(self, running_server: RunningServer):
        running_server.request("POST", "/users", '{"name":"Ann","email":"ann@x.com"}')
        user_id = json.loads(split(running_server.request("GET", "/users/all"))[2])[0]["id"]

        first = running_server.request("DELETE", f"/users/{user_id}")
        second = running_server.request("DELETE", f"/users/{user_id}")

        assert first.endswith(b"User deleted")
        assert second.startswith(b"HTTP/1.1 404 NOT FOUND\r\n\r\n")

    def test_list_all_length(self, running_server: RunningServer):
        for i in range(4):
            running_server.request("POST", "/users", json.dumps({"name": f"U{i}", "email": f"u{i}@x"}))

        status, _, body = split(running_server.request("GET", "/users/all"))

        assert status == "HTTP/1.1 200 OK"
        assert len(json.loads(body)) == 4

    def test_list_all_empty(self, running_server: RunningServer):
        assert split(running_server.request("GET", "/users/all"))[2] == b"[]"


class TestBadInput:

    def test_malformed_json_create(self, running_server: RunningServer):
        response = running_server.request("POST", "/users", "{oops")
        assert response.startswith(b"HTTP/1.1 500 INTERNAL SERVER ERROR\r\n\r\n")

    def test_malformed_json_update(self, running_server: RunningServer):
        response = running_server.request("PUT", "/users/1", "[1, 2")
        assert response.startswith(b"HTTP/1.1 500 INTERNAL SERVER ERROR\r\n\r\n")

    def test_non_numeric_id(self, running_server: RunningServer):
        response = running_server.request("GET", "/users/abc")
        assert response == b"HTTP/1.1 500 INTERNAL SERVER ERROR\r\n\r\nInvalid ID format"

    def test_unknown_route(self, running_server: RunningServer):
        response = running_server.request("GET", "/")
        assert response == b"HTTP/1.1 404 NOT FOUND\r\n\r\nNot found"

    def test_garbage_bytes(self, running_server: RunningServer):
        response = send_raw(running_server.address, b"\x00\xff\x10garbage\r\n\r\n")
        assert response == b"HTTP/1.1 404 NOT FOUND\r\n\r\nNot found"

    def test_server_survives_bad_requests(self, running_server: RunningServer):
        running_server.request("POST", "/users", "not json")
        running_server.request("GET", "/users/xyz")
        response = running_server.request("GET", "/users/all")
        assert response.startswith(b"HTTP/1.1 200 OK")


class TestTransport:

    def test_body_split_across_two_sends(self, running_server: RunningServer):
        """A body that arrives in a second TCP segment is reassembled."""
        body = b'{"name":"Split","email":"s@x"}'
        head = (
            b"POST /users HTTP/1.1\r\n"
            b"Content-Length: " + str(len(body)).encode() + b"\r\n\r\n"
        )

        with socket.create_connection(running_server.address, timeout=5.0) as s:
            s.sendall(head)
            time.sleep(0.2)
            s.sendall(body)
            response = b""
            while True:
                chunk = s.recv(4096)
                if not chunk:
                    break
                response += chunk

        assert response.endswith(b"User created")
        listing = json.loads(split(running_server.request("GET", "/users/all"))[2])
        assert listing[0]["name"] == "Split"

    def test_oversized_request_truncated(self, config: ServiceConfig):
        """Past the cap the request is cut off, not refused."""
        config.max_request_size = 512
        srv = RunningServer(UserServer(config))
        srv.start()
        try:
            data = build_request("POST", "/users", json.dumps({"name": "x" * 2000, "email": "e"}))
            response = send_raw(srv.address, data)
        finally:
            srv.stop()

        # The JSON is cut mid-string, so the create fails cleanly.
        assert response.startswith(b"HTTP/1.1 500 INTERNAL SERVER ERROR\r\n\r\n")

    def test_bare_request_line_answered_quickly(self, running_server: RunningServer):
        """A hand-typed request line is served after the short idle gap."""
        started = time.monotonic()
        response = send_raw(running_server.address, b"GET /users/all HTTP/1.1\r\n")
        elapsed = time.monotonic() - started

        assert response == b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\n\r\n[]"
        assert elapsed < 3.0

    def test_client_closes_without_sending(self, running_server: RunningServer):
        with socket.create_connection(running_server.address, timeout=5.0):
            pass
        assert running_server.request("GET", "/users/all").startswith(b"HTTP/1.1 200 OK")

    def test_concurrent_clients(self, running_server: RunningServer):
        results = []
        lock = threading.Lock()

        def create(i):
            response = running_server.request("POST", "/users", json.dumps({"name": f"C{i}", "email": "c@x"}))
            with lock:
                results.append(response)

        threads = [threading.Thread(target=create, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10.0)

        assert len(results) == 8
        ok = [r for r in results if r.endswith(b"User created")]
        assert len(ok) == 8


class TestLifecycle:

    def test_shutdown_returns_zero(self, config: ServiceConfig):
        srv = RunningServer(UserServer(config))
        srv.start()
        srv.stop()
        assert srv.exit_code == 0

    def test_unusable_database_exits_one(self, tmp_path):
        config = ServiceConfig(
            database_url=f"sqlite:///{tmp_path / 'no-such-dir' / 'users.db'}",
            host="127.0.0.1",
            port=0,
            log_level="WARNING",
        )
        assert UserServer(config).run() == 1

    def test_saturated_pool_answers_503(self, config: ServiceConfig):
        """With no room in the queue, new connections get a 503."""
        config.min_workers = 1
        config.max_workers = 1
        config.queue_size = 1
        config.timeout = 3.0
        srv = RunningServer(UserServer(config))
        srv.start()

        # Two idle connections occupy the single worker and the queue slot.
        holders = []
        try:
            for _ in range(2):
                holders.append(socket.create_connection(srv.address, timeout=5.0))
                time.sleep(0.3)
            response = send_raw(srv.address, build_request("GET", "/users/all"))
        finally:
            for h in holders:
                h.close()
            srv.stop()

        assert response == b"HTTP/1.1 503 SERVICE UNAVAILABLE\r\n\r\nServer overloaded"
