#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

SESSION_COOKIE = "applyr.session_token"


def _user_payload_for_token(token: str) -> dict[str, object] | None:
    if token == "alice-token":
        return {
            "id": "11111111-1111-1111-1111-111111111111",
            "email": "alice@example.com",
            "name": "Alice",
        }
    if token == "bob-token":
        return {
            "id": "22222222-2222-2222-2222-222222222222",
            "email": "bob@example.com",
            "name": "Bob",
        }
    return None


def _token_from_headers(authorization: str, cookie: str) -> str | None:
    if authorization.lower().startswith("bearer "):
        return authorization.split(" ", maxsplit=1)[1].strip()
    for item in cookie.split(";"):
        name, separator, value = item.strip().partition("=")
        if separator and name == SESSION_COOKIE:
            return value
    return None


class MockAuthHandler(BaseHTTPRequestHandler):
    server_version = "MockAuth/1.0"

    def do_GET(self) -> None:  # noqa: N802 - stdlib handler signature
        if self.path == "/healthz":
            self._write_json(HTTPStatus.OK, {"status": "ok"})
            return

        if self.path != "/api/auth/get-session":
            self._write_json(HTTPStatus.NOT_FOUND, {"detail": "not found"})
            return

        token = _token_from_headers(self.headers.get("Authorization", ""), self.headers.get("Cookie", ""))
        if token is None:
            self._write_json(HTTPStatus.UNAUTHORIZED, {"detail": "missing session"})
            return

        user = _user_payload_for_token(token)
        if user is None:
            self._write_json(HTTPStatus.UNAUTHORIZED, {"detail": "invalid session"})
            return

        self._write_json(HTTPStatus.OK, {"session": {"token": token, "userId": user["id"]}, "user": user})

    def log_message(self, _: str, *args: object) -> None:
        if args:
            print("mock-auth:", *args)

    def _write_json(self, status: HTTPStatus, payload: dict[str, object]) -> None:
        raw = json.dumps(payload).encode("utf-8")
        self.send_response(status.value)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def main() -> None:
    parser = argparse.ArgumentParser(description="Mock auth provider /api/auth/get-session endpoint.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=3001)
    args = parser.parse_args()

    server = ThreadingHTTPServer((args.host, args.port), MockAuthHandler)
    print(f"mock-auth listening on http://{args.host}:{args.port}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
