"""Shared fixtures: an in-memory stand-in for the hosted backend.

`FakeBackend` answers the auth, relational REST and object storage
endpoints the backend SDK calls, through `httpx.MockTransport`. State lives
in plain dicts so tests can seed and inspect it directly.
"""

import json
import time
import uuid
from datetime import datetime, timezone
from email import policy
from email.parser import BytesParser
from typing import Any
from urllib.parse import parse_qs

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from api.config import APIConfig
from api.main import create_app
from baas.client import create_client
from baas.config import BaasConfig

BAAS_URL = "https://baas.test"
SIGNING_KEY = "fake-backend-signing-key"
ANON_KEY = jwt.encode({"iss": "fake-backend", "role": "anon"}, SIGNING_KEY, algorithm="HS256")


def make_jwt(sub: str = "user-1", exp: float | None = None, **claims: Any) -> str:
    """Access token for `sub` expiring at `exp` (default: one hour from now)."""
    payload = {
        "sub": sub,
        "exp": int(exp if exp is not None else time.time() + 3600),
        "role": "authenticated",
        "jti": uuid.uuid4().hex,
        **claims,
    }
    return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")


def _json(status: int, body: Any = None, headers: dict[str, str] | None = None) -> httpx.Response:
    if body is None:
        return httpx.Response(status, headers=headers)
    return httpx.Response(status, json=body, headers=headers)


def _auth_error(status: int, error_code: str, msg: str) -> httpx.Response:
    return _json(status, {"code": status, "error_code": error_code, "msg": msg})


def _uploaded_content(request: httpx.Request) -> bytes:
    """The file part of a multipart upload, or the raw body."""
    content_type = request.headers.get("Content-Type", "")
    if not content_type.startswith("multipart/"):
        return request.content
    message = BytesParser(policy=policy.default).parsebytes(
        f"Content-Type: {content_type}\r\n\r\n".encode() + request.content
    )
    for part in message.iter_parts():
        if part.get_param("name", header="content-disposition") == "file":
            return part.get_payload(decode=True)
    return request.content


class FakeBackend:
    """Hosted backend double: auth, REST tables and storage."""

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.passwords: dict[str, str] = {}
        self.access_tokens: dict[str, str] = {}
        self.refresh_tokens: dict[str, str] = {}
        self.otp_tokens: dict[str, tuple[str, str]] = {}
        self.tables: dict[str, list[dict[str, Any]]] = {"categories": [], "products": []}
        self.objects: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.emails: list[tuple[str, str]] = []
        self.expires_in = 3600
        self.confirm_email = False
        # Cap on rows per response, like the REST server's db-max-rows
        self.max_rows: int | None = None

    # Seeding ------------------------------------------------------------

    def add_user(self, email: str, password: str, confirmed: bool = True) -> dict[str, Any]:
        user = {
            "id": str(uuid.uuid4()),
            "aud": "authenticated",
            "role": "authenticated",
            "email": email,
            "email_confirmed_at": "2024-06-01T00:00:00Z" if confirmed else None,
            "user_metadata": {},
            "app_metadata": {"provider": "email"},
            "identities": [],
            "created_at": "2024-06-01T00:00:00Z",
            "updated_at": "2024-06-01T00:00:00Z",
        }
        self.users[user["id"]] = user
        self.passwords[email] = password
        return user

    def user_by_email(self, email: str) -> dict[str, Any] | None:
        return next((u for u in self.users.values() if u["email"] == email), None)

    def issue_session(self, user: dict[str, Any], expires_in: int | None = None) -> dict[str, Any]:
        """New token pair for `user`; a negative `expires_in` gives an expired access token."""
        expires_in = self.expires_in if expires_in is None else expires_in
        expires_at = int(time.time() + expires_in)
        access_token = make_jwt(sub=user["id"], exp=expires_at, email=user["email"])
        refresh_token = uuid.uuid4().hex
        self.access_tokens[access_token] = user["id"]
        self.refresh_tokens[refresh_token] = user["id"]
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": expires_in,
            "expires_at": expires_at,
            "user": user,
        }

    def add_otp(self, token_hash: str, email: str, otp_type: str = "recovery") -> None:
        self.otp_tokens[token_hash] = (otp_type, email)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paths(self, method: str | None = None) -> list[str]:
        return [r.url.path for r in self.requests if method is None or r.method == method]

    # Dispatch -----------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1/"):])

        # The REST and storage clients rebind a shared httpx client's base
        # URL, so the service is told apart by what follows the prefix
        for prefix in ("/rest/v1/", "/storage/v1/"):
            if path.startswith(prefix):
                tail = path[len(prefix):]
                break
        else:
            return _json(404, {"message": "Not found"})
        if tail.startswith("object/"):
            return self._storage(request, tail[len("object/"):])
        return self._rest(request, tail)

    def _bearer_user(self, request: httpx.Request) -> dict[str, Any] | None:
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        user_id = self.access_tokens.get(token)
        return self.users.get(user_id) if user_id else None

    # Auth ---------------------------------------------------------------

    def _auth(self, request: httpx.Request, route: str) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        grant_type = request.url.params.get("grant_type")

        if route == "signup" and request.method == "POST":
            if self.user_by_email(body["email"]):
                return _auth_error(422, "user_already_exists", "User already registered")
            user = self.add_user(body["email"], body["password"], confirmed=not self.confirm_email)
            user["user_metadata"] = body.get("data") or {}
            if self.confirm_email:
                return _json(200, user)
            return _json(200, self.issue_session(user))

        if route == "token" and grant_type == "password":
            user = self.user_by_email(body.get("email", ""))
            if user is None or self.passwords.get(user["email"]) != body.get("password"):
                return _auth_error(400, "invalid_credentials", "Invalid login credentials")
            return _json(200, self.issue_session(user))

        if route == "token" and grant_type == "refresh_token":
            user_id = self.refresh_tokens.pop(body.get("refresh_token", ""), None)
            if user_id is None:
                return _auth_error(
                    400,
                    "refresh_token_not_found",
                    "Invalid Refresh Token: Refresh Token Not Found",
                )
            return _json(200, self.issue_session(self.users[user_id]))

        if route == "user":
            user = self._bearer_user(request)
            if user is None:
                return _auth_error(401, "bad_jwt", "invalid JWT")
            if request.method == "PUT":
                if "password" in body:
                    self.passwords[user["email"]] = body["password"]
                if "email" in body:
                    self.passwords[body["email"]] = self.passwords.pop(user["email"])
                    user["email"] = body["email"]
                if "data" in body:
                    user["user_metadata"] = {**user["user_metadata"], **body["data"]}
            return _json(200, user)

        if route == "logout":
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            if self.access_tokens.pop(token, None) is None:
                return _auth_error(401, "bad_jwt", "invalid JWT")
            return _json(204)

        if route in ("recover", "resend"):
            self.emails.append((route, body["email"]))
            return _json(200, {})

        if route == "verify":
            entry = self.otp_tokens.get(body.get("token_hash", ""))
            if entry is None or entry[0] != body.get("type"):
                return _auth_error(403, "otp_expired", "Token has expired or is invalid")
            del self.otp_tokens[body["token_hash"]]
            user = self.user_by_email(entry[1])
            return _json(200, self.issue_session(user))

        return _json(404, {"msg": f"Unknown auth route {route}"})

    # REST ---------------------------------------------------------------

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        if self._bearer_user(request) is None:
            return _json(401, {"code": "PGRST301", "message": "JWT expired"})
        rows = self.tables.setdefault(table, [])
        params = parse_qs(request.url.query.decode(), keep_blank_values=True)
        prefer = request.headers.get("Prefer", "")

        if request.method == "POST":
            body = json.loads(request.content)
            now = datetime.now(timezone.utc).isoformat()
            created = []
            for row in body if isinstance(body, list) else [body]:
                row = {"id": str(uuid.uuid4()), "created_at": now, "updated_at": now, **row}
                rows.append(row)
                created.append(row)
            return _json(201, created)

        matched = [row for row in rows if self._matches(row, params)]

        if request.method == "PATCH":
            values = json.loads(request.content)
            for row in matched:
                row.update(values)
            return _json(200, matched)

        if request.method == "DELETE":
            self.tables[table] = [row for row in rows if row not in matched]
            return _json(200, matched)

        for order in reversed(",".join(params.get("order", [])).split(",")):
            column, _, modifiers = order.partition(".")
            if column:
                matched.sort(
                    key=lambda r: str(r.get(column) or ""),
                    reverse=modifiers.startswith("desc"),
                )
        total = len(matched)
        offset, limit = self._window(request, params)
        matched = matched[offset:] if limit is None else matched[offset : offset + limit]
        if self.max_rows is not None:
            matched = matched[: self.max_rows]
        headers = {}
        if "count=exact" in prefer:
            end = offset + len(matched) - 1
            headers["Content-Range"] = f"{offset}-{end}/{total}" if matched else f"*/{total}"
        select = params.get("select", ["*"])[0]
        return _json(200, [self._project(row, select) for row in matched], headers=headers)

    @staticmethod
    def _window(request: httpx.Request, params: dict[str, list[str]]) -> tuple[int, int | None]:
        """Offset and limit from the query, or from a `Range` header."""
        if "Range" in request.headers:
            start, _, end = request.headers["Range"].partition("-")
            return int(start), int(end) - int(start) + 1
        offset = int(params.get("offset", ["0"])[0])
        limit = int(params["limit"][0]) if "limit" in params else None
        return offset, limit

    def _project(self, row: dict[str, Any], select: str) -> dict[str, Any]:
        """Apply a `select` list, including a `products(count)` embed."""
        columns = [c for c in select.split(",") if c]
        if "*" in columns:
            projected = dict(row)
        else:
            projected = {c: row.get(c) for c in columns if "(" not in c}
        if "products(count)" in columns:
            count = sum(1 for p in self.tables["products"] if p.get("category_id") == row["id"])
            projected["products"] = [{"count": count}]
        return projected

    @staticmethod
    def _matches(row: dict[str, Any], params: dict[str, list[str]]) -> bool:
        for column, values in params.items():
            if column in ("select", "order", "offset", "limit", "columns", "on_conflict"):
                continue
            for value in values:
                op, _, operand = value.partition(".")
                current = row.get(column)
                if op == "eq" and str(current) != operand:
                    return False
                if op == "neq" and str(current) == operand:
                    return False
                if op == "is" and operand == "null" and current is not None:
                    return False
                if op == "in" and str(current) not in operand.strip("()").split(","):
                    return False
        return True

    # Storage ------------------------------------------------------------

    def _storage(self, request: httpx.Request, route: str) -> httpx.Response:
        if request.method in ("POST", "PUT"):
            if route in self.objects and request.headers.get("x-upsert") != "true":
                return _json(
                    400,
                    {
                        "statusCode": "409",
                        "error": "Duplicate",
                        "message": "The resource already exists",
                    },
                )
            self.objects[route] = _uploaded_content(request)
            return _json(200, {"Key": route, "Id": str(uuid.uuid4())})

        if request.method == "DELETE":
            bucket = route.rstrip("/")
            removed = []
            for prefix in json.loads(request.content)["prefixes"]:
                if self.objects.pop(f"{bucket}/{prefix}", None) is not None:
                    removed.append({"name": prefix})
            return _json(200, removed)

        if request.method == "GET" and route in self.objects:
            return httpx.Response(200, content=self.objects[route])
        missing = {"statusCode": "404", "error": "not_found", "message": "Object not found"}
        return _json(400, missing)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def baas_config() -> BaasConfig:
    return BaasConfig(url=BAAS_URL, anon_key=ANON_KEY)


@pytest.fixture
async def backend(fake_backend, baas_config):
    """Backend SDK client wired to the fake."""
    async with httpx.AsyncClient(transport=fake_backend.transport()) as http:
        yield await create_client(baas_config, http=http)


@pytest.fixture
async def signed_in_user(backend, fake_backend) -> dict[str, Any]:
    """A seeded supplier whose session `backend` holds."""
    user = fake_backend.add_user("supplier@example.com", "secret123")
    session = fake_backend.issue_session(user)
    await backend.auth.set_session(session["access_token"], session["refresh_token"])
    return user


@pytest.fixture
def api_config() -> APIConfig:
    """Direct database mode on in-memory SQLite."""
    return APIConfig(
        database_url="sqlite+aiosqlite:///:memory:",
        auto_create_tables=True,
        moderator_emails=["moderator@example.com"],
        max_upload_bytes=1024,
    )


@pytest.fixture
def client(api_config, baas_config, fake_backend):
    """Test client for the full app; the lifespan runs on the client's loop."""
    app = create_app(api_config, baas_config, transport=fake_backend.transport())
    with TestClient(app) as c:
        yield c


@pytest.fixture
def sign_in(client, fake_backend):
    """Sign a user in through the API; the session cookies stay on `client`."""

    def _sign_in(email: str = "supplier@example.com", password: str = "secret123") -> dict:
        if fake_backend.user_by_email(email) is None:
            fake_backend.add_user(email, password)
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()

    return _sign_in
