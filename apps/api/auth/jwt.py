"""JWT authentication utilities for the API.

Identity is deliberately thin: a fixed set of writer accounts and HMAC-signed
tokens carried in the ``access_token`` cookie or a bearer header. The catalog
only ever asks for the current actor id.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from datetime import timedelta
from typing import Any, Dict, Mapping, TypedDict

from fastapi import Request

from core.catalog import Forbidden, Unauthenticated
from core.config import settings

_UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class _UserRecord(TypedDict):
    id: str
    email: str
    name: str
    hashed_password: str


def _hash_password(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


_USERS: Dict[str, _UserRecord] = {
    "alice@example.com": {
        "id": "writer-alice",
        "email": "alice@example.com",
        "name": "Alice",
        "hashed_password": _hash_password("wonderland"),
    },
    "bob@example.com": {
        "id": "writer-bob",
        "email": "bob@example.com",
        "name": "Bob",
        "hashed_password": _hash_password("builder"),
    },
}

_USERS_BY_ID: Dict[str, _UserRecord] = {record["id"]: record for record in _USERS.values()}
_DEFAULT_USER_ID = next(iter(_USERS_BY_ID))


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(raw: str) -> bytes:
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)


def _json_dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


def _json_loads(data: str) -> Mapping[str, Any]:
    loaded = json.loads(data)
    if not isinstance(loaded, Mapping):
        raise ValueError("JWT payload must be a mapping")
    return loaded


def _sign(message: str) -> str:
    secret = settings.jwt_secret.encode("utf-8")
    digest = hmac.new(secret, message.encode("utf-8"), hashlib.sha256).digest()
    return _b64encode(digest)


def _user_profile(record: _UserRecord) -> dict[str, Any]:
    return {"id": record["id"], "email": record["email"], "name": record["name"]}


def _get_user_record_by_id(user_id: str) -> _UserRecord:
    record = _USERS_BY_ID.get(user_id)
    if record is None:
        raise Unauthenticated("Unknown user")
    return record


def authenticate_user(email: str, password: str) -> _UserRecord:
    record = _USERS.get(email.strip().lower())
    if record is None or not hmac.compare_digest(record["hashed_password"], _hash_password(password)):
        raise Unauthenticated("Invalid credentials")
    return record


def create_access_token(data: Mapping[str, Any], expires_delta: timedelta | int | None = None) -> str:
    expires_seconds: int | None
    if isinstance(expires_delta, timedelta):
        expires_seconds = int(expires_delta.total_seconds())
    else:
        expires_seconds = int(expires_delta) if expires_delta is not None else settings.jwt_expiration_seconds
    now = int(time.time())
    payload: Dict[str, Any] = dict(data)
    payload.setdefault("iat", now)
    if expires_seconds is not None:
        payload["exp"] = now + expires_seconds
    header = {"alg": "HS256", "typ": "JWT"}
    header_segment = _b64encode(_json_dumps(header).encode("utf-8"))
    payload_segment = _b64encode(_json_dumps(payload).encode("utf-8"))
    signature_segment = _sign(f"{header_segment}.{payload_segment}")
    return f"{header_segment}.{payload_segment}.{signature_segment}"


def verify_token(token: str) -> Mapping[str, Any]:
    try:
        header_segment, payload_segment, signature_segment = token.split(".")
    except ValueError as exc:
        raise Unauthenticated("Invalid token") from exc
    expected_signature = _sign(f"{header_segment}.{payload_segment}")
    if not hmac.compare_digest(signature_segment, expected_signature):
        raise Unauthenticated("Invalid token signature")
    try:
        payload = _json_loads(_b64decode(payload_segment).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise Unauthenticated("Invalid token payload") from exc
    exp = payload.get("exp")
    if isinstance(exp, (int, float)) and exp < time.time():
        raise Unauthenticated("Token expired")
    return payload


def get_user_profile(user_id: str) -> dict[str, Any]:
    return _user_profile(_get_user_record_by_id(user_id))


def _request_token(request: Request) -> tuple[str | None, bool]:
    """Return the presented token and whether it came from a cookie."""

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip(), False
    token = request.cookies.get("access_token")
    if token:
        return token, True
    return None, False


def _profile_from_request(request: Request) -> dict[str, Any] | None:
    token, from_cookie = _request_token(request)
    if not token:
        return None
    if from_cookie and request.method in _UNSAFE_METHODS:
        csrf_header = request.headers.get("x-csrf-token")
        if csrf_header is None or not hmac.compare_digest(csrf_header, token):
            raise Forbidden("Invalid CSRF token")
    payload = verify_token(token)
    user_id = payload.get("sub")
    if not isinstance(user_id, str):
        raise Unauthenticated("Invalid token subject")
    return _user_profile(_get_user_record_by_id(user_id))


def get_current_user(request: Request) -> dict[str, Any]:
    """Dependency returning the signed-in writer, or the default one when auth is off."""

    profile = _profile_from_request(request)
    if profile is None:
        if settings.auth_required:
            raise Unauthenticated()
        profile = _user_profile(_USERS_BY_ID[_DEFAULT_USER_ID])
    request.state.user = profile
    return profile


def current_actor_id(request: Request) -> str | None:
    """Actor id for the request, or ``None`` for anonymous visitors."""

    try:
        profile = _profile_from_request(request)
    except Unauthenticated:
        return None
    return str(profile["id"]) if profile else None


def require_actor(request: Request) -> str:
    profile = get_current_user(request)
    return str(profile["id"])
