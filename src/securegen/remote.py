"""Remote backend: the record store and auth provider behind an HTTP/JSON API.

Endpoints (relative to the configured base URL)
-----------------------------------------------
    POST   /auth/register          {username, password}  -> {token, user}
    POST   /auth/login             {username, password}  -> {token, user}
    POST   /auth/logout
    GET    /auth/me                                      -> user
    GET    /records                                      -> [record, ...]
    POST   /records                record                -> record
    DELETE /records                                      -> {deleted}
    PATCH  /records/{id}           {group?, remark?}
    POST   /records/batch-update   {ids, group?, remark?} -> {updated}
    POST   /records/batch-delete   {ids}                  -> {deleted}

Every response body is an envelope ``{"data": ..., "success": bool,
"message": str | null}``. The server scopes records to the bearer token's
user, so the ``owner_id`` arguments are not sent. Nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import httpx

from .backends import Backend
from .errors import InvalidCredentials, NotFound, TransportFailure, Unauthorized, UsernameTaken
from .models import AuthResult, CredentialRecord, RecordPatch, User

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8000/api"
DEFAULT_TIMEOUT = 10.0


class RemoteBackend(Backend):
    """Talks to a securegen API server over HTTP."""

    name = "remote"

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.token = token
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        status_errors: Optional[dict[int, Exception]] = None,
    ) -> Any:
        """Send one request and return the envelope's ``data``.

        *status_errors* maps specific status codes to the domain error to
        raise; 401 defaults to :class:`Unauthorized` and every other
        non-2xx status to :class:`TransportFailure`.
        """
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportFailure(f"{method} {path} failed: {exc}") from exc

        if response.is_success:
            if not response.content:
                return None
            try:
                body = response.json()
            except ValueError as exc:
                raise TransportFailure(f"{method} {path} returned invalid JSON.") from exc
            if isinstance(body, dict) and "data" in body:
                if body.get("success") is False:
                    raise TransportFailure(body.get("message") or f"{method} {path} was rejected.")
                return body["data"]
            return body

        message = _error_message(response)
        logger.debug("%s %s -> %s %s", method, path, response.status_code, message)
        mapped = (status_errors or {}).get(response.status_code)
        if mapped is not None:
            raise mapped
        if response.status_code == 401:
            raise Unauthorized(message or "Not logged in.")
        raise TransportFailure(f"{method} {path} failed with HTTP {response.status_code}: {message}")

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def create_record(self, owner_id: Optional[str], record: CredentialRecord) -> CredentialRecord:
        data = self._request("POST", "/records", json=record.model_dump(mode="json"))
        return CredentialRecord.model_validate(data) if data else record

    def list_records(self, owner_id: Optional[str]) -> list[CredentialRecord]:
        data = self._request("GET", "/records") or []
        return [CredentialRecord.model_validate(item) for item in data]

    def patch_record(self, owner_id: Optional[str], record_id: str, patch: RecordPatch) -> None:
        self._request(
            "PATCH",
            f"/records/{record_id}",
            json=patch.changes(),
            status_errors={404: NotFound(record_id)},
        )

    def batch_patch(self, owner_id: Optional[str], ids: Iterable[str], patch: RecordPatch) -> int:
        ids = list(dict.fromkeys(ids))
        data = self._request("POST", "/records/batch-update", json={"ids": ids, **patch.changes()})
        return _count(data, "updated", len(ids))

    def batch_delete(self, owner_id: Optional[str], ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(ids))
        data = self._request("POST", "/records/batch-delete", json={"ids": ids})
        return _count(data, "deleted", len(ids))

    def delete_all_for_owner(self, owner_id: Optional[str]) -> int:
        data = self._request("DELETE", "/records")
        return _count(data, "deleted", 0)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def register(self, username: str, password: str) -> AuthResult:
        data = self._request(
            "POST",
            "/auth/register",
            json={"username": username, "password": password},
            status_errors={409: UsernameTaken(f"Username {username!r} is already taken.")},
        )
        result = AuthResult.model_validate(data)
        self.token = result.token
        return result

    def authenticate(self, username: str, password: str) -> AuthResult:
        data = self._request(
            "POST",
            "/auth/login",
            json={"username": username, "password": password},
            status_errors={401: InvalidCredentials("Invalid username or password.")},
        )
        result = AuthResult.model_validate(data)
        self.token = result.token
        return result

    def logout(self, token: str) -> None:
        self.token = token
        try:
            self._request("POST", "/auth/logout")
        finally:
            self.token = None

    def current_user(self, token: str) -> User:
        self.token = token
        try:
            return User.model_validate(self._request("GET", "/auth/me"))
        except Unauthorized:
            self.token = None
            raise


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or "")
    return str(body)


def _count(data: Any, key: str, default: int) -> int:
    if isinstance(data, dict) and isinstance(data.get(key), int):
        return data[key]
    return default
