"""Async HTTP client for the hosted backend (storage, functions, tables)."""

from __future__ import annotations

from typing import Any, Final
from urllib.parse import quote
import re

import httpx

from .auth import AuthSession
from .exceptions import BackendError, FunctionError, StorageError, TableError


DEFAULT_TIMEOUT_SEC: Final[float] = 30.0
SIGNED_URL_KEYS: Final[tuple[str, ...]] = ("signedURL", "signedUrl")
TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"token=[^&\s'\"<>]+")


class BackendClient:
    """Thin wrapper over the backend's storage, function and REST endpoints."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        auth: AuthSession,
        bucket: str = "media",
        http: httpx.AsyncClient | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.auth = auth
        self.bucket = bucket
        self._http = http or httpx.AsyncClient(timeout=timeout_sec)
        self._owns_http = http is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def current_user_id(self) -> str | None:
        return self.auth.current_user_id()

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        bearer = self.auth.access_token or self.anon_key
        headers = {"apikey": self.anon_key, "Authorization": f"Bearer {bearer}"}
        if extra:
            headers.update(extra)
        return headers

    def _object_url(self, prefix: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/{prefix}/{self.bucket}/{quote(path)}"

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Upload ``data`` to ``path`` in the bucket and return the storage key."""
        try:
            response = await self._http.post(
                self._object_url("object", path),
                content=data,
                headers=self._headers({"Content-Type": content_type, "x-upsert": "true"}),
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"Upload request failed: {_redact_tokens(str(exc))}") from exc
        _raise_for_status(response, StorageError, "Upload rejected")
        return path

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        """Return an absolute signed URL for ``path`` valid for ``ttl_seconds``."""
        try:
            response = await self._http.post(
                self._object_url("object/sign", path),
                json={"expiresIn": ttl_seconds},
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"Signing request failed: {_redact_tokens(str(exc))}") from exc
        _raise_for_status(response, StorageError, "Signing rejected")

        payload = _json_body(response)
        signed = next((payload[key] for key in SIGNED_URL_KEYS if payload.get(key)), None)
        if not signed:
            raise StorageError("Signing response did not include a URL.", response.status_code)
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1{signed}"

    async def invoke_function(
        self,
        name: str,
        body: dict[str, Any],
        timeout_sec: float | None = None,
    ) -> dict[str, Any]:
        """Call a hosted function and return its decoded JSON body.

        ``timeout_sec=None`` keeps the client default; callers that impose
        their own deadline pass a larger value so the HTTP layer never fires
        first.
        """
        kwargs: dict[str, Any] = {}
        if timeout_sec is not None:
            kwargs["timeout"] = timeout_sec
        try:
            response = await self._http.post(
                f"{self.base_url}/functions/v1/{name}",
                json=body,
                headers=self._headers(),
                **kwargs,
            )
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as exc:
            raise FunctionError(f"{name} request failed: {_redact_tokens(str(exc))}") from exc
        _raise_for_status(response, FunctionError, f"{name} failed")
        return _json_body(response)

    async def ping(self, timeout_sec: float = 5.0) -> bool:
        """Return True when the backend answers at all."""
        try:
            response = await self._http.get(
                f"{self.base_url}/auth/v1/health",
                headers=self._headers(),
                timeout=timeout_sec,
            )
        except httpx.HTTPError:
            return False
        return response.status_code < 500

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        """Insert one row through the REST endpoint."""
        try:
            response = await self._http.post(
                f"{self.base_url}/rest/v1/{table}",
                json=row,
                headers=self._headers({"Prefer": "return=minimal"}),
            )
        except httpx.HTTPError as exc:
            raise TableError(f"Insert into {table} failed: {_redact_tokens(str(exc))}") from exc
        _raise_for_status(response, TableError, f"Insert into {table} rejected")


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _raise_for_status(
    response: httpx.Response,
    error_cls: type[BackendError],
    prefix: str,
) -> None:
    if response.is_success:
        return
    payload = _json_body(response)
    detail = payload.get("error") or payload.get("message") or response.text.strip()
    message = f"{prefix} ({response.status_code})"
    if detail:
        message += f": {_redact_tokens(str(detail))}"
    raise error_cls(message, response.status_code)


def _redact_tokens(value: str) -> str:
    return TOKEN_PATTERN.sub("token=<redacted>", value)
