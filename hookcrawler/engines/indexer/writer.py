"""Create-only document writes against the Elasticsearch REST API."""

from __future__ import annotations

import base64
import binascii
import enum
import ssl
from typing import Any

import httpx
import structlog

from hookcrawler.core.config import ElasticSettings

log = structlog.get_logger("hookcrawler.indexer")


class IndexOutcome(str, enum.Enum):
    CREATED = "created"
    EXISTS = "exists"
    FAILED = "failed"


class SearchError(Exception):
    """The search engine cannot be used."""


class IndexMissingError(SearchError):
    """The configured index does not exist."""


class IndexUnauthorizedError(SearchError):
    """The search engine rejected the configured credentials."""


def build_ssl_context(cacert_b64: str) -> ssl.SSLContext:
    """Trust the base64-encoded PEM CA certificate *cacert_b64*."""
    try:
        pem = base64.b64decode(cacert_b64, validate=True).decode("ascii")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise SearchError(f"cannot decode base64 CA certificate: {exc}") from exc
    try:
        return ssl.create_default_context(cadata=pem)
    except (ssl.SSLError, ValueError) as exc:
        raise SearchError(f"invalid CA certificate: {exc}") from exc


def _error_details(response: httpx.Response) -> tuple[str | None, str | None]:
    """Return the engine's ``error.type`` and ``error.reason`` if present."""
    try:
        body: Any = response.json()
    except ValueError:
        return None, None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("type"), error.get("reason")
    if isinstance(error, str):
        return None, error
    return None, None


class IndexWriter:
    """Writes canonical events into one index with create semantics.

    A document that already exists (409) is reported as
    :attr:`IndexOutcome.EXISTS`; the crawler revisits repositories every
    cycle, so this is the expected steady state rather than an error.
    """

    def __init__(
        self,
        index: str,
        base_url: str,
        *,
        auth: tuple[str, str] | None = None,
        verify: ssl.SSLContext | bool = True,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.index = index
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=auth,
            verify=verify,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: ElasticSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> IndexWriter:
        auth = (settings.username, settings.password) if settings.username else None
        verify: ssl.SSLContext | bool = True
        if settings.cacert:
            verify = build_ssl_context(settings.cacert)
        return cls(
            settings.index,
            settings.addresses[0],
            auth=auth,
            verify=verify,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> IndexWriter:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def ensure_index(self) -> None:
        """Check the index exists and the credentials are accepted."""
        try:
            response = await self._client.head(f"/{self.index}")
        except httpx.HTTPError as exc:
            raise SearchError(f"cannot reach search engine: {exc}") from exc

        if response.status_code == 200:
            log.info("indexer.index_ready", index=self.index)
            return
        if response.status_code == 404:
            raise IndexMissingError(f"index {self.index!r} does not exist")
        if response.status_code == 401:
            raise IndexUnauthorizedError("search engine connection unauthorized")
        raise SearchError(
            f"unexpected status {response.status_code} checking index {self.index!r}"
        )

    async def create(self, document_id: str, body: bytes) -> IndexOutcome:
        """Create document *document_id*; never overwrites an existing one."""
        try:
            response = await self._client.put(
                f"/{self.index}/_create/{document_id}", content=body
            )
        except httpx.HTTPError as exc:
            log.error(
                "indexer.request_failed",
                index=self.index,
                document_id=document_id,
                error=str(exc),
            )
            return IndexOutcome.FAILED

        if response.status_code in (200, 201):
            return IndexOutcome.CREATED
        if response.status_code == 409:
            log.debug("indexer.already_exists", index=self.index, document_id=document_id)
            return IndexOutcome.EXISTS

        error_type, reason = _error_details(response)
        log.error(
            "indexer.create_failed",
            index=self.index,
            document_id=document_id,
            status=response.status_code,
            type=error_type,
            reason=reason,
        )
        return IndexOutcome.FAILED
