"""OCR date-extraction gateway.

Wraps the outbound call to the OCR service that reads the submission /
issue dates off a scanned permit stored in Drive.

Request:
    POST {OCR_SERVICE_URL}
    {"document_id": 12, "drive_file_id": "...", "max_pages": 1}

Response (2xx):
    {"submitted_at": "2024-03-01" | null, "issued_at": "2024-04-02" | null}

There is no retry and no circuit breaker: one request per document, the
configured timeout, and the outcome reported in an ``OcrResult``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 60


class OcrResult:
    """Outcome of one extraction call. Never raises; check ``ok``."""

    __slots__ = ("ok", "status_code", "dates", "error", "duration_ms")

    def __init__(
        self,
        *,
        ok: bool,
        status_code: int | None,
        dates: dict | None,
        error: str | None,
        duration_ms: int,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.dates = dates or {}
        self.error = error
        self.duration_ms = duration_ms

    def to_log_dict(self) -> dict:
        return {
            "ok": self.ok,
            "status_code": self.status_code,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


class OcrConfigurationError(Exception):
    """Raised when no OCR endpoint is configured."""


class OcrGateway:
    """Typed client for the OCR extraction endpoint.

    Usage:
        gw = build_ocr_gateway(current_app.config)
        result = gw.extract_dates(doc.id, doc.drive_file_id)
        if result.ok:
            result.dates.get("issued_at")

    The session is shared by the batch workers; ``requests.Session`` is safe
    for concurrent ``request`` calls with the default adapter.
    """

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        timeout: int = _DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        if not url:
            raise OcrConfigurationError("OCR_SERVICE_URL is not configured")
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token = token

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def extract_dates(self, document_id: int, drive_file_id: str, *, max_pages: int = 1) -> OcrResult:
        body: dict[str, Any] = {
            "document_id": document_id,
            "drive_file_id": drive_file_id,
            "max_pages": max_pages,
        }
        t0 = time.perf_counter()
        try:
            resp = self.session.post(self.url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            duration_ms = int((time.perf_counter() - t0) * 1000)
            logger.warning("OCR request failed document_id=%s: %s", document_id, exc)
            return OcrResult(ok=False, status_code=None, dates=None, error=str(exc), duration_ms=duration_ms)

        duration_ms = int((time.perf_counter() - t0) * 1000)
        try:
            payload = resp.json() if resp.content else {}
        except ValueError:
            payload = {}

        if not resp.ok:
            error = payload.get("error") if isinstance(payload, dict) else None
            logger.warning(
                "OCR request returned HTTP %d document_id=%s", resp.status_code, document_id,
            )
            return OcrResult(
                ok=False,
                status_code=resp.status_code,
                dates=None,
                error=error or f"HTTP {resp.status_code}",
                duration_ms=duration_ms,
            )

        dates = {}
        if isinstance(payload, dict):
            dates = {k: payload.get(k) for k in ("submitted_at", "issued_at") if payload.get(k)}
        return OcrResult(ok=True, status_code=resp.status_code, dates=dates, error=None, duration_ms=duration_ms)


def build_ocr_gateway(config, session: requests.Session | None = None) -> OcrGateway:
    """Build a gateway from the Flask config mapping."""
    return OcrGateway(
        config.get("OCR_SERVICE_URL"),
        token=config.get("OCR_SERVICE_TOKEN"),
        timeout=config.get("OCR_TIMEOUT_SECONDS", _DEFAULT_TIMEOUT),
        session=session,
    )
