"""Shop video performance analytics client."""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from videosync.ingest.errors import (
    ClientError,
    RateLimited,
    ServerError,
    TransientNetworkError,
    UnexpectedResponseShape,
)
from videosync.ingest.models import Brand, RawRow, SyncTuning
from videosync.utils.rate_limit import RequestPacer
from videosync.utils.retry import retry_async

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://open-api.tiktokglobalshop.com"
VIDEO_PERFORMANCE_PATH = "/analytics/202509/shop_videos/performance"

# Pages returning {"data": null} end pagination with what was collected.
_END_OF_DATA = object()


class AnalyticsClient:
    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str | None = None,
        session: httpx.AsyncClient | None = None,
        tuning: SyncTuning | None = None,
        pacer: RequestPacer | None = None,
    ) -> None:
        self.token = token or os.environ.get("ANALYTICS_ACCESS_TOKEN", "")
        self.base_url = (base_url or os.environ.get("ANALYTICS_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.session = session or httpx.AsyncClient(timeout=30.0)
        self.tuning = tuning or SyncTuning.from_env()
        self.pacer = pacer or RequestPacer(rate=self.tuning.requests_per_second)

    async def close(self) -> None:
        await self.session.aclose()

    async def fetch_window(self, brand: Brand, start_date: str, end_date: str) -> list[RawRow]:
        """Fetch every page for ``[start_date, end_date)`` in receipt order, duplicates included."""
        fetch_page = retry_async(
            self.fetch_page,
            attempts=self.tuning.max_page_attempts,
            base_delay=self.tuning.page_retry_base_delay_ms / 1000,
            retry_on=(ServerError, TransientNetworkError),
            label=f"video analytics page fetch brand={brand.id}",
        )
        rows: list[RawRow] = []
        page_token: str | None = None
        page_index = 0
        while True:
            params: dict[str, Any] = {
                "start_date_ge": start_date,
                "end_date_lt": end_date,
                "page_size": self.tuning.page_size,
                "sort_field": "gmv",
                "sort_order": "DESC",
                "account_type": "AFFILIATE_ACCOUNTS",
            }
            if brand.shop_cipher:
                params["shop_cipher"] = brand.shop_cipher
            if page_token:
                params["page_token"] = page_token
            data = await fetch_page(params)
            if data is _END_OF_DATA:
                break
            page_rows = data.get("videos", data.get("rows", []))
            if page_rows is None:
                page_rows = []
            if not isinstance(page_rows, list):
                logger.warning(
                    "Unexpected video analytics rows for brand %s page=%s", brand.id, page_index
                )
                raise UnexpectedResponseShape(data)
            rows.extend(page_rows)
            page_token = data.get("next_page_token")
            if not page_token:
                break
            page_index += 1
        logger.info(
            "Fetched %s video rows for brand %s (%s..%s, %s pages)",
            len(rows),
            brand.id,
            start_date,
            end_date,
            page_index + 1,
        )
        return rows

    async def fetch_page(self, params: dict[str, Any]) -> Any:
        await self.pacer.wait()
        try:
            response = await self.session.get(
                f"{self.base_url}{VIDEO_PERFORMANCE_PATH}",
                params=params,
                headers={"x-tts-access-token": self.token},
            )
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"{type(exc).__name__}: {exc}") from exc
        if response.status_code == 429:
            raise RateLimited()
        if response.status_code >= 500:
            raise ServerError(response.status_code)
        if response.status_code >= 400:
            raise ClientError(response.status_code, response.text[:200])
        try:
            payload = response.json()
        except ValueError as exc:
            raise UnexpectedResponseShape(response.text) from exc
        return _unwrap(payload)


def _unwrap(payload: Any) -> Any:
    if not isinstance(payload, dict):
        error = UnexpectedResponseShape(payload)
        logger.warning("Unexpected video analytics response: %s", error.sample)
        raise error
    code = payload.get("code")
    if code == 429:
        raise RateLimited(payload.get("message") or "analytics API rate limited")
    if isinstance(code, int) and code >= 500:
        raise ServerError(code, payload.get("message"))
    if "data" in payload and payload["data"] is None:
        return _END_OF_DATA
    data = payload.get("data")
    if isinstance(data, dict):
        return data
    if isinstance(code, int) and code != 0:
        raise ClientError(code, payload.get("message"))
    error = UnexpectedResponseShape(payload)
    logger.warning("Unexpected video analytics response: %s", error.sample)
    raise error
