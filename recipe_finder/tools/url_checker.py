"""Lightweight reachability checks for discovered URLs."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from loguru import logger

# Sites that refuse HEAD or throttle bots still serve the page to browsers.
LENIENT_STATUSES = {403, 405, 429}

RECIPE_MARKERS = (
    "application/ld+json",
    "schema.org/recipe",
    '"@type":"recipe"',
    '"@type": "recipe"',
    "recipe-card",
    "wprm-recipe",
    "tasty-recipes",
    "ingredients",
    "instructions",
)

USER_AGENT = "Mozilla/5.0 (compatible; recipe-finder/0.1)"


@dataclass(frozen=True, slots=True)
class UrlCheck:
    url: str
    reachable: bool
    content_type: str = ""
    status_code: int = 0
    has_recipe_markers: bool | None = None
    error: str | None = None

    @property
    def is_html(self) -> bool:
        return not self.content_type or "text/html" in self.content_type.lower()

    @property
    def accepted(self) -> bool:
        return self.reachable and self.is_html and self.has_recipe_markers is not False


class HttpUrlValidator:
    """HEAD-based checker with an optional truncated body sniff."""

    def __init__(
        self,
        *,
        timeout_ms: int = 5000,
        sample_bytes: int = 2048,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout_ms = max(int(timeout_ms), 100)
        self.sample_bytes = max(int(sample_bytes), 256)
        self._client = client

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_ms / 1000.0,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    async def check(self, url: str, *, sample_body: bool = False) -> UrlCheck:
        if self._client is not None:
            return await self._check_with(self._client, url, sample_body)
        async with self._new_client() as client:
            return await self._check_with(client, url, sample_body)

    async def _check_with(self, client: httpx.AsyncClient, url: str, sample_body: bool) -> UrlCheck:
        try:
            response = await client.head(url)
        except httpx.HTTPError as exc:
            logger.debug(f"HEAD failed for {url}: {exc}")
            return UrlCheck(url=url, reachable=False, error=str(exc) or type(exc).__name__)

        status = response.status_code
        content_type = response.headers.get("content-type", "")
        reachable = status < 400 or status in LENIENT_STATUSES
        if not reachable or not sample_body:
            return UrlCheck(url=url, reachable=reachable, content_type=content_type, status_code=status)

        markers = await self._sniff_body(client, url)
        return UrlCheck(
            url=url,
            reachable=True,
            content_type=content_type,
            status_code=status,
            has_recipe_markers=markers,
        )

    async def _sniff_body(self, client: httpx.AsyncClient, url: str) -> bool | None:
        """Read only the first few KB; None when the body cannot be fetched."""
        try:
            async with client.stream("GET", url) as response:
                if response.status_code >= 400:
                    return None
                chunk = b""
                async for part in response.aiter_bytes():
                    chunk += part
                    if len(chunk) >= self.sample_bytes:
                        break
        except httpx.HTTPError as exc:
            logger.debug(f"Body sample failed for {url}: {exc}")
            return None
        text = chunk[: self.sample_bytes].decode("utf-8", errors="ignore").lower()
        return any(marker in text for marker in RECIPE_MARKERS)
