from __future__ import annotations

import json
import re
import time
from typing import Any, Awaitable, Callable, Iterator, Protocol

import httpx
from bs4 import BeautifulSoup, Tag
from loguru import logger
from openai import AsyncOpenAI

from recipe_finder import llm_client
from recipe_finder.config import Settings
from recipe_finder.llm_client import LlmEndpoint
from recipe_finder.models.errors import ParseFailure
from recipe_finder.recipe_core.extract.decode import decode_recipe, extract_json_object
from recipe_finder.recipe_core.models.interfaces import RecipeDraft
from recipe_finder.services.logger import log_provider_call
from recipe_finder.services.prompt_store import extraction_messages
from recipe_finder.tools.url_checker import USER_AGENT

HtmlFetcher = Callable[[str], Awaitable[str]]

LLM_PROVIDERS = ("perplexity", "groq")
INGREDIENT_HEADING = re.compile(r"ingredient", re.IGNORECASE)
INSTRUCTION_HEADING = re.compile(r"instruction|direction|method|preparation|steps", re.IGNORECASE)


class ExtractionProvider(Protocol):
    name: str

    async def extract(self, url: str) -> RecipeDraft: ...


def _is_recipe_node(node: dict[str, Any]) -> bool:
    node_type = node.get("@type")
    types = node_type if isinstance(node_type, list) else [node_type]
    return any(isinstance(t, str) and t.lower() == "recipe" for t in types)


def _walk_json_ld(node: Any) -> Iterator[dict[str, Any]]:
    if isinstance(node, list):
        for item in node:
            yield from _walk_json_ld(item)
    elif isinstance(node, dict):
        if _is_recipe_node(node):
            yield node
        if "@graph" in node:
            yield from _walk_json_ld(node["@graph"])
        if isinstance(node.get("mainEntity"), (dict, list)):
            yield from _walk_json_ld(node["mainEntity"])


def find_recipe_nodes(soup: BeautifulSoup) -> list[dict[str, Any]]:
    nodes: list[dict[str, Any]] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text() or ""
        try:
            data = json.loads(raw.strip())
        except json.JSONDecodeError:
            logger.debug("Skipping malformed JSON-LD block")
            continue
        nodes.extend(_walk_json_ld(data))
    return nodes


def _html_text(value: str) -> str:
    return " ".join(BeautifulSoup(value, "html.parser").get_text(" ").split())


def flatten_instructions(value: Any) -> list[str]:
    """HowToStep / HowToSection / plain text -> ordered step texts."""
    if value is None:
        return []
    if isinstance(value, str):
        text = BeautifulSoup(value, "html.parser").get_text("\n")
        return [line.strip() for line in text.splitlines() if line.strip()]
    if isinstance(value, list):
        steps: list[str] = []
        for item in value:
            steps.extend(flatten_instructions(item))
        return steps
    if isinstance(value, dict):
        if "itemListElement" in value:
            return flatten_instructions(value["itemListElement"])
        text = value.get("text") or value.get("name") or ""
        text = _html_text(str(text))
        return [text] if text else []
    return []


def recipe_node_to_payload(node: dict[str, Any]) -> dict[str, Any]:
    ingredients = node.get("recipeIngredient") or node.get("ingredients") or []
    if isinstance(ingredients, str):
        ingredients = [ingredients]
    return {
        "title": _html_text(str(node.get("name") or node.get("headline") or "")),
        "description": _html_text(str(node.get("description") or "")),
        "ingredients": [_html_text(str(item)) for item in ingredients if str(item).strip()],
        "instructions": flatten_instructions(node.get("recipeInstructions")),
        "servings": node.get("recipeYield"),
        "total_time_minutes": node.get("totalTime"),
        "prep_time_minutes": node.get("prepTime"),
        "cook_time_minutes": node.get("cookTime"),
        "cuisine": node.get("recipeCuisine"),
        "images": node.get("image"),
    }


def _list_after_heading(soup: BeautifulSoup, pattern: re.Pattern[str]) -> list[str]:
    for heading in soup.find_all(["h2", "h3", "h4"]):
        if not pattern.search(heading.get_text(" ")):
            continue
        listing = heading.find_next(["ul", "ol"])
        if isinstance(listing, Tag):
            items = [" ".join(li.get_text(" ").split()) for li in listing.find_all("li")]
            items = [item for item in items if item]
            if items:
                return items
    return []


def heuristic_payload(soup: BeautifulSoup) -> dict[str, Any] | None:
    """Section-heading scrape for pages without Recipe structured data."""
    ingredients = _list_after_heading(soup, INGREDIENT_HEADING)
    instructions = _list_after_heading(soup, INSTRUCTION_HEADING)
    if not ingredients and not instructions:
        return None

    title = ""
    og_title = soup.find("meta", attrs={"property": "og:title"})
    if isinstance(og_title, Tag) and og_title.get("content"):
        title = str(og_title["content"])
    elif soup.h1:
        title = soup.h1.get_text(" ")
    elif soup.title:
        title = soup.title.get_text(" ")

    og_image = soup.find("meta", attrs={"property": "og:image"})
    images = [str(og_image["content"])] if isinstance(og_image, Tag) and og_image.get("content") else []
    return {
        "title": " ".join(title.split()) or "Untitled Dish",
        "ingredients": ingredients,
        "instructions": instructions,
        "images": images,
    }


def parse_recipe_html(html: str, *, url: str, provider: str = "jsonld") -> RecipeDraft:
    soup = BeautifulSoup(html, "html.parser")
    for node in find_recipe_nodes(soup):
        payload = recipe_node_to_payload(node)
        if payload["title"]:
            return decode_recipe(payload, provider=provider, source_url=url)

    payload = heuristic_payload(soup)
    if payload is None:
        raise ParseFailure(f"{provider}: no recipe structured data found at {url}")
    return decode_recipe(payload, provider=provider, source_url=url)


class JsonLdExtractionProvider:
    """Fetch the page and read its schema.org Recipe markup."""

    name = "jsonld"

    def __init__(self, *, timeout_ms: int = 8000, fetcher: HtmlFetcher | None = None):
        self.timeout_ms = max(int(timeout_ms), 100)
        self._fetcher = fetcher

    async def extract(self, url: str) -> RecipeDraft:
        started = time.monotonic()
        html = await (self._fetcher or self._fetch_html)(url)
        draft = parse_recipe_html(html, url=url, provider=self.name)
        log_provider_call(self.name, url, "ok", int((time.monotonic() - started) * 1000))
        return draft

    async def _fetch_html(self, url: str) -> str:
        async with httpx.AsyncClient(
            timeout=self.timeout_ms / 1000.0,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.text


class LlmExtractionProvider:
    """Ask an OpenAI-compatible model to read the URL and emit recipe JSON."""

    def __init__(
        self,
        endpoint: LlmEndpoint,
        *,
        client_factory: Callable[[], AsyncOpenAI] | None = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
    ):
        self.name = endpoint.name
        self.model = endpoint.model
        self.endpoint = endpoint
        self._client_factory = client_factory
        self._client: AsyncOpenAI | None = None
        self.temperature = temperature
        self.max_tokens = max_tokens

    def client(self) -> AsyncOpenAI:
        """Get or create the client."""
        if self._client is None:
            self._client = self._client_factory() if self._client_factory else llm_client.get_client(self.endpoint)
        return self._client

    async def extract(self, url: str) -> RecipeDraft:
        started = time.monotonic()
        response = await self.client().chat.completions.create(
            model=self.model,
            messages=extraction_messages(url),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not response.choices:
            raise ParseFailure(f"{self.name}: empty completion for {url}")
        text = response.choices[0].message.content or ""
        payload = extract_json_object(text, provider=self.name)
        draft = decode_recipe(payload, provider=self.name, source_url=url)
        log_provider_call(self.name, url, "ok", int((time.monotonic() - started) * 1000))
        return draft


def build_providers(
    names: list[str],
    *,
    html_timeout_ms: int = 8000,
    config: Settings | None = None,
) -> list[ExtractionProvider]:
    """Instantiate the cascade in ``names`` order, skipping LLMs without keys."""
    providers: list[ExtractionProvider] = []
    for name in names:
        if name == "jsonld":
            providers.append(JsonLdExtractionProvider(timeout_ms=html_timeout_ms))
        elif name in LLM_PROVIDERS:
            endpoint = llm_client.get_endpoint(name, config)
            if not endpoint.api_key:
                logger.warning(f"Skipping extraction provider {name}: API key not configured")
                continue
            providers.append(LlmExtractionProvider(endpoint))
        else:
            raise ValueError(f"Unsupported extraction provider: {name}")
    return providers
