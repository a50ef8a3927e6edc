"""Prompt catalog for the LLM extraction providers.

Prompt bodies live in ``prompts/prompts.json`` as nested objects addressed by
dotted keys (``extract.user``) and use ``string.Template`` placeholders.
"""

from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"
_catalog: dict[str, Any] | None = None
_catalog_mtime_ns: int | None = None


def load_catalog() -> dict[str, Any]:
    """Read the prompt catalog, reloading when the file changes on disk."""
    global _catalog, _catalog_mtime_ns
    mtime_ns = PROMPTS_PATH.stat().st_mtime_ns
    if _catalog is None or _catalog_mtime_ns != mtime_ns:
        payload = json.loads(PROMPTS_PATH.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Prompt catalog {PROMPTS_PATH} must contain a JSON object")
        _catalog, _catalog_mtime_ns = payload, mtime_ns
    return _catalog


def get_template(key: str) -> Template:
    node: Any = load_catalog()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(f"Prompt key not found: {key}")
        node = node[part]
    if not isinstance(node, str):
        raise TypeError(f"Prompt key must map to a string: {key}")
    return Template(node)


def render_prompt(key: str, **values: Any) -> str:
    template = get_template(key)
    try:
        return template.substitute(**values)
    except KeyError as exc:
        raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc


def extraction_messages(url: str) -> list[dict[str, str]]:
    """Chat messages asking a model to return the recipe at ``url`` as JSON."""
    return [
        {"role": "system", "content": render_prompt("extract.system")},
        {"role": "user", "content": render_prompt("extract.user", url=url)},
    ]


def clear_prompt_cache() -> None:
    global _catalog, _catalog_mtime_ns
    _catalog = None
    _catalog_mtime_ns = None
