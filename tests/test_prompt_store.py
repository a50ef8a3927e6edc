from __future__ import annotations

import pytest

from recipe_finder.services.prompt_store import (
    clear_prompt_cache,
    extraction_messages,
    get_template,
    render_prompt,
)


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt("extract.user", url="https://example.com/doro-wat")
    assert "https://example.com/doro-wat" in prompt
    assert "$url" not in prompt


def test_system_prompt_has_no_placeholders():
    clear_prompt_cache()
    assert render_prompt("extract.system")


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError, match="Prompt key not found"):
        render_prompt("missing.prompt.key")


def test_render_prompt_raises_for_missing_value():
    with pytest.raises(KeyError, match="Missing template value"):
        render_prompt("extract.user")


def test_get_template_rejects_non_string_nodes():
    with pytest.raises(TypeError):
        get_template("extract")


def test_extraction_messages_pair_system_and_user_prompts():
    messages = extraction_messages("https://example.com/pad-thai")
    assert [message["role"] for message in messages] == ["system", "user"]
    assert "https://example.com/pad-thai" in messages[1]["content"]
