"""Strict decode of provider payloads into ``RecipeDraft``.

Nothing downstream of this module sees untyped provider output: a payload
either decodes into a draft or raises ``DecodeError``.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from recipe_finder.models.errors import DecodeError
from recipe_finder.recipe_core.models.interfaces import Ingredient, Instruction, RecipeDraft, RecipeMetadata
from recipe_finder.recipe_core.normalize.service import UNICODE_FRACTIONS, is_known_unit

QUANTITY = re.compile(
    r"^(?P<amount>\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?(?:\s*(?:-|–|to)\s*\d+(?:\.\d+)?)?)\s+(?P<rest>.+)$"
)
JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def parse_ingredient_line(line: str) -> dict[str, Any]:
    """Split ``"2 cups flour, sifted"`` into amount/unit/name/notes."""
    text = " ".join(str(line).split()).lstrip("-•* ")
    for glyph, replacement in UNICODE_FRACTIONS.items():
        text = text.replace(glyph, f" {replacement}")
    text = " ".join(text.split())

    amount: str | None = None
    unit = ""
    match = QUANTITY.match(text)
    if match:
        amount = match.group("amount")
        text = match.group("rest")
        words = text.split()
        if len(words) > 1 and is_known_unit(" ".join(words[:2])):
            unit, text = " ".join(words[:2]), " ".join(words[2:])
        elif len(words) > 1 and is_known_unit(words[0]):
            unit, text = words[0], " ".join(words[1:])

    notes = None
    if "," in text:
        text, notes = (part.strip() for part in text.split(",", 1))
    return {"name": text, "amount": amount, "unit": unit, "notes": notes or None}


class IngredientPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(validation_alias=AliasChoices("name", "ingredient", "item"))
    amount: float | str | None = Field(default=None, validation_alias=AliasChoices("amount", "quantity", "qty"))
    unit: str | None = ""
    notes: str | None = None
    alt_names: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("alt_names", "altNames", "synonyms")
    )

    @model_validator(mode="before")
    @classmethod
    def _from_line(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_ingredient_line(value)
        return value


class InstructionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = Field(validation_alias=AliasChoices("text", "description", "instruction", "name"))
    step: int | None = Field(default=None, validation_alias=AliasChoices("step", "position", "number"))
    time_minutes: float | str | None = Field(
        default=None, validation_alias=AliasChoices("time_minutes", "timeMinutes", "duration")
    )
    temperature: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"text": value}
        return value

    @field_validator("temperature", mode="before")
    @classmethod
    def _temperature_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class RecipePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1, validation_alias=AliasChoices("title", "name", "headline"))
    description: str | None = ""
    ingredients: list[IngredientPayload] = Field(
        default_factory=list, validation_alias=AliasChoices("ingredients", "recipeIngredient")
    )
    instructions: list[InstructionPayload] = Field(
        default_factory=list, validation_alias=AliasChoices("instructions", "steps", "recipeInstructions")
    )
    servings: float | str | None = Field(
        default=None, validation_alias=AliasChoices("servings", "recipeYield", "yield")
    )
    total_time_minutes: float | str | None = Field(
        default=None, validation_alias=AliasChoices("total_time_minutes", "totalTimeMinutes", "totalTime")
    )
    prep_time_minutes: float | str | None = Field(
        default=None, validation_alias=AliasChoices("prep_time_minutes", "prepTimeMinutes", "prepTime")
    )
    cook_time_minutes: float | str | None = Field(
        default=None, validation_alias=AliasChoices("cook_time_minutes", "cookTimeMinutes", "cookTime")
    )
    difficulty: str | None = "medium"
    cultural_authenticity: str | None = Field(
        default="adapted", validation_alias=AliasChoices("cultural_authenticity", "culturalAuthenticity")
    )
    cultural_context: str | None = Field(
        default=None, validation_alias=AliasChoices("cultural_context", "culturalContext")
    )
    cuisine: str | None = Field(default=None, validation_alias=AliasChoices("cuisine", "recipeCuisine"))
    images: list[str] = Field(default_factory=list, validation_alias=AliasChoices("images", "image", "imageUrl"))

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("ingredients", "instructions", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("images", mode="before")
    @classmethod
    def _image_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, dict):
            return [value.get("url", "")]
        if isinstance(value, list):
            return [item.get("url", "") if isinstance(item, dict) else item for item in value]
        return value

    @field_validator("servings", "cuisine", mode="before")
    @classmethod
    def _first_of_list(cls, value: Any) -> Any:
        if isinstance(value, list):
            return value[0] if value else None
        return value


def decode_recipe(payload: Any, *, provider: str, source_url: str = "") -> RecipeDraft:
    if not isinstance(payload, dict):
        raise DecodeError(provider, f"expected a JSON object, got {type(payload).__name__}")
    try:
        model = RecipePayload.model_validate(payload)
    except ValidationError as exc:
        field_errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        ]
        raise DecodeError(provider, "invalid recipe payload", field_errors) from exc

    return RecipeDraft(
        title=model.title,
        description=model.description or "",
        ingredients=tuple(
            Ingredient(
                name=item.name,
                amount=item.amount if item.amount is not None else 1,
                unit=item.unit or "",
                notes=item.notes,
                alt_names=tuple(item.alt_names),
            )
            for item in model.ingredients
        ),
        instructions=tuple(
            Instruction(
                step=item.step if item.step is not None else index,
                text=item.text,
                time_minutes=item.time_minutes,
                temperature=item.temperature,
            )
            for index, item in enumerate(model.instructions, start=1)
        ),
        metadata=RecipeMetadata(
            servings=model.servings,
            total_time_minutes=model.total_time_minutes,
            prep_time_minutes=model.prep_time_minutes,
            cook_time_minutes=model.cook_time_minutes,
            difficulty=model.difficulty or "medium",
            cultural_authenticity=model.cultural_authenticity or "adapted",
        ),
        images=tuple(url for url in model.images if url),
        cultural_context=model.cultural_context,
        cuisine=model.cuisine,
        source_url=source_url,
        provider=provider,
    )


def extract_json_object(text: str, *, provider: str) -> dict[str, Any]:
    """Locate and parse the JSON object in an LLM reply."""
    candidates = [text.strip()]
    candidates.extend(block.strip() for block in CODE_FENCE.findall(text))
    match = JSON_OBJECT.search(text)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        if not candidate:
            continue
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload
    raise DecodeError(provider, "no JSON object found in response")
