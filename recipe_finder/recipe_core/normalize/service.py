"""Deterministic cleanup of extracted recipe drafts.

``RecipeNormalizer.normalize`` never mutates its input and never raises: bad
values are replaced with safe defaults and reported as warnings. Every rule
is a fixed point, so normalizing an already-normalized recipe changes nothing.
"""

from __future__ import annotations

import math
import re
from typing import Any

from recipe_finder.recipe_core.models.interfaces import (
    FieldChange,
    Ingredient,
    Instruction,
    NormalizationResult,
    NormalizedRecipe,
    RecipeDraft,
    RecipeMetadata,
)
from recipe_finder.tools.web_utils import is_valid_url

UNIT_SYNONYMS = {
    "c": "cup", "cup": "cup", "cups": "cup",
    "tbsp": "tablespoon", "tbs": "tablespoon", "tbl": "tablespoon",
    "tablespoon": "tablespoon", "tablespoons": "tablespoon",
    "tsp": "teaspoon", "teaspoon": "teaspoon", "teaspoons": "teaspoon",
    "fl oz": "fluid ounce", "fl. oz": "fluid ounce", "fluid ounce": "fluid ounce",
    "fluid ounces": "fluid ounce",
    "pt": "pint", "pint": "pint", "pints": "pint",
    "qt": "quart", "quart": "quart", "quarts": "quart",
    "gal": "gallon", "gallon": "gallon", "gallons": "gallon",
    "ml": "milliliter", "milliliter": "milliliter", "milliliters": "milliliter",
    "millilitre": "milliliter", "millilitres": "milliliter",
    "l": "liter", "liter": "liter", "liters": "liter", "litre": "liter", "litres": "liter",
    "oz": "ounce", "ounce": "ounce", "ounces": "ounce",
    "lb": "pound", "lbs": "pound", "pound": "pound", "pounds": "pound",
    "g": "gram", "gr": "gram", "gram": "gram", "grams": "gram",
    "kg": "kilogram", "kilogram": "kilogram", "kilograms": "kilogram",
    "pc": "piece", "pcs": "piece", "piece": "piece", "pieces": "piece",
    "each": "piece", "whole": "piece",
    "clove": "clove", "cloves": "clove",
    "slice": "slice", "slices": "slice",
    "can": "can", "cans": "can",
    "pinch": "pinch", "pinches": "pinch",
    "dash": "dash", "dashes": "dash",
    "bunch": "bunch", "bunches": "bunch",
    "sprig": "sprig", "sprigs": "sprig",
    "stick": "stick", "sticks": "stick",
    "package": "package", "packages": "package", "pkg": "package",
}
DEFAULT_UNIT = "piece"

UNICODE_FRACTIONS = {
    "½": "1/2", "¼": "1/4", "¾": "3/4", "⅓": "1/3", "⅔": "2/3",
    "⅛": "1/8", "⅜": "3/8", "⅝": "5/8", "⅞": "7/8",
}

DIFFICULTY_MAP = {
    "easy": "easy", "beginner": "easy", "simple": "easy",
    "medium": "medium", "moderate": "medium", "intermediate": "medium",
    "hard": "hard", "difficult": "hard", "advanced": "hard", "expert": "hard",
}
AUTHENTICITY_MAP = {
    "traditional": "traditional", "authentic": "traditional", "classic": "traditional",
    "adapted": "adapted", "inspired": "adapted",
    "modern": "modern", "fusion": "modern", "contemporary": "modern",
}

DEFAULT_SERVINGS = 4
DEFAULT_TOTAL_MINUTES = 30
MAX_IMAGES = 5
TIME_MISMATCH_TOLERANCE = 10

TITLE_PREFIX = re.compile(r"^recipe\s*:\s*", re.IGNORECASE)
TITLE_SUFFIX = re.compile(r"\s+recipe$", re.IGNORECASE)
DESCRIPTION_PREFIX = re.compile(r"^(?:(?:this recipe is|this is|a)\s+)+", re.IGNORECASE)
PREP_PREFIX = re.compile(r"^(fresh|freshly|dried|chopped|diced|sliced|minced)\s+", re.IGNORECASE)
STEP_PREFIX = re.compile(r"^(?:step\s*)?\d+\s*(?:[.):]|-)(?!\d)\s*", re.IGNORECASE)
TEMPERATURE_FIELD = re.compile(
    r"(?<!\d)(\d{2,3})(?!\d)\s*(?:°|º|degrees?|deg)?\s*(?:([CF])(?:ahrenheit|elsius)?)?(?![a-z])",
    re.IGNORECASE,
)
TEMPERATURE_IN_TEXT = re.compile(
    r"(?<!\d)(\d{2,3})(?!\d)\s*(?:°|º|degrees?)\s*(?:([CF])(?:ahrenheit|elsius)?)?(?![a-z])",
    re.IGNORECASE,
)
ISO_DURATION = re.compile(
    r"^P(?:(\d+)D)?(?:T(?:(\d+(?:\.\d+)?)H)?(?:(\d+(?:\.\d+)?)M)?(?:\d+(?:\.\d+)?S)?)?$",
    re.IGNORECASE,
)
HOURS = re.compile(r"(\d+(?:\.\d+)?)\s*(?:h|hr|hrs|hour|hours)\b", re.IGNORECASE)
MINUTES = re.compile(r"(\d+(?:\.\d+)?)\s*(?:m|min|mins|minute|minutes)\b", re.IGNORECASE)


def _collapse(value: Any) -> str:
    return " ".join(str(value or "").split())


def _cap_word(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def _strip_repeatedly(pattern: re.Pattern[str], text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        text = pattern.sub("", text).strip()
    return text


def canonical_unit(unit: str) -> str:
    key = _collapse(unit).lower().rstrip(".")
    if not key:
        return DEFAULT_UNIT
    return UNIT_SYNONYMS.get(key, key)


def is_known_unit(token: str) -> bool:
    return _collapse(token).lower().rstrip(".") in UNIT_SYNONYMS


def _simple_quantity(text: str) -> float | None:
    text = text.strip()
    mixed = re.fullmatch(r"(\d+)\s+(\d+)\s*/\s*(\d+)", text)
    if mixed:
        whole, num, den = (int(g) for g in mixed.groups())
        return whole + num / den if den else None
    fraction = re.fullmatch(r"(\d+)\s*/\s*(\d+)", text)
    if fraction:
        num, den = (int(g) for g in fraction.groups())
        return num / den if den else None
    number = re.fullmatch(r"\d+(?:\.\d+)?|\.\d+", text)
    if number:
        return float(text)
    return None


def parse_quantity(value: Any) -> float | None:
    """Number, fraction, mixed number, unicode fraction or averaged range."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    text = str(value).strip().lower()
    for glyph, replacement in UNICODE_FRACTIONS.items():
        text = text.replace(glyph, f" {replacement}")
    text = " ".join(text.split())
    if not text:
        return None

    simple = _simple_quantity(text)
    if simple is not None:
        return simple

    span = re.fullmatch(r"(.+?)\s*(?:-|–|to)\s*(.+)", text)
    if span:
        low, high = _simple_quantity(span.group(1)), _simple_quantity(span.group(2))
        if low is not None and high is not None:
            return (low + high) / 2
        if low is not None:
            return low

    leading = re.match(r"(\d+\s+\d+\s*/\s*\d+|\d+\s*/\s*\d+|\d+(?:\.\d+)?)", text)
    if leading:
        return _simple_quantity(leading.group(1))
    return None


def _whole_minutes(total: float) -> int | None:
    # any positive duration rounds to at least one minute
    return max(1, int(round(total))) if total > 0 else None


def parse_minutes(value: Any) -> int | None:
    """Minutes from a number, ISO-8601 duration or free text like ``1 hr 30 min``."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return _whole_minutes(value) if math.isfinite(value) else None

    text = _collapse(value)
    if not text:
        return None
    iso = ISO_DURATION.match(text)
    if iso and text.upper() != "P":
        days, hours, minutes = iso.groups()
        total = int(days or 0) * 1440 + float(hours or 0) * 60 + float(minutes or 0)
        return _whole_minutes(total)

    total = sum(float(h) * 60 for h in HOURS.findall(text)) + sum(float(m) for m in MINUTES.findall(text))
    if total <= 0:
        bare = parse_quantity(text)
        total = bare or 0
    return _whole_minutes(total)


def _format_temperature(match: re.Match[str]) -> str:
    scale = (match.group(2) or "F").upper()
    return f"{int(match.group(1))}°{scale}"


class RecipeNormalizer:
    def __init__(self, *, preserve_original_units: bool = False):
        self.preserve_original_units = preserve_original_units

    def normalize(self, draft: RecipeDraft) -> NormalizationResult:
        changes: list[FieldChange] = []
        warnings: list[str] = []

        def track(field: str, before: Any, after: Any, reason: str) -> None:
            if before != after:
                changes.append(FieldChange(field=field, before=before, after=after, reason=reason))

        title = self._title(draft.title)
        track("title", draft.title, title, "title cleanup")

        description = self._description(draft.description)
        track("description", draft.description, description, "description cleanup")

        ingredients = tuple(
            self._ingredient(index, item, track, warnings) for index, item in enumerate(draft.ingredients)
        )
        instructions = self._instructions(draft.instructions, track, warnings)
        metadata = self._metadata(draft.metadata, track, warnings)

        cuisine = _collapse(draft.cuisine) or None
        cultural_context = _collapse(draft.cultural_context)
        if not cultural_context and cuisine:
            cultural_context = (
                f"This recipe represents {' '.join(_cap_word(w) for w in cuisine.split())} culinary traditions."
            )
        cultural_context_value = cultural_context or None
        track("cultural_context", draft.cultural_context, cultural_context_value, "default cultural context")

        images = self._images(draft.images)
        track("images", draft.images, images, "deduplicated, http(s) only, max 5")

        recipe = NormalizedRecipe(
            title=title,
            description=description,
            ingredients=ingredients,
            instructions=instructions,
            metadata=metadata,
            images=images,
            cultural_context=cultural_context_value,
            cuisine=cuisine,
            source_url=draft.source_url,
            provider=draft.provider,
            provenance=draft.provenance,
            placeholder=draft.placeholder,
            quality_score=getattr(draft, "quality_score", None),
        )
        return NormalizationResult(recipe=recipe, changes=tuple(changes), warnings=tuple(warnings))

    @staticmethod
    def _title(title: str) -> str:
        text = _collapse(title)
        previous = None
        while previous != text:
            previous = text
            text = _strip_repeatedly(TITLE_PREFIX, text)
            text = _strip_repeatedly(TITLE_SUFFIX, text)
        if not text:
            return "Untitled Dish"
        return " ".join(_cap_word(word) for word in text.split())

    @staticmethod
    def _description(description: str) -> str:
        text = _strip_repeatedly(DESCRIPTION_PREFIX, _collapse(description))
        return text[:1].upper() + text[1:]

    def _ingredient(self, index: int, item: Ingredient, track, warnings: list[str]) -> Ingredient:
        prefix = f"ingredients[{index}]"
        name = _collapse(item.name).lower().rstrip(",;")
        prep_words: list[str] = []
        match = PREP_PREFIX.match(name)
        while match:
            prep_words.append(match.group(1).lower())
            name = name[match.end():].strip()
            match = PREP_PREFIX.match(name)
        if not name:
            name = "unknown ingredient"
            warnings.append(f"{prefix}: missing ingredient name")
        track(f"{prefix}.name", item.name, name, "lowercased, preparation words moved to notes")

        notes = _collapse(item.notes)
        if prep_words:
            notes = ", ".join(prep_words) + (f"; {notes}" if notes else "")
        notes_value = notes or None
        track(f"{prefix}.notes", item.notes, notes_value, "preparation notes")

        quantity = parse_quantity(item.amount)
        if quantity is None or quantity <= 0:
            warnings.append(f"{prefix}: unparseable amount {item.amount!r}, defaulted to 1")
            quantity = 1.0
        amount = round(quantity, 2)
        if amount <= 0:
            amount = 1.0
        track(f"{prefix}.amount", item.amount, amount, "parsed to decimal")

        if self.preserve_original_units:
            unit = _collapse(item.unit) or DEFAULT_UNIT
        else:
            unit = canonical_unit(item.unit)
        track(f"{prefix}.unit", item.unit, unit, "canonical unit")

        alt_names = tuple(dict.fromkeys(_collapse(n).lower() for n in item.alt_names if _collapse(n)))
        return Ingredient(name=name, amount=amount, unit=unit, notes=notes_value, alt_names=alt_names)

    @staticmethod
    def _instructions(items: tuple[Instruction, ...], track, warnings: list[str]) -> tuple[Instruction, ...]:
        expected = list(range(1, len(items) + 1))
        if [item.step for item in items] != expected:
            warnings.append("instructions: non-sequential step numbers, renumbered 1..N")

        normalized: list[Instruction] = []
        for position, item in enumerate(items, start=1):
            prefix = f"instructions[{position - 1}]"
            text = _strip_repeatedly(STEP_PREFIX, _collapse(item.text))
            if not text:
                text = "Complete this cooking step"
                warnings.append(f"{prefix}: empty instruction text")
            text = text[:1].upper() + text[1:]
            if len(text) < 10:
                warnings.append(f"{prefix}: very short instruction")
            track(f"{prefix}.text", item.text, text, "step text cleanup")
            track(f"{prefix}.step", item.step, position, "renumbered")

            match = TEMPERATURE_FIELD.search(str(item.temperature)) if item.temperature else None
            if item.temperature and match is None:
                warnings.append(f"{prefix}: unparseable temperature {item.temperature!r}")
            if match is None:
                match = TEMPERATURE_IN_TEXT.search(text)
            temperature = _format_temperature(match) if match else None
            track(f"{prefix}.temperature", item.temperature, temperature, "temperature format")

            minutes = parse_minutes(item.time_minutes)
            track(f"{prefix}.time_minutes", item.time_minutes, minutes, "minutes")
            normalized.append(Instruction(step=position, text=text, time_minutes=minutes, temperature=temperature))
        return tuple(normalized)

    @staticmethod
    def _metadata(metadata: RecipeMetadata, track, warnings: list[str]) -> RecipeMetadata:
        servings_value = parse_quantity(metadata.servings)
        if servings_value is None or servings_value <= 0:
            if metadata.servings not in (None, ""):
                warnings.append(f"metadata: unparseable servings {metadata.servings!r}, defaulted to 4")
            servings_value = DEFAULT_SERVINGS
        servings_value = round(servings_value, 2)
        servings: float | int = int(servings_value) if float(servings_value).is_integer() else servings_value
        track("metadata.servings", metadata.servings, servings, "numeric servings")

        prep = parse_minutes(metadata.prep_time_minutes)
        cook = parse_minutes(metadata.cook_time_minutes)
        total = parse_minutes(metadata.total_time_minutes)
        if total is None:
            total = (prep or 0) + (cook or 0) or DEFAULT_TOTAL_MINUTES
        elif prep and cook and abs(prep + cook - total) > TIME_MISMATCH_TOLERANCE:
            warnings.append(f"metadata: prep ({prep}) + cook ({cook}) differs from total ({total})")
        track("metadata.prep_time_minutes", metadata.prep_time_minutes, prep, "minutes")
        track("metadata.cook_time_minutes", metadata.cook_time_minutes, cook, "minutes")
        track("metadata.total_time_minutes", metadata.total_time_minutes, total, "minutes, defaulted when missing")

        difficulty = DIFFICULTY_MAP.get(_collapse(metadata.difficulty).lower(), "medium")
        track("metadata.difficulty", metadata.difficulty, difficulty, "difficulty vocabulary")
        authenticity = AUTHENTICITY_MAP.get(_collapse(metadata.cultural_authenticity).lower(), "adapted")
        track(
            "metadata.cultural_authenticity",
            metadata.cultural_authenticity,
            authenticity,
            "authenticity vocabulary",
        )
        return RecipeMetadata(
            servings=servings,
            total_time_minutes=total,
            prep_time_minutes=prep,
            cook_time_minutes=cook,
            difficulty=difficulty,
            cultural_authenticity=authenticity,
        )

    @staticmethod
    def _images(images: tuple[str, ...]) -> tuple[str, ...]:
        unique: list[str] = []
        for url in images:
            url = str(url or "").strip()
            if url and is_valid_url(url) and url not in unique:
                unique.append(url)
        return tuple(unique[:MAX_IMAGES])


def normalize_recipe(draft: RecipeDraft, *, preserve_original_units: bool = False) -> NormalizationResult:
    return RecipeNormalizer(preserve_original_units=preserve_original_units).normalize(draft)
