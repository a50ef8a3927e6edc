from __future__ import annotations

import re
from dataclasses import dataclass

from recipe_finder.recipe_core.models.interfaces import (
    RecipeDraft,
    ValidationIssue,
    ValidationResult,
)
from recipe_finder.recipe_core.normalize.service import parse_minutes, parse_quantity

SEVERITY_PENALTY = {"critical": 15, "major": 8, "minor": 3}
SYNONYM_BONUS = 2
HTTPS_BONUS = 2

TIMING_HINT = re.compile(r"\b\d+\s*(?:-\s*\d+\s*)?(?:min|minute|hour|hr|second|sec)s?\b", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ValidationProfile:
    name: str
    min_score: int = 70
    min_title_length: int = 1
    min_ingredients: int = 1
    min_instructions: int = 1
    min_total_time_minutes: int = 0


DEFAULT_PROFILE = ValidationProfile("default")
STRICT_PROFILE = ValidationProfile(
    "strict", min_score=80, min_title_length=3, min_ingredients=3, min_instructions=3, min_total_time_minutes=5
)
MEAL_PLANNING_PROFILE = ValidationProfile(
    "meal_planning", min_score=70, min_title_length=3, min_ingredients=2, min_instructions=2, min_total_time_minutes=5
)
ACCEPTABLE_PROFILE = ValidationProfile("acceptable", min_score=50)

PROFILES = {
    profile.name: profile
    for profile in (DEFAULT_PROFILE, STRICT_PROFILE, MEAL_PLANNING_PROFILE, ACCEPTABLE_PROFILE)
}


def get_profile(name: str) -> ValidationProfile:
    try:
        return PROFILES[name.lower().strip()]
    except KeyError:
        raise ValueError(f"Unknown validation profile: {name}") from None


class RecipeValidator:
    """Structural checks, quality heuristics and a 0-100 score."""

    def __init__(self, profile: ValidationProfile = DEFAULT_PROFILE):
        self.profile = profile

    def validate(
        self,
        recipe: RecipeDraft,
        *,
        profile: ValidationProfile | None = None,
        min_score: int | None = None,
        expected_cuisine: str | None = None,
    ) -> ValidationResult:
        profile = profile or self.profile
        threshold = profile.min_score if min_score is None else int(min_score)
        issues: list[ValidationIssue] = []
        issues.extend(self._structural_issues(recipe, profile))
        issues.extend(self._quality_issues(recipe))
        issues.extend(self._cultural_issues(recipe, expected_cuisine))

        score = 100 - sum(SEVERITY_PENALTY[issue.severity] for issue in issues)
        if any(item.alt_names for item in recipe.ingredients):
            score += SYNONYM_BONUS
        if recipe.source_url.lower().startswith("https://"):
            score += HTTPS_BONUS
        score = max(0, min(100, score))

        has_critical = any(issue.severity == "critical" for issue in issues)
        return ValidationResult(
            is_valid=not has_critical and score >= threshold,
            score=score,
            issues=tuple(issues),
            recommendations=tuple(self._recommendations(recipe, issues)),
        )

    @staticmethod
    def _structural_issues(recipe: RecipeDraft, profile: ValidationProfile) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        if recipe.placeholder:
            issues.append(
                ValidationIssue("structure", "critical", "Placeholder recipe: extraction failed", "placeholder")
            )

        title = recipe.title.strip()
        if len(title) < max(profile.min_title_length, 1):
            issues.append(ValidationIssue("structure", "critical", "Recipe title is missing or too short", "title"))

        ingredients = [item for item in recipe.ingredients if item.name.strip()]
        min_ingredients = max(profile.min_ingredients, 1)
        if len(ingredients) < min_ingredients:
            issues.append(
                ValidationIssue(
                    "structure",
                    "critical",
                    f"Recipe has {len(ingredients)} ingredients (<{min_ingredients} required)",
                    "ingredients",
                )
            )

        instructions = [step for step in recipe.instructions if step.text.strip()]
        min_instructions = max(profile.min_instructions, 1)
        if len(instructions) < min_instructions:
            issues.append(
                ValidationIssue(
                    "structure",
                    "critical",
                    f"Recipe has {len(instructions)} instructions (<{min_instructions} required)",
                    "instructions",
                )
            )

        servings = parse_quantity(recipe.metadata.servings)
        if servings is not None and servings <= 0:
            issues.append(ValidationIssue("structure", "critical", "Servings must be positive", "metadata.servings"))

        total = parse_minutes(recipe.metadata.total_time_minutes)
        if profile.min_total_time_minutes and (total or 0) < profile.min_total_time_minutes:
            issues.append(
                ValidationIssue(
                    "structure",
                    "major",
                    f"Total time below {profile.min_total_time_minutes} minutes",
                    "metadata.total_time_minutes",
                    fixable=True,
                )
            )
        return issues

    @staticmethod
    def _quality_issues(recipe: RecipeDraft) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []

        short_names = [item.name for item in recipe.ingredients if 0 < len(item.name.strip()) < 3]
        if short_names:
            issues.append(
                ValidationIssue(
                    "content", "minor", f"{len(short_names)} ingredient names are too short", "ingredients"
                )
            )
        if recipe.ingredients and not any(item.alt_names for item in recipe.ingredients):
            issues.append(
                ValidationIssue("quality", "minor", "No alternate ingredient names provided", "ingredients.alt_names")
            )

        short_steps = [step.step for step in recipe.instructions if 0 < len(step.text.strip()) < 10]
        if short_steps:
            issues.append(
                ValidationIssue(
                    "content",
                    "minor",
                    f"Instruction steps {short_steps} are too short",
                    "instructions",
                    fixable=True,
                )
            )

        if recipe.instructions and not any(
            step.temperature or step.time_minutes or TIMING_HINT.search(step.text) for step in recipe.instructions
        ):
            issues.append(
                ValidationIssue(
                    "quality", "minor", "Instructions give no temperature or timing guidance", "instructions"
                )
            )

        if not recipe.images:
            issues.append(ValidationIssue("images", "minor", "Recipe has no images", "images"))
        if not recipe.description.strip():
            issues.append(ValidationIssue("content", "minor", "Recipe has no description", "description", fixable=True))
        return issues

    @staticmethod
    def _cultural_issues(recipe: RecipeDraft, expected_cuisine: str | None) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        context = (recipe.cultural_context or "").strip()
        if len(context) < 20:
            issues.append(
                ValidationIssue("cultural", "minor", "Cultural context is thin", "cultural_context", fixable=True)
            )

        cuisine = (expected_cuisine or "").strip().lower()
        if cuisine and recipe.cuisine:
            haystack = " ".join(
                [recipe.cuisine or "", recipe.title, recipe.description, context]
            ).lower()
            if cuisine not in haystack:
                issues.append(
                    ValidationIssue(
                        "cultural",
                        "minor",
                        f"Recipe does not reference the requested {cuisine} cuisine",
                        "cuisine",
                    )
                )
        return issues

    @staticmethod
    def _recommendations(recipe: RecipeDraft, issues: list[ValidationIssue]) -> list[str]:
        recommendations: list[str] = []
        if len(recipe.ingredients) < 5:
            recommendations.append("Consider adding more ingredients for a complete recipe")
        if len(recipe.instructions) < 5:
            recommendations.append("Consider breaking instructions into more detailed steps")
        if not recipe.images:
            recommendations.append("Add images to improve visual appeal")
        fixable = sum(1 for issue in issues if issue.fixable)
        if fixable:
            recommendations.append(f"{fixable} issues can be fixed automatically by normalization")
        if not recipe.metadata.prep_time_minutes and not recipe.metadata.cook_time_minutes:
            recommendations.append("Add prep and cook times for better meal planning")
        return recommendations
