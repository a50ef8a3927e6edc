from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal


Provenance = Literal["extracted", "cached", "placeholder", "fallback"]
Difficulty = Literal["easy", "medium", "hard"]
Authenticity = Literal["traditional", "adapted", "modern"]
IssueCategory = Literal["structure", "content", "quality", "cultural", "images"]
Severity = Literal["critical", "major", "minor"]


@dataclass(frozen=True, slots=True)
class SearchHit:
    title: str
    url: str
    snippet: str = ""
    raw_score: float = 0.0
    published_date: str | None = None


@dataclass(frozen=True, slots=True)
class ScoredUrl:
    hit: SearchHit
    quality_score: float
    domain: str

    @property
    def url(self) -> str:
        return self.hit.url

    @property
    def title(self) -> str:
        return self.hit.title


@dataclass(frozen=True, slots=True)
class Ingredient:
    name: str
    amount: float | str = 1
    unit: str = ""
    notes: str | None = None
    alt_names: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Instruction:
    step: int
    text: str
    time_minutes: int | None = None
    temperature: str | None = None


@dataclass(frozen=True, slots=True)
class RecipeMetadata:
    servings: float | int | str | None = None
    total_time_minutes: int | str | None = None
    prep_time_minutes: int | str | None = None
    cook_time_minutes: int | str | None = None
    difficulty: str = "medium"
    cultural_authenticity: str = "adapted"


@dataclass(frozen=True, slots=True)
class RecipeDraft:
    """Unvalidated, unnormalized extraction result.

    Ingredient/instruction sequences may be empty but are never None.
    """

    title: str
    description: str = ""
    ingredients: tuple[Ingredient, ...] = ()
    instructions: tuple[Instruction, ...] = ()
    metadata: RecipeMetadata = field(default_factory=RecipeMetadata)
    images: tuple[str, ...] = ()
    cultural_context: str | None = None
    cuisine: str | None = None
    source_url: str = ""
    provider: str = ""
    provenance: Provenance = "extracted"
    placeholder: bool = False

    @property
    def has_content(self) -> bool:
        return any(i.name.strip() for i in self.ingredients) or any(
            s.text.strip() for s in self.instructions
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class NormalizedRecipe(RecipeDraft):
    """RecipeDraft after canonicalization; amounts are floats, total time > 0."""

    quality_score: int | None = None


@dataclass(frozen=True, slots=True)
class FieldChange:
    field: str
    before: Any
    after: Any
    reason: str


@dataclass(frozen=True, slots=True)
class NormalizationResult:
    recipe: NormalizedRecipe
    changes: tuple[FieldChange, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    category: IssueCategory
    severity: Severity
    message: str
    field: str = ""
    fixable: bool = False


@dataclass(frozen=True, slots=True)
class ValidationResult:
    is_valid: bool
    score: int
    issues: tuple[ValidationIssue, ...] = ()
    recommendations: tuple[str, ...] = ()

    @property
    def critical_issues(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "critical"]


@dataclass(frozen=True, slots=True)
class AttemptError:
    provider: str
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.provider} [{self.kind}]: {self.message}"


@dataclass(frozen=True, slots=True)
class ExtractionOutcome:
    url: str
    draft: RecipeDraft
    provider: str
    cached: bool = False
    errors: tuple[AttemptError, ...] = ()

    @property
    def placeholder(self) -> bool:
        return self.draft.placeholder


@dataclass(slots=True)
class SearchRequest:
    query: str
    cultural_context: str | None = None
    dietary_restrictions: list[str] = field(default_factory=list)
    max_results: int = 3
    max_time_minutes: int | None = None


@dataclass(slots=True)
class SearchOptions:
    max_concurrent: int | None = None
    timeout_ms: int | None = None


@dataclass(slots=True)
class RecipeSearchResponse:
    recipes: list[NormalizedRecipe]
    total_found: int
    search_time_ms: int
    source: str
    errors: list[str] = field(default_factory=list)
    provider_errors: list[str] = field(default_factory=list)
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipes": [recipe.to_dict() for recipe in self.recipes],
            "total_found": self.total_found,
            "search_time_ms": self.search_time_ms,
            "source": self.source,
            "errors": list(self.errors),
            "provider_errors": list(self.provider_errors),
            "attempts": self.attempts,
        }
