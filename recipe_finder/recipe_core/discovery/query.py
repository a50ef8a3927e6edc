from __future__ import annotations

import re

from recipe_finder.recipe_core.models.interfaces import SearchRequest

CUISINE_TERMS = {
    "mexican": "authentic traditional mexican",
    "italian": "authentic traditional italian",
    "chinese": "authentic traditional chinese",
    "indian": "authentic traditional indian",
    "japanese": "authentic traditional japanese washoku",
    "thai": "authentic traditional thai",
    "french": "authentic traditional french",
    "mediterranean": "authentic traditional mediterranean",
    "middle-eastern": "authentic traditional middle eastern",
    "korean": "authentic traditional korean",
    "vietnamese": "authentic traditional vietnamese",
    "greek": "authentic traditional greek",
    "spanish": "authentic traditional spanish",
    "moroccan": "authentic traditional moroccan",
    "lebanese": "authentic traditional lebanese",
    "turkish": "authentic traditional turkish",
    "ethiopian": "authentic traditional ethiopian",
    "caribbean": "authentic traditional caribbean",
    "brazilian": "authentic traditional brazilian",
    "peruvian": "authentic traditional peruvian",
    "west african": "authentic traditional west african",
}

DIETARY_TERMS = {
    "vegetarian": "vegetarian meatless",
    "vegan": "vegan plant-based",
    "gluten-free": "gluten-free",
    "dairy-free": "dairy-free",
    "nut-free": "nut-free",
    "halal": "halal",
    "kosher": "kosher",
    "keto": "keto low-carb",
    "paleo": "paleo",
    "low-sodium": "low-sodium",
}

BROADEN_STRIP = re.compile(
    r"\b(authentic|traditional|classic|easy|quick|simple|homemade|from scratch|"
    r"plant-based|meatless|low-carb|washoku)\b",
    re.IGNORECASE,
)

STRICT_EXCLUSIONS = '-gallery -collection -roundup -"best recipes" -"top recipes"'


def _dedupe_tokens(text: str) -> str:
    seen: set[str] = set()
    tokens: list[str] = []
    for token in text.split():
        key = token.lower()
        if key in seen:
            continue
        seen.add(key)
        tokens.append(token)
    return " ".join(tokens)


def build_search_query(request: SearchRequest, *, strict: bool = False) -> str:
    parts = [request.query.strip()]
    cuisine = (request.cultural_context or "").strip().lower()
    if cuisine:
        parts.append(CUISINE_TERMS.get(cuisine, f"authentic traditional {cuisine}"))
    for restriction in request.dietary_restrictions[:2]:
        key = restriction.strip().lower()
        if key:
            parts.append(DIETARY_TERMS.get(key, key))
    if request.max_time_minutes is not None and request.max_time_minutes <= 30:
        parts.append("quick easy")
    query = _dedupe_tokens(" ".join(p for p in parts if p))
    if not re.search(r"\brecipes?\b", query, re.IGNORECASE):
        query = f"{query} recipe"
    if strict:
        query = f"{query} {STRICT_EXCLUSIONS}"
    return query


def broaden_query(query: str) -> str:
    """Drop exclusion operators and qualifiers that over-constrain the search."""
    query = re.sub(r'\s-"[^"]*"|\s-\S+', " ", f" {query}")
    query = BROADEN_STRIP.sub(" ", query)
    query = _dedupe_tokens(" ".join(query.split()))
    if not re.search(r"\brecipes?\b", query, re.IGNORECASE):
        query = f"{query} recipe"
    return query.strip()
