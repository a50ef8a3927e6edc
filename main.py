"""Recipe Finder - multi-provider recipe discovery and extraction

Simple CLI for running recipe searches.
"""

import argparse
import asyncio
import json
import sys

from recipe_finder.agents.factory import create_orchestrator
from recipe_finder.models.errors import RecipeSearchError
from recipe_finder.models.events import SSEEvent
from recipe_finder.recipe_core.models.interfaces import SearchRequest
from recipe_finder.services import logger  # noqa: F401  configures loguru sinks


def print_progress(event: SSEEvent) -> None:
    event_type = event.event.value
    data = event.data

    if event_type == "state_changed":
        print(f"\n[~] {data.get('previous_state')} -> {data.get('state')} (attempt {data.get('attempt')})")

    elif event_type == "urls_found":
        urls = data.get("urls", [])
        print(f"  [*] {len(urls)} candidate URLs")
        for url in urls:
            print(f"      {url}")

    elif event_type == "recipe_processed":
        print(
            f"  [+] {data.get('status')}: {data.get('url')} "
            f"({data.get('recipes_processed')}/{data.get('total_recipes')})"
        )

    elif event_type == "retry_scheduled":
        print(f"\n[!] Retrying in {data.get('delay_ms')}ms: {data.get('reason')}")

    elif event_type == "fallback_used":
        print(f"\n[!] Added {data.get('count')} curated fallback recipes: {', '.join(data.get('titles', []))}")

    elif event_type == "error":
        print(f"\n[!] Error: {data.get('message', 'Unknown error')}")


async def run_search(args: argparse.Namespace) -> int:
    request = SearchRequest(
        query=args.query,
        cultural_context=args.cuisine,
        dietary_restrictions=args.diet or [],
        max_results=args.max_results,
        max_time_minutes=args.max_time,
    )
    if not args.json:
        print(f"Recipe search: {request.query}")
        print("-" * 50)

    orchestrator = create_orchestrator()
    try:
        response = await orchestrator.search(request, on_progress=None if args.json else print_progress)
    except RecipeSearchError as exc:
        print(f"\n[!] {exc}", file=sys.stderr)
        for error in exc.errors:
            print(f"    - {error}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(response.to_dict(), indent=2, default=str))
        return 0

    print(f"\n[*] {len(response.recipes)} recipes in {response.search_time_ms}ms (source: {response.source})")
    for recipe in response.recipes:
        print(f"\n{'=' * 50}")
        print(f"{recipe.title}  [{recipe.provenance}, score {recipe.quality_score}]")
        print(recipe.source_url or "(curated)")
        print(f"{'=' * 50}")
        for item in recipe.ingredients:
            print("  - " + " ".join(part for part in (f"{item.amount:g}", item.unit, item.name) if part))
        for step in recipe.instructions:
            print(f"  {step.step}. {step.text}")
    if response.errors:
        print("\nSkipped:")
        for error in response.errors:
            print(f"  - {error}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Recipe Finder")
    parser.add_argument("--query", "-q", required=True, help="Recipe search query")
    parser.add_argument("--cuisine", "-c", help="Cultural cuisine, e.g. ethiopian")
    parser.add_argument("--diet", "-d", action="append", help="Dietary restriction (repeatable)")
    parser.add_argument("--max-results", "-n", type=int, default=3, help="Number of recipes (default: 3)")
    parser.add_argument("--max-time", type=int, help="Maximum total time in minutes")
    parser.add_argument("--json", action="store_true", help="Print the response as JSON")

    args = parser.parse_args()

    sys.exit(asyncio.run(run_search(args)))


if __name__ == "__main__":
    main()
