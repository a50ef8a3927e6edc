"""Curated recipes served when discovery and extraction cannot fill a request."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Iterable

from recipe_finder.recipe_core.extract.decode import decode_recipe
from recipe_finder.recipe_core.models.interfaces import NormalizedRecipe
from recipe_finder.recipe_core.normalize.service import RecipeNormalizer

FALLBACK_PROVIDER = "fallback"


@dataclass(frozen=True, slots=True)
class FallbackRecipe:
    payload: dict[str, Any]
    source_url: str = ""
    regions: tuple[str, ...] = ()
    dietary: tuple[str, ...] = ()

    @property
    def title(self) -> str:
        return str(self.payload["title"])

    @property
    def cuisine(self) -> str:
        return str(self.payload.get("cuisine") or "")


CATALOG: tuple[FallbackRecipe, ...] = (
    FallbackRecipe(
        {
            "title": "Chicken Soft Tacos",
            "description": "Simple weeknight chicken tacos with salsa and lime.",
            "cuisine": "Mexican",
            "ingredients": [
                "1 pound boneless chicken breast, sliced",
                "1 tablespoon chili powder",
                "1 teaspoon ground cumin",
                "2 tablespoons vegetable oil",
                "8 corn tortillas",
                "1 cup salsa",
                "1 lime, cut into wedges",
            ],
            "instructions": [
                "Toss the chicken with chili powder, cumin and a pinch of salt.",
                "Heat the oil in a skillet over medium-high heat and cook the chicken for 8 minutes until browned.",
                "Warm the tortillas in a dry pan for 30 seconds per side.",
                "Fill the tortillas with chicken, top with salsa and serve with lime wedges.",
            ],
            "servings": 4,
            "prep_time_minutes": 10,
            "cook_time_minutes": 20,
            "total_time_minutes": 30,
            "difficulty": "easy",
            "cultural_authenticity": "adapted",
            "cultural_context": "Soft tacos are an everyday street food across Mexico, built on corn tortillas.",
        },
        source_url="https://www.allrecipes.com/recipe/70734/chicken-soft-tacos/",
        regions=("latin american", "tex-mex"),
        dietary=("gluten-free", "dairy-free"),
    ),
    FallbackRecipe(
        {
            "title": "Indian Chicken Curry",
            "description": "Aromatic chicken simmered in a spiced tomato and onion gravy.",
            "cuisine": "Indian",
            "ingredients": [
                "2 tablespoons vegetable oil",
                "1 large onion, diced",
                "3 cloves garlic, minced",
                "1 tablespoon grated ginger",
                "2 tablespoons curry powder",
                "1 can diced tomatoes",
                "1.5 pounds chicken thighs, cubed",
                "1 cup coconut milk",
            ],
            "instructions": [
                "Heat the oil in a large pan and cook the onion for 8 minutes until golden.",
                "Stir in garlic, ginger and curry powder and cook for 1 minute until fragrant.",
                "Add the tomatoes and chicken, cover and simmer for 20 minutes.",
                "Stir in the coconut milk and simmer 5 more minutes before serving with rice.",
            ],
            "servings": 4,
            "prep_time_minutes": 15,
            "cook_time_minutes": 35,
            "total_time_minutes": 50,
            "difficulty": "medium",
            "cultural_authenticity": "adapted",
            "cultural_context": "Home-style curries like this one are staples of North Indian family cooking.",
        },
        source_url="https://www.allrecipes.com/recipe/212721/indian-chicken-curry/",
        regions=("south asian",),
        dietary=("gluten-free", "dairy-free"),
    ),
    FallbackRecipe(
        {
            "title": "Simple Marinara Sauce",
            "description": "A quick tomato sauce with garlic, olive oil and basil for pasta.",
            "cuisine": "Italian",
            "ingredients": [
                "2 tablespoons olive oil",
                "4 cloves garlic, minced",
                "1 can crushed tomatoes",
                "1 teaspoon dried oregano",
                "8 fresh basil leaves",
                "1 pound spaghetti",
            ],
            "instructions": [
                "Warm the olive oil in a saucepan and cook the garlic for 1 minute without browning.",
                "Add the tomatoes and oregano and simmer for 20 minutes, stirring occasionally.",
                "Cook the spaghetti in salted boiling water for 10 minutes until al dente.",
                "Tear in the basil, season to taste and toss the sauce with the pasta.",
            ],
            "servings": 4,
            "prep_time_minutes": 5,
            "cook_time_minutes": 25,
            "total_time_minutes": 30,
            "difficulty": "easy",
            "cultural_authenticity": "traditional",
            "cultural_context": "Marinara is the plain tomato sauce of Southern Italian kitchens.",
        },
        source_url="https://www.allrecipes.com/recipe/158140/simple-marinara-sauce/",
        regions=("mediterranean", "european"),
        dietary=("vegan", "vegetarian", "dairy-free"),
    ),
    FallbackRecipe(
        {
            "title": "Restaurant Style Fried Rice",
            "description": "Day-old rice stir fried with egg, vegetables and soy sauce.",
            "cuisine": "Chinese",
            "ingredients": [
                "3 cups cooked rice, chilled",
                "2 tablespoons vegetable oil",
                "2 eggs, beaten",
                "1 cup frozen peas and carrots",
                "3 green onions, sliced",
                "3 tablespoons soy sauce",
            ],
            "instructions": [
                "Heat the oil in a wok over high heat and scramble the eggs for 1 minute, then set aside.",
                "Stir fry the peas and carrots for 3 minutes.",
                "Add the rice and soy sauce and toss for 5 minutes until heated through.",
                "Fold in the eggs and green onions and serve hot.",
            ],
            "servings": 4,
            "prep_time_minutes": 10,
            "cook_time_minutes": 10,
            "total_time_minutes": 20,
            "difficulty": "easy",
            "cultural_authenticity": "adapted",
            "cultural_context": "Fried rice began as a way to use leftover rice in Chinese home kitchens.",
        },
        source_url="https://www.allrecipes.com/recipe/79543/fried-rice-restaurant-style/",
        regions=("asian", "east asian"),
        dietary=("vegetarian", "dairy-free"),
    ),
    FallbackRecipe(
        {
            "title": "Nigerian Jollof Rice",
            "description": "Long-grain rice cooked in a smoky pepper and tomato base.",
            "cuisine": "West African",
            "ingredients": [
                "3 tablespoons vegetable oil",
                "1 onion, diced",
                "2 red bell peppers, chopped",
                "1 scotch bonnet pepper",
                "3 tablespoons tomato paste",
                "2 cups long grain rice",
                "3 cups vegetable broth",
                "2 bay leaves",
            ],
            "instructions": [
                "Blend the bell peppers, scotch bonnet and half the onion into a smooth puree.",
                "Fry the remaining onion in oil for 5 minutes, add tomato paste and fry 3 minutes more.",
                "Pour in the pepper puree and simmer for 15 minutes until reduced.",
                "Stir in rice, broth and bay leaves, cover tightly and cook on low for 30 minutes.",
            ],
            "servings": 6,
            "prep_time_minutes": 15,
            "cook_time_minutes": 50,
            "total_time_minutes": 65,
            "difficulty": "medium",
            "cultural_authenticity": "traditional",
            "cultural_context": "Jollof rice is a celebration dish shared across Nigeria, Ghana and Senegal.",
        },
        source_url="https://www.allrecipes.com/recipe/231944/nigerian-jollof-rice/",
        regions=("african", "nigerian"),
        dietary=("vegan", "vegetarian", "gluten-free", "dairy-free"),
    ),
    FallbackRecipe(
        {
            "title": "Teriyaki Chicken",
            "description": "Pan-glazed chicken thighs in a sweet soy and mirin sauce.",
            "cuisine": "Japanese",
            "ingredients": [
                "1.5 pounds chicken thighs",
                "0.25 cup soy sauce",
                "2 tablespoons mirin",
                "1 tablespoon brown sugar",
                "1 teaspoon grated ginger",
            ],
            "instructions": [
                "Whisk the soy sauce, mirin, sugar and ginger together.",
                "Sear the chicken skin side down for 7 minutes, then turn and cook 5 minutes more.",
                "Pour in the sauce and simmer for 3 minutes, basting until glossy.",
            ],
            "servings": 4,
            "prep_time_minutes": 10,
            "cook_time_minutes": 20,
            "total_time_minutes": 30,
            "difficulty": "easy",
            "cultural_authenticity": "adapted",
            "cultural_context": "Teriyaki describes the Japanese technique of grilling with a shiny soy glaze.",
        },
        source_url="https://www.allrecipes.com/recipe/128532/teriyaki-chicken/",
        regions=("asian", "east asian"),
        dietary=("dairy-free",),
    ),
    FallbackRecipe(
        {
            "title": "Slow Cooker Beef Stew",
            "description": "Beef, potatoes and carrots braised low and slow in broth.",
            "cuisine": "American",
            "ingredients": [
                "2 pounds beef chuck, cubed",
                "0.25 cup all-purpose flour",
                "4 cups beef broth",
                "3 potatoes, diced",
                "4 carrots, sliced",
                "1 onion, chopped",
                "1 teaspoon paprika",
            ],
            "instructions": [
                "Toss the beef with flour, paprika and a pinch of salt.",
                "Place the beef and vegetables in the slow cooker and pour over the broth.",
                "Cover and cook on low for 8 hours until the beef is tender.",
            ],
            "servings": 6,
            "prep_time_minutes": 20,
            "cook_time_minutes": 480,
            "total_time_minutes": 500,
            "difficulty": "easy",
            "cultural_authenticity": "traditional",
            "cultural_context": "Beef stew is a cold-weather staple of American home cooking.",
        },
        source_url="https://www.allrecipes.com/recipe/14685/slow-cooker-beef-stew-i/",
        regions=("north american",),
        dietary=("dairy-free",),
    ),
    FallbackRecipe(
        {
            "title": "Grilled Salmon",
            "description": "Salmon fillets marinated in lemon, garlic and herbs, then grilled.",
            "cuisine": "American",
            "ingredients": [
                "4 salmon fillets",
                "3 tablespoons olive oil",
                "2 tablespoons lemon juice",
                "2 cloves garlic, minced",
                "1 teaspoon dried dill",
            ],
            "instructions": [
                "Combine the oil, lemon juice, garlic and dill and marinate the salmon for 15 minutes.",
                "Preheat the grill to medium-high heat, about 400F.",
                "Grill the salmon for 6 minutes per side until it flakes easily.",
            ],
            "servings": 4,
            "prep_time_minutes": 20,
            "cook_time_minutes": 15,
            "total_time_minutes": 35,
            "difficulty": "easy",
            "cultural_authenticity": "modern",
            "cultural_context": "Grilled salmon reflects the Pacific Northwest tradition of cooking fish over fire.",
        },
        source_url="https://www.allrecipes.com/recipe/12720/grilled-salmon-i/",
        regions=("north american", "seafood"),
        dietary=("gluten-free", "dairy-free", "pescatarian"),
    ),
    FallbackRecipe(
        {
            "title": "Greek Lemon Chicken And Potatoes",
            "description": "Chicken and potato wedges roasted with lemon, garlic and oregano.",
            "cuisine": "Greek",
            "ingredients": [
                "6 chicken thighs",
                "4 potatoes, cut into wedges",
                "0.33 cup olive oil",
                "0.25 cup lemon juice",
                "4 cloves garlic, minced",
                "1 tablespoon dried oregano",
            ],
            "instructions": [
                "Preheat the oven to 425F.",
                "Whisk oil, lemon juice, garlic and oregano and toss with the chicken and potatoes.",
                "Roast in a single layer for 45 minutes, turning the potatoes halfway through.",
            ],
            "servings": 6,
            "prep_time_minutes": 15,
            "cook_time_minutes": 45,
            "total_time_minutes": 60,
            "difficulty": "easy",
            "cultural_authenticity": "traditional",
            "cultural_context": "Lemon and oregano roasts are a Sunday table favourite in Greek households.",
        },
        source_url="https://www.allrecipes.com/recipe/231644/greek-lemon-chicken-and-potatoes/",
        regions=("mediterranean", "european"),
        dietary=("gluten-free", "dairy-free"),
    ),
    FallbackRecipe(
        {
            "title": "Ethiopian Red Lentil Stew",
            "description": "Misir wot: red lentils simmered with onions and berbere spice.",
            "cuisine": "Ethiopian",
            "ingredients": [
                "2 cups red lentils, rinsed",
                "3 tablespoons olive oil",
                "2 onions, finely chopped",
                "3 cloves garlic, minced",
                "2 tablespoons berbere spice",
                "2 tablespoons tomato paste",
                "4 cups water",
            ],
            "instructions": [
                "Cook the onions in a dry pot for 10 minutes until soft, then add the oil.",
                "Stir in garlic, berbere and tomato paste and cook for 3 minutes.",
                "Add the lentils and water and simmer for 25 minutes until thick, stirring often.",
                "Season with salt and serve with injera or rice.",
            ],
            "servings": 4,
            "prep_time_minutes": 10,
            "cook_time_minutes": 40,
            "total_time_minutes": 50,
            "difficulty": "easy",
            "cultural_authenticity": "traditional",
            "cultural_context": "Misir wot is a fasting-day stew central to Ethiopian Orthodox vegan cooking.",
        },
        regions=("african", "east african"),
        dietary=("vegan", "vegetarian", "gluten-free", "dairy-free"),
    ),
    FallbackRecipe(
        {
            "title": "Chana Masala",
            "description": "Chickpeas stewed in a tangy tomato, onion and garam masala sauce.",
            "cuisine": "Indian",
            "ingredients": [
                "2 cans chickpeas, drained",
                "2 tablespoons vegetable oil",
                "1 onion, diced",
                "1 tablespoon grated ginger",
                "2 teaspoons garam masala",
                "1 can crushed tomatoes",
            ],
            "instructions": [
                "Cook the onion in oil for 8 minutes until golden.",
                "Add ginger and garam masala and stir for 1 minute.",
                "Add tomatoes and chickpeas and simmer for 20 minutes until thickened.",
            ],
            "servings": 4,
            "prep_time_minutes": 10,
            "cook_time_minutes": 30,
            "total_time_minutes": 40,
            "difficulty": "easy",
            "cultural_authenticity": "traditional",
            "cultural_context": "Chana masala is a Punjabi street food sold from carts across North India.",
        },
        regions=("south asian",),
        dietary=("vegan", "vegetarian", "gluten-free", "dairy-free"),
    ),
)

_normalizer = RecipeNormalizer()


def _words(text: str) -> set[str]:
    return set(re.findall(r"[a-z]+", text.lower()))


def _title_key(title: str) -> str:
    return " ".join(sorted(_words(title)))


def _rank(
    entry: FallbackRecipe,
    cuisine: str,
    dietary: set[str],
    query_words: set[str],
) -> tuple[int, int, int]:
    diet_ok = int(dietary.issubset(entry.dietary))
    cuisine_match = 0
    if cuisine:
        cuisine_match = int(
            cuisine in entry.cuisine.lower() or any(cuisine in region for region in entry.regions)
        )
    haystack = _words(" ".join([entry.title, entry.cuisine, *entry.regions]))
    return diet_ok, cuisine_match, len(query_words & haystack)


def to_normalized(entry: FallbackRecipe) -> NormalizedRecipe:
    draft = decode_recipe(entry.payload, provider=FALLBACK_PROVIDER, source_url=entry.source_url)
    recipe = _normalizer.normalize(draft).recipe
    return replace(recipe, provider=FALLBACK_PROVIDER, provenance="fallback", placeholder=False)


def select_fallback_recipes(
    count: int,
    *,
    cuisine: str | None = None,
    dietary: Iterable[str] = (),
    query: str = "",
    exclude_titles: Iterable[str] = (),
) -> list[NormalizedRecipe]:
    """Pick ``count`` curated recipes, best matches for diet and cuisine first."""
    if count <= 0:
        return []
    wanted_diet = {item.strip().lower() for item in dietary if item and item.strip()}
    wanted_cuisine = (cuisine or "").strip().lower()
    query_words = _words(query)
    excluded = {_title_key(title) for title in exclude_titles}

    ranked = sorted(
        (entry for entry in CATALOG if _title_key(entry.title) not in excluded),
        key=lambda entry: _rank(entry, wanted_cuisine, wanted_diet, query_words),
        reverse=True,
    )
    return [to_normalized(entry) for entry in ranked[:count]]
