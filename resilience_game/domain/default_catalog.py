"""Default catalog seeded into an empty store: hazards, cards, town templates and settings."""

from typing import List

from resilience_game.models.schema_models import (
    AbilityVector,
    Aspect,
    Card,
    GameSettings,
    Hazard,
    HazardCategory,
    TownTemplate,
)

DEFAULT_EFFORT_POINTS = 100
DEFAULT_CARD_COST = 15
COMPARISON_TOWN_NAME = "Bludgeton"


def _hazard(category: HazardCategory, name: str, nature: int, economy: int, society: int, health: int) -> Hazard:
    return Hazard(id=category.value, name=name, nature=nature, economy=economy, society=society, health=health)


DEFAULT_HAZARDS: List[Hazard] = [
    _hazard(HazardCategory.bushfire, "Bushfire", 30, 10, 20, 20),
    _hazard(HazardCategory.flood, "Flood", 20, 30, 15, 15),
    _hazard(HazardCategory.storm_surge, "Storm Surge", 20, 40, 15, 5),
    _hazard(HazardCategory.heatwave, "Heatwave", 20, 15, 15, 30),
    _hazard(HazardCategory.biohazard, "Biohazard", 5, 25, 25, 25),
]


def _category_card(category: HazardCategory, level: int, name: str, nature: int, economy: int, society: int, health: int) -> Card:
    # Level doubles as the duration: 1, 2 or 3 rounds.
    return Card(
        id=f"{category.value}{level}",
        name=name,
        type=category,
        cost=DEFAULT_CARD_COST,
        duration=level,
        nature=nature,
        economy=economy,
        society=society,
        health=health,
    )


def _aspect_card(aspect: Aspect, name: str) -> Card:
    return Card(
        id=f"all{aspect.value.capitalize()}",
        name=name,
        type=aspect,
        cost=DEFAULT_CARD_COST,
        duration=1,
        nature=15,
        economy=15,
        society=15,
        health=15,
    )


DEFAULT_CARDS: List[Card] = [
    _category_card(HazardCategory.bushfire, 1, "LANDSCAPING", 20, 10, 10, 10),
    _category_card(HazardCategory.bushfire, 2, "MANAGED BURNING", 30, 10, 10, 10),
    _category_card(HazardCategory.bushfire, 3, "FIRE-RESILIENT HOMES", 10, 20, 20, 20),
    _category_card(HazardCategory.flood, 1, "FLOOD ZONING", 0, 20, 15, 15),
    _category_card(HazardCategory.flood, 2, "STORMWATER SPONGES", 30, 10, 10, 10),
    _category_card(HazardCategory.flood, 3, "COMMUNITY EDUCATION", 10, 20, 20, 20),
    _category_card(HazardCategory.storm_surge, 1, "SEA DEFENSES", 10, 20, 10, 10),
    _category_card(HazardCategory.storm_surge, 2, "NATURAL BARRIERS", 25, 15, 10, 10),
    _category_card(HazardCategory.storm_surge, 3, "STILTS AND TREES", 10, 20, 20, 20),
    _category_card(HazardCategory.heatwave, 1, "COOL PUBLIC SPACES", 10, 10, 10, 20),
    _category_card(HazardCategory.heatwave, 2, "GREEN STREETS", 25, 10, 10, 15),
    _category_card(HazardCategory.heatwave, 3, "WHITE ROOFS", 10, 20, 15, 25),
    _category_card(HazardCategory.biohazard, 1, "BUFFER ZONES", 20, 10, 10, 10),
    _category_card(HazardCategory.biohazard, 2, "CLEAN FARMING", 0, 30, 20, 10),
    _category_card(HazardCategory.biohazard, 3, "BIOLOGICAL CONTROL", 10, 20, 20, 20),
    _aspect_card(Aspect.nature, "PROTECTED AREAS"),
    _aspect_card(Aspect.economy, "GREEN INDUSTRY"),
    _aspect_card(Aspect.society, "COMMUNITY EVENTS"),
    _aspect_card(Aspect.health, "HEALTH SERVICES"),
]


def _template(template_id: str, name: str, bushfire: int, flood: int, storm_surge: int, heatwave: int, biohazard: int) -> TownTemplate:
    """Town template whose every aspect of a category starts at the same value."""
    levels = {
        HazardCategory.bushfire: bushfire,
        HazardCategory.flood: flood,
        HazardCategory.storm_surge: storm_surge,
        HazardCategory.heatwave: heatwave,
        HazardCategory.biohazard: biohazard,
    }
    return TownTemplate(
        id=template_id,
        name=name,
        effort_points=DEFAULT_EFFORT_POINTS,
        base_stats={
            category: AbilityVector(nature=level, economy=level, society=level, health=level)
            for category, level in levels.items()
        },
    )


DEFAULT_TOWN_TEMPLATES: List[TownTemplate] = [
    _template("1", "Town 1", 40, 80, 80, 60, 80),
    _template("2", "Town 2", 60, 40, 80, 80, 80),
    _template("3", "Town 3", 80, 80, 40, 80, 60),
    _template("4", "Town 4", 80, 60, 80, 40, 80),
    _template("5", "Town 5", 80, 80, 60, 80, 40),
    _template("6", COMPARISON_TOWN_NAME, 80, 80, 80, 60, 40),
]

DEFAULT_SETTINGS = GameSettings(id="v1", game_version="1.0.0", rounds_per_game=5)
