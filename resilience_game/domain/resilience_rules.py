"""Resilience rules that are independent from storage and HTTP.

Ability arithmetic, the cascading penalty and the hazard/card effects on a
single town. Every function takes immutable records and returns new ones.

Rule of thumb:
- OK: math, validation, pure transformations.
- Not OK: touching the document store, FastAPI, datetime.now(), etc.
"""

from typing import Dict

import numpy as np

from resilience_game.errors import InsufficientBudgetError
from resilience_game.models.schema_models import (
    ABILITY_CEILING,
    ABILITY_FLOOR,
    AbilityVector,
    Aspect,
    AspectValues,
    Card,
    Hazard,
    HazardCategory,
    RoundSnapshot,
    Town,
)

CRITICAL_THRESHOLD = 20
CASCADE_PENALTY = 10

# Matrix layout used by the town-wide rules: rows follow HazardCategory, columns follow Aspect.
CATEGORY_ORDER = tuple(HazardCategory)
ASPECT_ORDER = tuple(Aspect)

# ==============================================================================
# ==== Ability vectors =========================================================
# ==============================================================================


def apply_damage(vector: AbilityVector, magnitudes: AspectValues) -> AbilityVector:
    """Subtract each aspect's magnitude, clamped to [0, 100]."""
    return AbilityVector(
        nature=vector.nature - magnitudes.nature,
        economy=vector.economy - magnitudes.economy,
        society=vector.society - magnitudes.society,
        health=vector.health - magnitudes.health,
    )


def apply_bonus(vector: AbilityVector, magnitudes: AspectValues) -> AbilityVector:
    """Add each aspect's magnitude, clamped to [0, 100]."""
    return AbilityVector(
        nature=vector.nature + magnitudes.nature,
        economy=vector.economy + magnitudes.economy,
        society=vector.society + magnitudes.society,
        health=vector.health + magnitudes.health,
    )


# ==============================================================================
# ==== Town matrix =============================================================
# ==============================================================================


def town_matrix(abilities: Dict[HazardCategory, AbilityVector]) -> np.ndarray:
    """Return the abilities as a 5x4 (category, aspect) integer matrix."""
    return np.array(
        [[abilities[category].value(aspect) for aspect in ASPECT_ORDER] for category in CATEGORY_ORDER],
        dtype=np.int64,
    )


def abilities_from_matrix(matrix: np.ndarray) -> Dict[HazardCategory, AbilityVector]:
    return {
        category: AbilityVector(
            **{aspect.value: int(matrix[row, column]) for column, aspect in enumerate(ASPECT_ORDER)}
        )
        for row, category in enumerate(CATEGORY_ORDER)
    }


def is_critically_vulnerable(town: Town) -> bool:
    """True when any aspect of any hazard category is at or below the critical threshold."""
    return bool((town_matrix(town.abilities) <= CRITICAL_THRESHOLD).any())


def apply_cascading_penalty(town: Town) -> Town:
    """Subtract the penalty from every aspect of every hazard category."""
    matrix = np.clip(town_matrix(town.abilities) - CASCADE_PENALTY, ABILITY_FLOOR, ABILITY_CEILING)
    return town.model_copy(update={"abilities": abilities_from_matrix(matrix)})


# ==============================================================================
# ==== Hazards and cards =======================================================
# ==============================================================================


def apply_hazard(town: Town, hazard: Hazard) -> Town:
    """Apply one hazard to one town. Effort points are not touched.

    The vulnerability check runs on the state before this hazard's damage; the
    hazard itself is applied afterwards.
    """
    if is_critically_vulnerable(town):
        town = apply_cascading_penalty(town)

    abilities = dict(town.abilities)
    abilities[hazard.category] = apply_damage(abilities[hazard.category], hazard)
    return town.model_copy(update={"abilities": abilities})


def card_bonus(card: Card) -> AspectValues:
    """Bonus actually applied per affected category.

    Aspect cards only apply the field matching their type; the other three are ignored.
    """
    if card.targets_hazard_category:
        return AspectValues(nature=card.nature, economy=card.economy, society=card.society, health=card.health)
    aspect = Aspect(card.type)
    return AspectValues(**{aspect.value: card.value(aspect)})


def apply_card_bonus(town: Town, card: Card) -> Town:
    """Add a card's bonus without touching the budget (ongoing effects)."""
    bonus = card_bonus(card)
    abilities = dict(town.abilities)
    if card.targets_hazard_category:
        category = HazardCategory(card.type)
        abilities[category] = apply_bonus(abilities[category], bonus)
    else:
        for category in CATEGORY_ORDER:
            abilities[category] = apply_bonus(abilities[category], bonus)
    return town.model_copy(update={"abilities": abilities})


def can_afford(town: Town, card: Card) -> bool:
    return town.effort_points >= card.cost


def apply_card(town: Town, card: Card) -> Town:
    """Play a card on a town: add its bonus and deduct its cost.

    Raises:
        InsufficientBudgetError: the town cannot pay for the card. The town is unchanged.
    """
    if not can_afford(town, card):
        raise InsufficientBudgetError(town.effort_points, card.cost)
    town = apply_card_bonus(town, card)
    return town.model_copy(update={"effort_points": town.effort_points - card.cost})


def snapshot_stats(town: Town, round_number: int) -> RoundSnapshot:
    return RoundSnapshot(round=round_number, abilities=dict(town.abilities))
