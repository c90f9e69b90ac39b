from pydantic import BaseModel, Field, field_validator
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union
from datetime import datetime

ABILITY_FLOOR = 0
ABILITY_CEILING = 100


def clamp_ability(value: int) -> int:
    return max(ABILITY_FLOOR, min(ABILITY_CEILING, int(value)))


class Aspect(str, Enum):
    nature = "nature"
    economy = "economy"
    society = "society"
    health = "health"


class HazardCategory(str, Enum):
    bushfire = "bushfire"
    flood = "flood"
    storm_surge = "stormSurge"
    heatwave = "heatwave"
    biohazard = "biohazard"


class AspectValues(BaseModel):
    """Four per-aspect magnitudes, used for hazard damage and card bonuses."""

    nature: int = 0
    economy: int = 0
    society: int = 0
    health: int = 0

    class Config:
        frozen = True

    def value(self, aspect: Aspect | str) -> int:
        return getattr(self, Aspect(aspect).value)


class AbilityVector(AspectValues):
    """Resilience of one town against one hazard category. Always in [0, 100]."""

    @field_validator("nature", "economy", "society", "health")
    @classmethod
    def clamp(cls, value: int) -> int:
        return clamp_ability(value)


def complete_abilities(value: Dict[HazardCategory, AbilityVector]) -> Dict[HazardCategory, AbilityVector]:
    return {category: value.get(category, AbilityVector()) for category in HazardCategory}


class Hazard(AspectValues):
    id: str
    name: str = ""

    @property
    def category(self) -> HazardCategory:
        return HazardCategory(self.id)


class Card(AspectValues):
    id: str
    name: str = ""
    type: Union[HazardCategory, Aspect]
    cost: int = Field(default=0, ge=0)
    duration: int = Field(default=1, ge=1)

    @property
    def targets_hazard_category(self) -> bool:
        return isinstance(self.type, HazardCategory)


class RoundSnapshot(BaseModel):
    round: int
    abilities: Dict[HazardCategory, AbilityVector] = Field(default_factory=dict, validate_default=True)

    class Config:
        frozen = True

    @field_validator("abilities")
    @classmethod
    def fill_missing_categories(cls, value):
        return complete_abilities(value)


class Town(BaseModel):
    id: str
    session_id: str
    town_template_id: str = ""
    town_number: int = 0
    name: str = ""
    effort_points: int = Field(default=100, ge=0)
    current_round: int = 0
    abilities: Dict[HazardCategory, AbilityVector] = Field(default_factory=dict, validate_default=True)
    current_stats: Optional[RoundSnapshot] = None
    is_comparison_town: bool = False

    class Config:
        frozen = True

    @field_validator("abilities")
    @classmethod
    def fill_missing_categories(cls, value):
        return complete_abilities(value)

    def ability(self, category: HazardCategory | str) -> AbilityVector:
        return self.abilities[HazardCategory(category)]


class CardPlay(BaseModel):
    id: str
    session_id: str
    card_id: str
    town_id: str
    played_at_round: int
    effective_rounds: List[int]
    played_at: datetime
    is_active: bool = True

    class Config:
        frozen = True

    @property
    def last_round(self) -> int:
        return max(self.effective_rounds)


class HazardEventEntry(BaseModel):
    type: str = "hazard"
    hazard_id: str
    timestamp: datetime

    class Config:
        frozen = True


class RoundEvent(BaseModel):
    id: str
    session_id: str
    round_number: int
    hazard_ids: List[str] = Field(default_factory=list)
    event_history: List[HazardEventEntry] = Field(default_factory=list)
    is_complete: bool = False
    completed_at: Optional[datetime] = None

    class Config:
        frozen = True


class RoundStats(BaseModel):
    id: str
    session_id: str
    round_number: int
    towns: Dict[str, RoundSnapshot] = Field(default_factory=dict)
    completed_at: Optional[datetime] = None

    class Config:
        frozen = True


class GameSession(BaseModel):
    id: str
    user_id: str
    name: str = "New Game"
    created_at: Optional[datetime] = None
    current_round: int = 0
    is_active: bool = True
    completed_at: Optional[datetime] = None

    class Config:
        frozen = True


class TownTemplate(BaseModel):
    id: str
    name: str
    effort_points: int = 100
    base_stats: Dict[HazardCategory, AbilityVector] = Field(default_factory=dict, validate_default=True)

    class Config:
        frozen = True

    @field_validator("base_stats")
    @classmethod
    def fill_missing_categories(cls, value):
        return complete_abilities(value)


class GameSettings(BaseModel):
    id: str = "v1"
    game_version: str = "1.0.0"
    rounds_per_game: int = 5

    class Config:
        frozen = True


class Snapshot(BaseModel):
    """Undo unit: the session's towns, round events and card plays before an action."""

    towns: Tuple[Town, ...]
    round_events: Dict[int, RoundEvent]
    card_plays: Tuple[CardPlay, ...]

    class Config:
        frozen = True
