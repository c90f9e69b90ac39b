from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime
from typing import Optional, Dict, List

from resilience_game.models.schema_models import (
    CardPlay,
    GameSession,
    RoundEvent,
    RoundStats,
    Town,
)


class SessionStatusModel(str, Enum):
    active = "active"
    completed = "completed"


class CreateSessionModel(BaseModel):
    user_id: str
    name: str = "New Game"


class RenameSessionModel(BaseModel):
    name: str


class HazardRequestModel(BaseModel):
    hazard_id: str


class CardRequestModel(BaseModel):
    town_id: str
    card_id: str


class SessionModel(BaseModel):
    id: str
    user_id: str
    name: str
    created_at: Optional[datetime] = None
    current_round: int
    is_active: bool
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionDetailModel(BaseModel):
    session: GameSession
    towns: List[Town]
    card_plays: List[CardPlay]
    can_revert: bool = False


class HazardResultModel(BaseModel):
    towns: List[Town]
    round_event: RoundEvent


class CardResultModel(BaseModel):
    town: Town
    card_play: CardPlay


class AdvanceResultModel(BaseModel):
    session: GameSession
    towns: List[Town]
    round_stats: Optional[RoundStats] = None
    deactivated_plays: List[CardPlay] = Field(default_factory=list)


class TownSummaryModel(BaseModel):
    town_id: str
    name: str
    nature: int
    economy: int
    society: int
    health: int
    total: int


class SummaryModel(BaseModel):
    """Aspect totals across the regular towns and per-town totals (comparison town excluded)."""

    aspects: Dict[str, int]
    towns: List[TownSummaryModel]


class PartialFailureModel(BaseModel):
    detail: str
    operation: str
    persisted_ids: List[str]
    failed_id: str
