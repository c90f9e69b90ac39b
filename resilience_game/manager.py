from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging

from resilience_game.errors import NotFoundError
from resilience_game.models.schema_models import CardPlay, GameSession, RoundEvent, Snapshot, Town
from resilience_game.services.undo_manager import UndoManager


@dataclass
class SessionState:
    """Open session held in memory: the authoritative post-mutation state returned to callers."""

    session: GameSession
    towns: Tuple[Town, ...]
    round_events: Dict[int, RoundEvent] = field(default_factory=dict)
    card_plays: Tuple[CardPlay, ...] = ()
    undo: UndoManager = field(default_factory=UndoManager)

    @property
    def session_id(self) -> str:
        return self.session.id

    def town(self, town_id: str) -> Town:
        for town in self.towns:
            if town.id == town_id:
                return town
        raise NotFoundError("Town", town_id)

    def replace_towns(self, towns: List[Town]) -> None:
        """Swap in updated towns by id, keeping display order."""
        updated = {town.id: town for town in towns}
        self.towns = tuple(updated.get(town.id, town) for town in self.towns)

    def replace_card_plays(self, plays: List[CardPlay]) -> None:
        updated = {play.id: play for play in plays}
        self.card_plays = tuple(updated.get(play.id, play) for play in self.card_plays)

    def snapshot(self) -> Snapshot:
        return Snapshot(towns=self.towns, round_events=dict(self.round_events), card_plays=self.card_plays)

    def restore(self, snapshot: Snapshot) -> None:
        self.towns = snapshot.towns
        self.round_events = dict(snapshot.round_events)
        self.card_plays = snapshot.card_plays


class SessionStateManager:
    def __init__(self):
        self.active_sessions: Dict[str, SessionState] = {}

    def open(self, state: SessionState) -> SessionState:
        self.active_sessions[state.session_id] = state
        logging.info(f"Opened session: {state.session_id}")
        return state

    def get(self, session_id: str) -> Optional[SessionState]:
        return self.active_sessions.get(session_id)

    def close(self, session_id: str) -> bool:
        """Drop the cached state. Returns True if the session was open."""
        if session_id in self.active_sessions:
            del self.active_sessions[session_id]
            logging.info(f"Closed session: {session_id}")
            return True
        return False

    def __contains__(self, session_id: str) -> bool:
        return session_id in self.active_sessions
