"""Session orchestration for the resilience game.

- Routers should not touch the document store directly; they call this module.
- Validation happens before any write; the domain functions do the math.
- Results are the authoritative post-mutation state, callers do not re-read.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Callable, Dict, List, Optional

from uuid6 import uuid7

from resilience_game.document_store import DocumentStore
from resilience_game.domain.default_catalog import COMPARISON_TOWN_NAME
from resilience_game.domain.resilience_rules import apply_card, apply_hazard, can_afford
from resilience_game.domain.round_rules import (
    SETUP_ROUND,
    add_hazard_to_round_event,
    card_labels_by_round,
    create_card_play,
    is_active_round,
    town_document_id,
)
from resilience_game.errors import (
    InsufficientBudgetError,
    InvalidSessionNameError,
    NotFoundError,
    PartialFailureError,
    RoundNotActiveError,
    SessionLimitReachedError,
)
from resilience_game.manager import SessionState, SessionStateManager
from resilience_game.models.dc_models import SummaryModel
from resilience_game.models.schema_models import CardPlay, GameSession, RoundEvent, RoundStats, Town
from resilience_game.services.game_db import GameRepository
from resilience_game.services.round_controller import RoundAdvance, RoundController
from resilience_game.services.sequential_writes import run_sequentially
from resilience_game.services.settings_db import CatalogProvider
from resilience_game.stats_utils import StatsUtils

DEFAULT_SESSION_NAME = "New Game"
DEFAULT_MAX_ACTIVE_SESSIONS = 3
DEFAULT_COMPLETED_LIMIT = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class HazardApplication:
    towns: List[Town]
    round_event: RoundEvent


@dataclass
class CardApplication:
    town: Town
    card_play: CardPlay


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidSessionNameError()
    return cleaned


class GameSessionOrchestrator:
    def __init__(
        self,
        store: DocumentStore,
        catalog: Optional[CatalogProvider] = None,
        states: Optional[SessionStateManager] = None,
        max_active_sessions: int = DEFAULT_MAX_ACTIVE_SESSIONS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.repository = GameRepository(store)
        self.catalog = catalog or CatalogProvider(store)
        self.states = states or SessionStateManager()
        self.rounds = RoundController(self.repository)
        self.stats = StatsUtils()
        self.max_active_sessions = max_active_sessions
        self.clock = clock

    async def initialize(self) -> None:
        await self.store.initialize()
        await self.catalog.initialize()

    # ==========================================================================
    # ==== Session lifecycle ===================================================
    # ==========================================================================

    async def create_session(self, user_id: str, name: str = DEFAULT_SESSION_NAME) -> SessionState:
        """Create a session with one town per template and open it

        Args:
            user_id (str): Owner of the session
            name (str): Display name, trimmed

        Returns:
            SessionState: The opened session in setup (round 0)
        """
        name = _clean_name(name)
        active = await self.repository.read_sessions(user_id, True, "created_at")
        if len(active) >= self.max_active_sessions:
            raise SessionLimitReachedError(self.max_active_sessions)

        session = GameSession(
            id=str(uuid7()),
            user_id=user_id,
            name=name,
            created_at=self.clock(),
            current_round=SETUP_ROUND,
            is_active=True,
        )
        templates = await self.catalog.town_templates()
        towns = [
            Town(
                id=town_document_id(session.id, number),
                session_id=session.id,
                town_template_id=template.id,
                town_number=number,
                name=template.name,
                effort_points=template.effort_points,
                current_round=SETUP_ROUND,
                abilities=template.base_stats,
                is_comparison_town=template.name == COMPARISON_TOWN_NAME,
            )
            for number, template in enumerate(templates, start=1)
        ]
        await self.repository.write_new_session(session, towns)
        logging.info(f"Created session {session.id} for user {user_id} with {len(towns)} towns")
        return self.states.open(SessionState(session=session, towns=tuple(towns)))

    async def load_session(self, session_id: str) -> SessionState:
        """Return the open state of a session, reading it from storage if it is not cached."""
        state = self.states.get(session_id)
        if state is not None:
            return state

        session = await self.repository.read_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        towns = await self.repository.read_towns(session_id)
        round_events = await self.repository.read_round_events(session_id)
        card_plays = await self.repository.read_card_plays(session_id)
        return self.states.open(
            SessionState(session=session, towns=tuple(towns), round_events=round_events, card_plays=tuple(card_plays))
        )

    def close_session(self, session_id: str) -> bool:
        return self.states.close(session_id)

    async def rename_session(self, session_id: str, name: str) -> GameSession:
        name = _clean_name(name)
        session = await self.repository.read_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        session = session.model_copy(update={"name": name})
        await self.repository.write_session(session)

        state = self.states.get(session_id)
        if state is not None:
            state.session = state.session.model_copy(update={"name": name})
        return session

    async def delete_session(self, session_id: str) -> None:
        """Delete the session with its towns, round events, round stats and card plays."""
        if await self.repository.read_session(session_id) is None:
            raise NotFoundError("Session", session_id)
        count = await self.repository.delete_session_documents(session_id)
        self.states.close(session_id)
        logging.info(f"Deleted session {session_id} ({count} documents)")

    async def list_active_sessions(self, user_id: str) -> List[GameSession]:
        return await self.repository.read_sessions(user_id, True, "created_at")

    async def list_completed_sessions(self, user_id: str, limit: int = DEFAULT_COMPLETED_LIMIT) -> List[GameSession]:
        return await self.repository.read_sessions(user_id, False, "completed_at", limit)

    # ==========================================================================
    # ==== Gameplay ============================================================
    # ==========================================================================

    def _require_active_round(self, state: SessionState) -> None:
        if not is_active_round(state.session):
            raise RoundNotActiveError(state.session_id, state.session.current_round)

    async def apply_hazard(self, session_id: str, hazard_id: str) -> HazardApplication:
        """Apply a hazard to every town of the session in the current round (undoable)."""
        state = await self.load_session(session_id)
        self._require_active_round(state)

        state.undo.save_snapshot(state.snapshot())
        try:
            return await self.apply_hazard_to_session(state, hazard_id, state.session.current_round)
        except PartialFailureError:
            # Some towns were written; the snapshot is needed to revert them.
            raise
        except Exception:
            state.undo.discard_latest()
            raise

    async def apply_hazard_to_session(self, state: SessionState, hazard_id: str, round_number: int) -> HazardApplication:
        """Apply one hazard to every town and record it in the round's event

        Args:
            state (SessionState): Open session
            hazard_id (str): Catalog hazard id
            round_number (int): Round the hazard belongs to

        Returns:
            HazardApplication: Updated towns in display order and the round event
        """
        hazard = await self.catalog.get_hazard(hazard_id)
        towns = [apply_hazard(town, hazard) for town in state.towns]
        event = add_hazard_to_round_event(
            state.round_events.get(round_number), state.session_id, round_number, hazard_id, self.clock()
        )

        writes = [(town.id, partial(self.repository.write_town, town)) for town in towns]
        writes.append((event.id, partial(self.repository.write_round_event, event)))
        try:
            await run_sequentially("apply_hazard", writes)
        except PartialFailureError as e:
            persisted = set(e.persisted_ids)
            state.replace_towns([town for town in towns if town.id in persisted])
            raise

        state.replace_towns(towns)
        state.round_events[round_number] = event
        logging.info(f"Applied hazard {hazard_id} to session {state.session_id} in round {round_number}")
        return HazardApplication(towns=towns, round_event=event)

    async def play_card(self, session_id: str, town_id: str, card_id: str) -> CardApplication:
        """Play a card on one town in the current round (undoable)."""
        state = await self.load_session(session_id)
        self._require_active_round(state)

        state.undo.save_snapshot(state.snapshot())
        try:
            return await self.apply_card_to_town(state, town_id, card_id, state.session.current_round)
        except Exception:
            state.undo.discard_latest()
            raise

    async def apply_card_to_town(self, state: SessionState, town_id: str, card_id: str, round_number: int) -> CardApplication:
        """Play a card on a town: pay its cost, add its bonus and record the play

        Args:
            state (SessionState): Open session
            town_id (str): Town paying for the card
            card_id (str): Catalog card id
            round_number (int): First effective round of the card

        Raises:
            NotFoundError: unknown town or card
            InsufficientBudgetError: the town cannot pay; nothing changes
        """
        town = state.town(town_id)
        card = await self.catalog.get_card(card_id)
        if not can_afford(town, card):
            raise InsufficientBudgetError(town.effort_points, card.cost)

        updated = apply_card(town, card)
        play = create_card_play(str(uuid7()), state.session_id, town.id, card, round_number, self.clock())
        await self.repository.write_card_play_with_town(updated, play)

        state.replace_towns([updated])
        state.card_plays = state.card_plays + (play,)
        logging.info(f"Played card {card_id} on {town_id} in round {round_number}")
        return CardApplication(town=updated, card_play=play)

    async def advance_round(self, session_id: str) -> RoundAdvance:
        """Advance to the next round (or complete the session). Clears the undo stack."""
        state = await self.load_session(session_id)
        cards = await self.catalog.cards()
        settings = await self.catalog.settings()
        return await self.rounds.advance(state, cards, self.clock(), settings.rounds_per_game)

    async def revert(self, session_id: str) -> SessionState:
        """Undo the latest hazard or card of the current round

        Towns are rewritten one by one, round events are rewritten or deleted and
        card plays created since the snapshot are deleted. The snapshot is only
        dropped once every write succeeded, so a failed revert can be retried.

        Raises:
            NothingToRevertError: the undo stack is empty
        """
        state = await self.load_session(session_id)
        snapshot = state.undo.peek()

        writes = [(town.id, partial(self.repository.write_town, town)) for town in snapshot.towns]
        for round_number, event in state.round_events.items():
            previous = snapshot.round_events.get(round_number)
            if previous is None:
                writes.append((event.id, partial(self.repository.delete_round_event, event.id)))
            elif previous != event:
                writes.append((previous.id, partial(self.repository.write_round_event, previous)))
        kept_plays = {play.id for play in snapshot.card_plays}
        writes += [
            (play.id, partial(self.repository.delete_card_play, play.id))
            for play in state.card_plays
            if play.id not in kept_plays
        ]

        await run_sequentially("revert", writes)
        state.restore(snapshot)
        state.undo.pop()
        logging.info(f"Reverted session {session_id} ({len(state.undo)} snapshot(s) left)")
        return state

    # ==========================================================================
    # ==== History and reporting ===============================================
    # ==========================================================================

    async def round_events(self, session_id: str) -> Dict[int, List[str]]:
        """Hazard ids applied per round."""
        state = await self.load_session(session_id)
        return {number: list(event.hazard_ids) for number, event in sorted(state.round_events.items())}

    async def town_card_history(self, session_id: str, town_id: str) -> Dict[int, List[str]]:
        """Card labels per round for one town, up to the current round."""
        state = await self.load_session(session_id)
        state.town(town_id)
        plays = [play for play in state.card_plays if play.town_id == town_id]
        return card_labels_by_round(plays, await self.catalog.cards(), state.session.current_round)

    async def round_stats(self, session_id: str) -> List[RoundStats]:
        await self.load_session(session_id)
        return await self.repository.read_round_stats(session_id)

    async def summary(self, session_id: str) -> SummaryModel:
        state = await self.load_session(session_id)
        return self.stats.summary(state.towns)

    # ==========================================================================
    # ==== Maintenance =========================================================
    # ==========================================================================

    async def purge_expired_sessions(self, retention_days: int, now: Optional[datetime] = None) -> int:
        """Delete completed sessions whose completion is older than the retention window

        Args:
            retention_days (int): Days a completed session is kept
            now (Optional[datetime]): Reference time, defaults to the clock

        Returns:
            int: Number of sessions deleted
        """
        cutoff = (now or self.clock()) - timedelta(days=retention_days)
        expired = await self.repository.read_expired_sessions(cutoff)
        for session in expired:
            await self.repository.delete_session_documents(session.id)
            self.states.close(session.id)
        if expired:
            logging.info(f"Purged {len(expired)} expired session(s)")
        return len(expired)
