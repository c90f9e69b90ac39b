"""Round advancement: the pure transition from domain.round_rules, then persistence.

Everything an advance changes is written in one batch, so storage either
moves to the next round completely or stays where it was.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from resilience_game.domain.round_rules import (
    SETUP_ROUND,
    advance_session,
    close_round_for_town,
    complete_round_event,
    round_document_id,
    reapply_ongoing_cards,
    deactivate,
)
from resilience_game.manager import SessionState
from resilience_game.models.schema_models import Card, CardPlay, GameSession, RoundStats, Town
from resilience_game.services.game_db import GameRepository


@dataclass
class RoundAdvance:
    session: GameSession
    towns: List[Town]
    round_stats: Optional[RoundStats] = None
    deactivated_plays: List[CardPlay] = field(default_factory=list)


class RoundController:
    def __init__(self, repository: GameRepository):
        self.repository = repository

    def plan(
        self,
        state: SessionState,
        cards_by_id: Dict[str, Card],
        now: datetime,
        rounds_per_game: int,
    ) -> RoundAdvance:
        """Compute the next round without touching storage or the state.

        Raises:
            SessionCompletedError: the session has already finished.
        """
        ending_round = state.session.current_round
        session = advance_session(state.session, now, rounds_per_game)
        next_round = session.current_round

        towns = [close_round_for_town(town, ending_round, next_round) for town in state.towns]
        round_stats = None
        if ending_round > SETUP_ROUND:
            round_stats = RoundStats(
                id=round_document_id(session.id, ending_round),
                session_id=session.id,
                round_number=ending_round,
                towns={town.id: town.current_stats for town in towns},
                completed_at=now,
            )

        deactivated: List[CardPlay] = []
        if session.is_active:
            reapplied = []
            for town in towns:
                town, finished = reapply_ongoing_cards(town, state.card_plays, cards_by_id, next_round)
                reapplied.append(town)
                deactivated.extend(finished)
            towns = reapplied
        else:
            # Nothing is re-applied past the last round and no play stays active.
            deactivated = [deactivate(play) for play in state.card_plays if play.is_active]

        return RoundAdvance(session=session, towns=towns, round_stats=round_stats, deactivated_plays=deactivated)

    async def advance(
        self,
        state: SessionState,
        cards_by_id: Dict[str, Card],
        now: datetime,
        rounds_per_game: int,
    ) -> RoundAdvance:
        """Advance the session by one round and persist the result

        Args:
            state (SessionState): Open session; updated in place once the batch is stored
            cards_by_id (Dict[str, Card]): Card catalog
            now (datetime): Timestamp recorded on completed rounds and sessions
            rounds_per_game (int): Last playable round

        Returns:
            RoundAdvance: New session, towns, the ending round's stats and the deactivated plays
        """
        ending_round = state.session.current_round
        result = self.plan(state, cards_by_id, now, rounds_per_game)

        ending_event = state.round_events.get(ending_round)
        completed_event = None
        if ending_event is not None:
            completed_event = complete_round_event(ending_event, state.session_id, ending_round, now)

        await self.repository.write_round_advance(
            result.session,
            result.towns,
            result.deactivated_plays,
            round_stats=result.round_stats,
            completed_event=completed_event,
        )

        state.session = result.session
        state.replace_towns(result.towns)
        state.replace_card_plays(result.deactivated_plays)
        if completed_event is not None:
            state.round_events[ending_round] = completed_event
        state.undo.clear()

        if result.session.is_active:
            logging.info(f"Session {state.session_id} advanced to round {result.session.current_round}")
        else:
            logging.info(f"Session {state.session_id} completed")
        return result
