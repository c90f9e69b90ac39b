"""Persistence service layer for game sessions.

- The session engine should not build documents directly; it calls this module.
- Domain records go in, domain records come out; documents stay inside.
- Storage errors are not caught here; they reach the caller unchanged.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from resilience_game.converter import DataConverter, format_timestamp
from resilience_game.document_store import BatchOperation, DocumentStore
from resilience_game.models.schema_models import (
    CardPlay,
    GameSession,
    RoundEvent,
    RoundStats,
    Town,
)

SESSIONS = "game_sessions"
TOWNS = "towns"
CARD_PLAYS = "card_plays"
ROUND_EVENTS = "round_events"
ROUND_STATS = "round_stats"
GAME_SETTINGS = "game_settings"
CARDS = "cards"
HAZARDS = "hazards"
TOWN_TEMPLATES = "town_templates"

SESSION_OWNED_COLLECTIONS = (TOWNS, ROUND_EVENTS, ROUND_STATS, CARD_PLAYS)


class GameRepository:
    def __init__(self, store: DocumentStore, converter: Optional[DataConverter] = None):
        self.store = store
        self.converter = converter or DataConverter()

    # --- sessions -------------------------------------------------------------

    async def read_session(self, session_id: str) -> Optional[GameSession]:
        document = await self.store.get(SESSIONS, session_id)
        if document is None:
            return None
        return self.converter.convert_document_to_model(document, GameSession)

    async def read_sessions(
        self,
        user_id: str,
        is_active: bool,
        order_field: str,
        limit: Optional[int] = None,
    ) -> List[GameSession]:
        documents = await self.store.query(
            SESSIONS,
            filters=[("user_id", "==", user_id), ("is_active", "==", is_active)],
            order_by=(order_field, "desc"),
            limit=limit,
        )
        return [self.converter.convert_document_to_model(doc, GameSession) for doc in documents]

    async def read_expired_sessions(self, completed_before: datetime) -> List[GameSession]:
        documents = await self.store.query(
            SESSIONS,
            filters=[("is_active", "==", False), ("completed_at", "<", format_timestamp(completed_before))],
        )
        return [self.converter.convert_document_to_model(doc, GameSession) for doc in documents]

    async def write_session(self, session: GameSession) -> None:
        await self.store.create(SESSIONS, self.converter.convert_model_to_document(session), session.id)

    # --- towns ----------------------------------------------------------------

    async def read_towns(self, session_id: str) -> List[Town]:
        documents = await self.store.query(
            TOWNS, filters=[("session_id", "==", session_id)], order_by=("town_number", "asc")
        )
        return [self.converter.convert_document_to_model(doc, Town) for doc in documents]

    async def write_town(self, town: Town) -> None:
        await self.store.create(TOWNS, self.converter.convert_model_to_document(town), town.id)

    # --- round events and stats -----------------------------------------------

    async def read_round_events(self, session_id: str) -> Dict[int, RoundEvent]:
        documents = await self.store.query(
            ROUND_EVENTS, filters=[("session_id", "==", session_id)], order_by=("round_number", "asc")
        )
        events = [self.converter.convert_document_to_model(doc, RoundEvent) for doc in documents]
        return {event.round_number: event for event in events}

    async def write_round_event(self, event: RoundEvent) -> None:
        await self.store.create(ROUND_EVENTS, self.converter.convert_model_to_document(event), event.id)

    async def delete_round_event(self, event_id: str) -> bool:
        return await self.store.delete(ROUND_EVENTS, event_id)

    async def read_round_stats(self, session_id: str) -> List[RoundStats]:
        documents = await self.store.query(
            ROUND_STATS, filters=[("session_id", "==", session_id)], order_by=("round_number", "asc")
        )
        return [self.converter.convert_document_to_model(doc, RoundStats) for doc in documents]

    # --- card plays -----------------------------------------------------------

    async def read_card_plays(self, session_id: str, town_id: Optional[str] = None) -> List[CardPlay]:
        filters = [("session_id", "==", session_id)]
        if town_id is not None:
            filters.append(("town_id", "==", town_id))
        documents = await self.store.query(CARD_PLAYS, filters=filters, order_by=("played_at", "asc"))
        return [self.converter.convert_document_to_model(doc, CardPlay) for doc in documents]

    async def delete_card_play(self, play_id: str) -> bool:
        return await self.store.delete(CARD_PLAYS, play_id)

    # --- batches --------------------------------------------------------------

    async def write_new_session(self, session: GameSession, towns: Sequence[Town]) -> None:
        """Persist a new session with its towns atomically."""
        operations = [BatchOperation("create", SESSIONS, session.id, self.converter.convert_model_to_document(session))]
        operations += [
            BatchOperation("create", TOWNS, town.id, self.converter.convert_model_to_document(town)) for town in towns
        ]
        await self.store.batch(operations)

    async def write_card_play_with_town(self, town: Town, play: CardPlay) -> None:
        """Persist a played card and the town that paid for it atomically."""
        await self.store.batch(
            [
                BatchOperation("create", TOWNS, town.id, self.converter.convert_model_to_document(town)),
                BatchOperation("create", CARD_PLAYS, play.id, self.converter.convert_model_to_document(play)),
            ]
        )

    async def write_round_advance(
        self,
        session: GameSession,
        towns: Sequence[Town],
        deactivated_plays: Sequence[CardPlay] = (),
        round_stats: Optional[RoundStats] = None,
        completed_event: Optional[RoundEvent] = None,
    ) -> None:
        """Persist everything a round advance changes in one batch

        Args:
            session (GameSession): Session at its new round
            towns (Sequence[Town]): Towns closed out and moved to the new round
            deactivated_plays (Sequence[CardPlay]): Plays that just ran out
            round_stats (Optional[RoundStats]): Stats of the ending round, None when leaving setup
            completed_event (Optional[RoundEvent]): Ending round's event, marked complete
        """
        operations: List[BatchOperation] = []
        if completed_event is not None:
            operations.append(
                BatchOperation(
                    "create", ROUND_EVENTS, completed_event.id, self.converter.convert_model_to_document(completed_event)
                )
            )
        if round_stats is not None:
            operations.append(
                BatchOperation("create", ROUND_STATS, round_stats.id, self.converter.convert_model_to_document(round_stats))
            )
        operations += [
            BatchOperation("create", TOWNS, town.id, self.converter.convert_model_to_document(town)) for town in towns
        ]
        operations += [
            BatchOperation("create", CARD_PLAYS, play.id, self.converter.convert_model_to_document(play))
            for play in deactivated_plays
        ]
        operations.append(
            BatchOperation("create", SESSIONS, session.id, self.converter.convert_model_to_document(session))
        )
        await self.store.batch(operations)

    async def delete_session_documents(self, session_id: str) -> int:
        """Delete the session and every document it owns in one batch. Returns the number of documents."""
        operations: List[BatchOperation] = [BatchOperation("delete", SESSIONS, session_id)]
        for collection in SESSION_OWNED_COLLECTIONS:
            documents = await self.store.query(collection, filters=[("session_id", "==", session_id)])
            operations.extend(BatchOperation("delete", collection, doc["id"]) for doc in documents)
        await self.store.batch(operations)
        return len(operations)

