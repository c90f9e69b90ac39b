"""Round state machine and card-play ledger rules.

Round 0 is setup, rounds 1..N are played, and the session is complete once it
advances past N. Card plays stay in the ledger forever; only ``is_active``
changes once their last effective round has been reached.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from resilience_game.domain.resilience_rules import apply_card_bonus, snapshot_stats
from resilience_game.errors import SessionCompletedError
from resilience_game.models.schema_models import (
    Card,
    CardPlay,
    GameSession,
    HazardEventEntry,
    RoundEvent,
    Town,
)

ROUNDS_PER_GAME = 5
SETUP_ROUND = 0


def is_active_round(session: GameSession) -> bool:
    """Hazards and cards are only accepted while a numbered round is being played."""
    return session.is_active and session.current_round > SETUP_ROUND


def is_completed(session: GameSession, rounds_per_game: int = ROUNDS_PER_GAME) -> bool:
    return not session.is_active or session.current_round > rounds_per_game


def round_document_id(session_id: str, round_number: int) -> str:
    return f"{session_id}_{round_number}"


def town_document_id(session_id: str, town_number: int) -> str:
    return f"{session_id}_town_{town_number}"


# ==============================================================================
# ==== Card-play ledger ========================================================
# ==============================================================================


def effective_rounds(played_at_round: int, duration: int) -> List[int]:
    """Rounds during which a card is in effect: [r, r+1, ..., r+duration-1]."""
    return list(range(played_at_round, played_at_round + duration))


def create_card_play(
    play_id: str,
    session_id: str,
    town_id: str,
    card: Card,
    played_at_round: int,
    played_at: datetime,
) -> CardPlay:
    return CardPlay(
        id=play_id,
        session_id=session_id,
        card_id=card.id,
        town_id=town_id,
        played_at_round=played_at_round,
        effective_rounds=effective_rounds(played_at_round, card.duration),
        played_at=played_at,
        is_active=True,
    )


def plays_effective_in(plays: Iterable[CardPlay], round_number: int) -> List[CardPlay]:
    """Active plays whose effect continues into ``round_number`` (not the round they were played in)."""
    return [
        play
        for play in plays
        if play.is_active and play.played_at_round < round_number and round_number in play.effective_rounds
    ]


def plays_to_deactivate(plays: Iterable[CardPlay], round_number: int) -> List[CardPlay]:
    """Active plays whose last effective round is ``round_number`` or already behind it."""
    return [play for play in plays if play.is_active and play.last_round <= round_number]


def deactivate(play: CardPlay) -> CardPlay:
    return play.model_copy(update={"is_active": False})


def reapply_ongoing_cards(
    town: Town,
    plays: Sequence[CardPlay],
    cards_by_id: Dict[str, Card],
    round_number: int,
) -> Tuple[Town, List[CardPlay]]:
    """Re-apply the bonuses of multi-round cards entering ``round_number``.

    No effort points are deducted. Returns the updated town and the plays that
    were deactivated because this was their last effective round.

    Args:
        town: Town at the start of the new round.
        plays: Every card play of the session, any town.
        cards_by_id: Card catalog keyed by card id.
        round_number: The round being entered.
    """
    own_plays = [play for play in plays if play.town_id == town.id]
    for play in plays_effective_in(own_plays, round_number):
        town = apply_card_bonus(town, cards_by_id[play.card_id])
    finished = [deactivate(play) for play in plays_to_deactivate(own_plays, round_number)]
    return town, finished


# ==============================================================================
# ==== Round events ============================================================
# ==============================================================================


def add_hazard_to_round_event(
    event: Optional[RoundEvent],
    session_id: str,
    round_number: int,
    hazard_id: str,
    timestamp: datetime,
) -> RoundEvent:
    """Record one hazard application. ``hazard_ids`` stays unique, the history keeps every application."""
    if event is None:
        event = RoundEvent(
            id=round_document_id(session_id, round_number),
            session_id=session_id,
            round_number=round_number,
        )
    hazard_ids = list(event.hazard_ids)
    if hazard_id not in hazard_ids:
        hazard_ids.append(hazard_id)
    history = list(event.event_history) + [HazardEventEntry(hazard_id=hazard_id, timestamp=timestamp)]
    return event.model_copy(update={"hazard_ids": hazard_ids, "event_history": history})


def complete_round_event(
    event: Optional[RoundEvent],
    session_id: str,
    round_number: int,
    completed_at: datetime,
) -> RoundEvent:
    if event is None:
        event = RoundEvent(
            id=round_document_id(session_id, round_number),
            session_id=session_id,
            round_number=round_number,
        )
    return event.model_copy(update={"is_complete": True, "completed_at": completed_at})


# ==============================================================================
# ==== Session state machine ===================================================
# ==============================================================================


def advance_session(session: GameSession, now: datetime, rounds_per_game: int = ROUNDS_PER_GAME) -> GameSession:
    """Move the session to its next round, completing it after the last one.

    Raises:
        SessionCompletedError: the session has already finished.
    """
    if is_completed(session, rounds_per_game):
        raise SessionCompletedError(session.id)

    next_round = session.current_round + 1
    if next_round > rounds_per_game:
        return session.model_copy(update={"current_round": next_round, "is_active": False, "completed_at": now})
    return session.model_copy(update={"current_round": next_round})


def close_round_for_town(town: Town, ending_round: int, next_round: int) -> Town:
    """Record the ending round's stats on the town and move it to the next round."""
    update = {"current_round": next_round}
    if ending_round > SETUP_ROUND:
        update["current_stats"] = snapshot_stats(town, ending_round)
    return town.model_copy(update=update)


# ==============================================================================
# ==== Card history labels =====================================================
# ==============================================================================


def card_play_label(card: Card, play: CardPlay, round_number: int) -> str:
    """Label shown for a card in one round of a town's history.

    "NAME (3 rounds)" in the round it was played, "NAME (2/3)" afterwards.
    Single-round cards are just "NAME".
    """
    total = len(play.effective_rounds)
    if total <= 1:
        return card.name
    if round_number == play.played_at_round:
        return f"{card.name} ({total} rounds)"
    return f"{card.name} ({round_number - play.played_at_round + 1}/{total})"


def card_labels_by_round(
    plays: Iterable[CardPlay],
    cards_by_id: Dict[str, Card],
    current_round: int,
) -> Dict[int, List[str]]:
    """Labels per round, for every round up to ``current_round`` in which a play was in effect."""
    labels: Dict[int, List[str]] = {}
    for play in sorted(plays, key=lambda p: (p.played_at_round, p.played_at)):
        card = cards_by_id.get(play.card_id)
        if card is None:
            continue
        for round_number in play.effective_rounds:
            if round_number > current_round:
                break
            labels.setdefault(round_number, []).append(card_play_label(card, play, round_number))
    return labels
