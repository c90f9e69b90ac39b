"""
Tests for the round state machine, the card-play ledger and history labels.
"""

from datetime import datetime, timezone

import pytest

from resilience_game.domain.round_rules import (
    add_hazard_to_round_event,
    advance_session,
    card_labels_by_round,
    close_round_for_town,
    complete_round_event,
    create_card_play,
    effective_rounds,
    plays_effective_in,
    plays_to_deactivate,
    reapply_ongoing_cards,
)
from resilience_game.errors import SessionCompletedError
from resilience_game.models.schema_models import AbilityVector, Card, GameSession

from tests.conftest import make_town

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

BURNING = Card(id="bushfire2", name="MANAGED BURNING", type="bushfire", cost=15, duration=2, nature=30, economy=10, society=10, health=10)
HOMES = Card(id="bushfire3", name="FIRE-RESILIENT HOMES", type="bushfire", cost=15, duration=3, nature=10, economy=20, society=20, health=20)
LANDSCAPING = Card(id="bushfire1", name="LANDSCAPING", type="bushfire", cost=15, duration=1, nature=20, economy=10, society=10, health=10)
CARDS = {card.id: card for card in (BURNING, HOMES, LANDSCAPING)}


def play(card, played_at_round, play_id="p1", town_id="s1_town_1"):
    return create_card_play(play_id, "s1", town_id, card, played_at_round, NOW)


def test_effective_rounds_are_contiguous():
    assert effective_rounds(2, 3) == [2, 3, 4]
    assert effective_rounds(5, 1) == [5]


class TestAdvanceSession:
    def test_rounds_increase_by_one(self):
        session = GameSession(id="s1", user_id="u1")
        for expected in range(1, 6):
            session = advance_session(session, NOW)
            assert session.current_round == expected
            assert session.is_active

    def test_advancing_past_last_round_completes(self):
        session = GameSession(id="s1", user_id="u1", current_round=5)

        completed = advance_session(session, NOW)

        assert completed.current_round == 6
        assert completed.is_active is False
        assert completed.completed_at == NOW

    def test_completed_session_cannot_advance(self):
        session = GameSession(id="s1", user_id="u1", current_round=6, is_active=False, completed_at=NOW)
        with pytest.raises(SessionCompletedError):
            advance_session(session, NOW)

    def test_rounds_per_game_is_configurable(self):
        session = GameSession(id="s1", user_id="u1", current_round=3)
        assert advance_session(session, NOW, rounds_per_game=3).is_active is False


class TestLedger:
    def test_play_is_not_reapplied_in_its_own_round(self):
        assert plays_effective_in([play(HOMES, 2)], 2) == []

    def test_play_is_reapplied_in_later_effective_rounds(self):
        ongoing = play(HOMES, 2)
        assert plays_effective_in([ongoing], 3) == [ongoing]
        assert plays_effective_in([ongoing], 4) == [ongoing]
        assert plays_effective_in([ongoing], 5) == []

    def test_inactive_plays_are_ignored(self):
        finished = play(HOMES, 2).model_copy(update={"is_active": False})
        assert plays_effective_in([finished], 3) == []

    def test_single_round_play_deactivates_on_next_round(self):
        single = play(LANDSCAPING, 2)
        assert plays_to_deactivate([single], 2) == [single]
        assert plays_to_deactivate([single], 3) == [single]

    def test_multi_round_play_deactivates_at_last_round(self):
        ongoing = play(HOMES, 2)
        assert plays_to_deactivate([ongoing], 3) == []
        assert plays_to_deactivate([ongoing], 4) == [ongoing]

    def test_duration_three_card_is_applied_three_times(self):
        # Cost is paid once at play time; the bonus lands in rounds 2, 3 and 4.
        town = make_town(10, bushfire=AbilityVector(nature=10, economy=10, society=10, health=10))
        town = town.model_copy(update={"effort_points": 85})
        plays = [play(HOMES, 2)]

        town, finished = reapply_ongoing_cards(town, plays, CARDS, 3)
        assert finished == []
        assert town.ability("bushfire").economy == 30

        town, finished = reapply_ongoing_cards(town, plays, CARDS, 4)
        assert town.ability("bushfire").economy == 50
        assert [p.is_active for p in finished] == [False]
        assert town.effort_points == 85

    def test_other_towns_plays_are_ignored(self):
        town = make_town(10)
        plays = [play(HOMES, 2, town_id="s1_town_2")]
        result, finished = reapply_ongoing_cards(town, plays, CARDS, 3)
        assert result == town
        assert finished == []


class TestRoundEvents:
    def test_hazard_ids_stay_unique_history_keeps_every_application(self):
        event = add_hazard_to_round_event(None, "s1", 2, "flood", NOW)
        event = add_hazard_to_round_event(event, "s1", 2, "flood", NOW)
        event = add_hazard_to_round_event(event, "s1", 2, "heatwave", NOW)

        assert event.id == "s1_2"
        assert event.hazard_ids == ["flood", "heatwave"]
        assert [entry.hazard_id for entry in event.event_history] == ["flood", "flood", "heatwave"]
        assert all(entry.type == "hazard" for entry in event.event_history)

    def test_complete_round_event(self):
        event = complete_round_event(None, "s1", 3, NOW)
        assert event.is_complete
        assert event.completed_at == NOW
        assert event.hazard_ids == []


def test_close_round_records_stats_after_setup():
    town = make_town(60)
    assert close_round_for_town(town, 0, 1).current_stats is None

    closed = close_round_for_town(town, 2, 3)
    assert closed.current_round == 3
    assert closed.current_stats.round == 2
    assert closed.current_stats.abilities == town.abilities


def test_card_labels_by_round():
    plays = [play(HOMES, 2, "p1"), play(LANDSCAPING, 3, "p2")]

    labels = card_labels_by_round(plays, CARDS, current_round=3)

    assert labels == {
        2: ["FIRE-RESILIENT HOMES (3 rounds)"],
        3: ["FIRE-RESILIENT HOMES (2/3)", "LANDSCAPING"],
    }
