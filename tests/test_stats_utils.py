from resilience_game.models.schema_models import AbilityVector
from resilience_game.stats_utils import StatsUtils

from tests.conftest import make_town


def test_get_total():
    assert StatsUtils().get_total(make_town(10)) == 10 * 4 * 5


def test_aspect_totals_sum_over_categories():
    town = make_town(10, flood=AbilityVector(nature=50, economy=0, society=10, health=10))

    totals = StatsUtils().get_aspect_totals(town)

    assert totals.tolist() == [90, 40, 50, 50]


def test_summary_skips_comparison_town():
    towns = [
        make_town(10, town_id="s1_town_1"),
        make_town(20, town_id="s1_town_2"),
        make_town(100, town_id="s1_town_6").model_copy(update={"is_comparison_town": True}),
    ]

    summary = StatsUtils().summary(towns)

    assert summary.aspects == {"nature": 150, "economy": 150, "society": 150, "health": 150}
    assert [town.town_id for town in summary.towns] == ["s1_town_1", "s1_town_2"]
    assert summary.towns[1].total == 400
