import numpy as np
from typing import Dict, List, Sequence

from resilience_game.domain.resilience_rules import ASPECT_ORDER, town_matrix
from resilience_game.models.dc_models import SummaryModel, TownSummaryModel
from resilience_game.models.schema_models import Town


class StatsUtils:
    def get_aspect_totals(self, town: Town) -> np.ndarray:
        """Sum every aspect over the five hazard categories

        Args:
            town (Town): Town to summarise

        Returns:
            np.ndarray: Totals in Aspect order (nature, economy, society, health)
        """
        return town_matrix(town.abilities).sum(axis=0)

    def get_total(self, town: Town) -> int:
        """Total resilience of the town (all aspects of all categories)"""
        return int(town_matrix(town.abilities).sum())

    def regular_towns(self, towns: Sequence[Town]) -> List[Town]:
        return [town for town in towns if not town.is_comparison_town]

    def aspect_summary(self, towns: Sequence[Town]) -> Dict[str, int]:
        """Per-aspect totals across all regular towns (the comparison town is excluded)

        Args:
            towns (Sequence[Town]): Towns of one session

        Returns:
            Dict[str, int]: Aspect name to total
        """
        totals = np.zeros(len(ASPECT_ORDER), dtype=np.int64)
        for town in self.regular_towns(towns):
            totals += self.get_aspect_totals(town)
        return {aspect.value: int(total) for aspect, total in zip(ASPECT_ORDER, totals)}

    def town_summary(self, towns: Sequence[Town]) -> List[TownSummaryModel]:
        summaries = []
        for town in self.regular_towns(towns):
            totals = self.get_aspect_totals(town)
            summaries.append(
                TownSummaryModel(
                    town_id=town.id,
                    name=town.name,
                    **{aspect.value: int(total) for aspect, total in zip(ASPECT_ORDER, totals)},
                    total=int(totals.sum()),
                )
            )
        return summaries

    def summary(self, towns: Sequence[Town]) -> SummaryModel:
        return SummaryModel(aspects=self.aspect_summary(towns), towns=self.town_summary(towns))
