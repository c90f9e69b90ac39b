"""Read-only catalog of hazards, cards, town templates and game settings.

The catalog lives in the document store. ``initialize`` seeds the default
catalog when the settings document is missing; afterwards everything is read
once and cached, the engine never writes it.
"""

import logging
from typing import Dict, List, Optional

from resilience_game.converter import DataConverter
from resilience_game.document_store import BatchOperation, DocumentStore
from resilience_game.domain.default_catalog import (
    DEFAULT_CARDS,
    DEFAULT_HAZARDS,
    DEFAULT_SETTINGS,
    DEFAULT_TOWN_TEMPLATES,
)
from resilience_game.errors import NotFoundError
from resilience_game.models.schema_models import Card, GameSettings, Hazard, TownTemplate
from resilience_game.services.game_db import CARDS, GAME_SETTINGS, HAZARDS, TOWN_TEMPLATES


class CatalogProvider:
    def __init__(self, store: DocumentStore, converter: Optional[DataConverter] = None):
        self.store = store
        self.converter = converter or DataConverter()
        self._hazards: Optional[Dict[str, Hazard]] = None
        self._cards: Optional[Dict[str, Card]] = None
        self._templates: Optional[List[TownTemplate]] = None
        self._settings: Optional[GameSettings] = None

    async def initialize(self) -> None:
        """Seed the default catalog into an empty store."""
        if await self.store.get(GAME_SETTINGS, DEFAULT_SETTINGS.id) is not None:
            return

        operations = [BatchOperation("create", HAZARDS, hazard.id, self._document(hazard)) for hazard in DEFAULT_HAZARDS]
        operations += [BatchOperation("create", CARDS, card.id, self._document(card)) for card in DEFAULT_CARDS]
        operations += [
            BatchOperation("create", TOWN_TEMPLATES, template.id, self._document(template))
            for template in DEFAULT_TOWN_TEMPLATES
        ]
        operations.append(BatchOperation("create", GAME_SETTINGS, DEFAULT_SETTINGS.id, self._document(DEFAULT_SETTINGS)))
        await self.store.batch(operations)
        logging.info(
            f"Seeded catalog: {len(DEFAULT_HAZARDS)} hazards, {len(DEFAULT_CARDS)} cards, "
            f"{len(DEFAULT_TOWN_TEMPLATES)} town templates"
        )

    def _document(self, model) -> dict:
        return self.converter.convert_model_to_document(model)

    async def hazards(self) -> Dict[str, Hazard]:
        if self._hazards is None:
            documents = await self.store.query(HAZARDS)
            self._hazards = {doc["id"]: self.converter.convert_document_to_model(doc, Hazard) for doc in documents}
        return self._hazards

    async def cards(self) -> Dict[str, Card]:
        if self._cards is None:
            documents = await self.store.query(CARDS)
            self._cards = {doc["id"]: self.converter.convert_document_to_model(doc, Card) for doc in documents}
        return self._cards

    async def town_templates(self) -> List[TownTemplate]:
        if self._templates is None:
            documents = await self.store.query(TOWN_TEMPLATES)
            templates = [self.converter.convert_document_to_model(doc, TownTemplate) for doc in documents]
            self._templates = sorted(templates, key=lambda template: template.id)
        return self._templates

    async def settings(self) -> GameSettings:
        if self._settings is None:
            document = await self.store.get(GAME_SETTINGS, DEFAULT_SETTINGS.id)
            self._settings = (
                self.converter.convert_document_to_model(document, GameSettings) if document else DEFAULT_SETTINGS
            )
        return self._settings

    async def get_hazard(self, hazard_id: str) -> Hazard:
        hazard = (await self.hazards()).get(hazard_id)
        if hazard is None:
            raise NotFoundError("Hazard", hazard_id)
        return hazard

    async def get_card(self, card_id: str) -> Card:
        card = (await self.cards()).get(card_id)
        if card is None:
            raise NotFoundError("Card", card_id)
        return card
