from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel

from resilience_game.models.dc_models import SessionDetailModel, SessionModel
from resilience_game.models.schema_models import GameSession

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO string, so stored timestamps sort as text."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _to_document_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {_to_document_value(key): _to_document_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_document_value(item) for item in value]
    return value


class DataConverter:
    """This class is used to convert data between domain records, stored documents and API models."""

    def convert_model_to_document(self, model: BaseModel) -> Dict[str, Any]:
        """Convert a domain record to a JSON-compatible document (the store keeps the id separately)

        Args:
            model (BaseModel): Any domain record from schema_models

        Returns:
            Dict[str, Any]: Document without the "id" key
        """
        data = _to_document_value(model.model_dump(mode="python"))
        data.pop("id", None)
        return data

    def convert_document_to_model(self, document: Dict[str, Any], model_class: Type[ModelT]) -> ModelT:
        return model_class.model_validate(document)

    def convert_session_to_session_model(self, session: GameSession) -> SessionModel:
        return SessionModel.model_validate(session)

    def convert_state_to_detail_model(self, state, can_revert: bool) -> SessionDetailModel:
        """Convert the cached session state to the response sent to the client

        Args:
            state (SessionState): Open session state
            can_revert (bool): Whether the undo stack has a snapshot
        Returns:
            SessionDetailModel: Session, towns in display order and the card-play ledger
        """
        return SessionDetailModel(
            session=state.session,
            towns=list(state.towns),
            card_plays=list(state.card_plays),
            can_revert=can_revert,
        )
