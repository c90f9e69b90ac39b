import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from resilience_game.converter import DataConverter
from resilience_game.errors import (
    GameError,
    InsufficientBudgetError,
    InvalidSessionNameError,
    NothingToRevertError,
    NotFoundError,
    PartialFailureError,
    RoundNotActiveError,
    SessionCompletedError,
    SessionLimitReachedError,
)
from resilience_game.models.dc_models import (
    AdvanceResultModel,
    CardRequestModel,
    CardResultModel,
    CreateSessionModel,
    HazardRequestModel,
    HazardResultModel,
    PartialFailureModel,
    RenameSessionModel,
    SessionDetailModel,
    SessionModel,
    SessionStatusModel,
    SummaryModel,
)
from resilience_game.models.schema_models import Card, Hazard, RoundStats
from resilience_game.services.session_engine import GameSessionOrchestrator

session_router = APIRouter()
converter = DataConverter()

CONFLICT_ERRORS = (
    InsufficientBudgetError,
    NothingToRevertError,
    SessionCompletedError,
    RoundNotActiveError,
    SessionLimitReachedError,
)


def get_orchestrator(request: Request) -> GameSessionOrchestrator:
    return request.app.state.orchestrator


async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    """Map engine errors to HTTP responses"""
    if isinstance(exc, NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})
    if isinstance(exc, CONFLICT_ERRORS):
        content = {"detail": str(exc)}
        if isinstance(exc, InsufficientBudgetError):
            content.update(available=exc.available, required=exc.required)
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=content)
    if isinstance(exc, InvalidSessionNameError):
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})
    if isinstance(exc, PartialFailureError):
        logging.error(f"Partial failure on {request.url.path}: {exc}")
        body = PartialFailureModel(
            detail=str(exc), operation=exc.operation, persisted_ids=exc.persisted_ids, failed_id=exc.failed_id
        )
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())
    logging.error(f"Unhandled game error on {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})


class SessionAPI:
    @staticmethod
    @session_router.post("/sessions", response_model=SessionDetailModel, status_code=status.HTTP_201_CREATED)
    async def create_session(body: CreateSessionModel, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        state = await orchestrator.create_session(body.user_id, body.name)
        return converter.convert_state_to_detail_model(state, state.undo.can_revert)

    @staticmethod
    @session_router.get("/sessions", response_model=List[SessionModel])
    async def list_sessions(
        user_id: str,
        session_status: SessionStatusModel = Query(SessionStatusModel.active, alias="status"),
        orchestrator: GameSessionOrchestrator = Depends(get_orchestrator),
    ):
        if session_status == SessionStatusModel.completed:
            sessions = await orchestrator.list_completed_sessions(user_id)
        else:
            sessions = await orchestrator.list_active_sessions(user_id)
        return [converter.convert_session_to_session_model(session) for session in sessions]

    @staticmethod
    @session_router.get("/sessions/{session_id}", response_model=SessionDetailModel)
    async def get_session(session_id: str, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        state = await orchestrator.load_session(session_id)
        return converter.convert_state_to_detail_model(state, state.undo.can_revert)

    @staticmethod
    @session_router.patch("/sessions/{session_id}", response_model=SessionModel)
    async def rename_session(
        session_id: str, body: RenameSessionModel, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)
    ):
        session = await orchestrator.rename_session(session_id, body.name)
        return converter.convert_session_to_session_model(session)

    @staticmethod
    @session_router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_session(session_id: str, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        await orchestrator.delete_session(session_id)


class GameplayAPI:
    @staticmethod
    @session_router.post("/sessions/{session_id}/advance", response_model=AdvanceResultModel)
    async def advance_round(session_id: str, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        result = await orchestrator.advance_round(session_id)
        return AdvanceResultModel(
            session=result.session,
            towns=result.towns,
            round_stats=result.round_stats,
            deactivated_plays=result.deactivated_plays,
        )

    @staticmethod
    @session_router.post("/sessions/{session_id}/hazards", response_model=HazardResultModel)
    async def apply_hazard(
        session_id: str, body: HazardRequestModel, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)
    ):
        result = await orchestrator.apply_hazard(session_id, body.hazard_id)
        return HazardResultModel(towns=result.towns, round_event=result.round_event)

    @staticmethod
    @session_router.post("/sessions/{session_id}/cards", response_model=CardResultModel)
    async def play_card(
        session_id: str, body: CardRequestModel, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)
    ):
        result = await orchestrator.play_card(session_id, body.town_id, body.card_id)
        return CardResultModel(town=result.town, card_play=result.card_play)

    @staticmethod
    @session_router.post("/sessions/{session_id}/revert", response_model=SessionDetailModel)
    async def revert(session_id: str, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        state = await orchestrator.revert(session_id)
        return converter.convert_state_to_detail_model(state, state.undo.can_revert)


class HistoryAPI:
    @staticmethod
    @session_router.get("/sessions/{session_id}/round-events", response_model=Dict[int, List[str]])
    async def round_events(session_id: str, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        return await orchestrator.round_events(session_id)

    @staticmethod
    @session_router.get("/sessions/{session_id}/round-stats", response_model=List[RoundStats])
    async def round_stats(session_id: str, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        return await orchestrator.round_stats(session_id)

    @staticmethod
    @session_router.get("/sessions/{session_id}/summary", response_model=SummaryModel)
    async def summary(session_id: str, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        return await orchestrator.summary(session_id)

    @staticmethod
    @session_router.get("/sessions/{session_id}/towns/{town_id}/card-plays", response_model=Dict[int, List[str]])
    async def town_card_history(
        session_id: str, town_id: str, orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)
    ):
        return await orchestrator.town_card_history(session_id, town_id)


class CatalogAPI:
    @staticmethod
    @session_router.get("/catalog/hazards", response_model=List[Hazard])
    async def hazards(orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        return list((await orchestrator.catalog.hazards()).values())

    @staticmethod
    @session_router.get("/catalog/cards", response_model=List[Card])
    async def cards(orchestrator: GameSessionOrchestrator = Depends(get_orchestrator)):
        return list((await orchestrator.catalog.cards()).values())
