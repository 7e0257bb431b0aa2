"""Active quest endpoints: select, view, evaluate, advance/skip/abandon, timer."""

from fastapi import APIRouter, Depends, HTTPException

from kitchen_quest.game import Game
from kitchen_quest.sequencer import EmptyQuestError, InvalidStateError
from kitchen_quest.session import QuestSession

from .kitchen import get_game
from .models import PhotoBody, SelectQuestBody

router = APIRouter()


def active_session(game: Game = Depends(get_game)) -> QuestSession:
    if game.session is None:
        raise HTTPException(404, "No active quest")
    return game.session


@router.post("/quest", status_code=201)
async def select_quest(body: SelectQuestBody, game: Game = Depends(get_game)):
    """Embark on a quest from the board: decompose it and begin on step 1."""
    quest = game.find_quest(body.quest_id)
    if quest is None:
        raise HTTPException(404, "Quest not found")
    try:
        session = await game.embark(quest)
    except EmptyQuestError as e:
        raise HTTPException(422, str(e))
    return session.view()


@router.get("/quest")
async def get_quest(session: QuestSession = Depends(active_session)):
    """Current step, parsed directives, timer and XP so far."""
    return session.view()


@router.post("/quest/capture")
async def capture(session: QuestSession = Depends(active_session)):
    """The player is about to photograph the current step."""
    try:
        session.capture()
    except InvalidStateError as e:
        raise HTTPException(409, str(e))
    return {"ok": True}


@router.post("/quest/evaluate")
async def evaluate(body: PhotoBody, session: QuestSession = Depends(active_session)):
    """Grade a photo of the current step and bank its XP bonus."""
    try:
        result = await session.evaluate(body.photo_bytes(), mime_type=body.mime_type)
    except InvalidStateError as e:
        raise HTTPException(409, str(e))
    return {"evaluation": result.model_dump(by_alias=True), "quest": session.view()}


@router.post("/quest/advance")
async def advance(session: QuestSession = Depends(active_session)):
    """Complete the current step; the last one completes the quest."""
    try:
        return await session.advance()
    except InvalidStateError as e:
        raise HTTPException(409, str(e))


@router.post("/quest/skip")
async def skip(session: QuestSession = Depends(active_session)):
    """Skip the current step (no bonus for it)."""
    try:
        return await session.skip()
    except InvalidStateError as e:
        raise HTTPException(409, str(e))


@router.post("/quest/abandon")
async def abandon(session: QuestSession = Depends(active_session)):
    """Give up the quest; the accumulated bonus is lost."""
    try:
        return session.abandon()
    except InvalidStateError as e:
        raise HTTPException(409, str(e))


@router.post("/quest/timer/{action}")
async def timer_action(action: str, session: QuestSession = Depends(active_session)):
    """start, pause or restart the current step's countdown."""
    handlers = {
        "start": session.start_timer,
        "pause": session.pause_timer,
        "restart": session.restart_timer,
    }
    handler = handlers.get(action)
    if handler is None:
        raise HTTPException(404, f"Unknown timer action: {action}")
    try:
        await handler()
    except InvalidStateError as e:
        raise HTTPException(409, str(e))
    return session.view().timer
