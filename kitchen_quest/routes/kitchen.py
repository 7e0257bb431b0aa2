"""Settings, kitchen, fridge scan, quest board and free narration endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request

from kitchen_quest.audio import AudioUnavailableError
from kitchen_quest.game import Game
from kitchen_quest.gemini import GeminiError

from .models import NarrateBody, PhotoBody, QuestBoardBody

router = APIRouter()


def get_game(request: Request) -> Game:
    return request.app.state.game


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(game: Game = Depends(get_game)):
    """Runtime settings, without the API key."""
    return game.settings.public()


@router.get("/kitchen")
async def get_kitchen(game: Game = Depends(get_game)):
    """Character stats and inventory."""
    return {
        "stats": game.kitchen.stats.model_dump(by_alias=True),
        "inventory": [i.model_dump(by_alias=True) for i in game.kitchen.inventory],
    }


@router.post("/fridge/scan")
async def scan_fridge(body: PhotoBody, game: Game = Depends(get_game)):
    """Identify the fridge contents in a photo and restock the kitchen."""
    try:
        scan = await game.scouting.scan_fridge(body.photo_bytes(), mime_type=body.mime_type)
    except GeminiError as e:
        raise HTTPException(502, str(e))
    game.kitchen.restock(scan.inventory)
    game.announce(scan.cdm_speech)
    return scan.model_dump(by_alias=True)


@router.post("/quests/board")
async def quest_board(body: QuestBoardBody, game: Game = Depends(get_game)):
    """Generate recipe quests from the inventory."""
    inventory = body.inventory if body.inventory is not None else game.kitchen.inventory
    try:
        quests = await game.scouting.generate_quest_board(inventory, body.budget_goal)
    except GeminiError as e:
        raise HTTPException(502, str(e))
    game.quests = quests
    return [q.model_dump() for q in quests]


@router.post("/narrate")
async def narrate(body: NarrateBody, game: Game = Depends(get_game)):
    """Have the CDM say a line; returns once it has been logged and, if spoken,
    once it has played out or been cut off by a newer line."""
    try:
        await game.narrator.say(body.text, speak_aloud=body.speak_aloud)
    except AudioUnavailableError as e:
        raise HTTPException(503, str(e))
    return {"ok": True}
