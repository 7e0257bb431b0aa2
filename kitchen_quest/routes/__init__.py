"""FastAPI API endpoints under /api.

Endpoint groups: kitchen (settings, stats, fridge scan, quest board, free
narration) and quest (the active quest session: step view, evaluation,
advance/skip/abandon, timer controls).
"""

from fastapi import APIRouter

from .kitchen import router as kitchen_router
from .quest import router as quest_router

router = APIRouter()
router.include_router(kitchen_router)
router.include_router(quest_router)
