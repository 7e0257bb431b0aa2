"""Process-wide game state: settings, backend client, narrator, kitchen and
the active quest session.

One Game is built per app (see app.create_app) and stored on app.state.
"""

from __future__ import annotations

import logging

from kitchen_quest import demo
from kitchen_quest.audio import AudioHandle
from kitchen_quest.config import Settings
from kitchen_quest.gemini import GeminiClient
from kitchen_quest.kitchen import Kitchen
from kitchen_quest.models import NarrationRequest, RecipeQuest
from kitchen_quest.narration import BackgroundTasks, NarrationCoordinator
from kitchen_quest.services import (
    DecompositionService,
    EvaluationService,
    GeminiSpeech,
    ScoutingService,
)
from kitchen_quest.session import QuestSession

logger = logging.getLogger(__name__)


class Game:
    def __init__(self, settings: Settings, client: GeminiClient | None = None) -> None:
        self.settings = settings
        self.client = client or GeminiClient(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            initial_delay=settings.retry_delay,
        )
        demo_mode = settings.demo_mode
        self.audio = AudioHandle()
        self.narrator = NarrationCoordinator(
            self.audio,
            GeminiSpeech(self.client, model=settings.tts_model, voice=settings.tts_voice),
            demo_mode=demo_mode,
        )
        self.decomposer = DecompositionService(
            self.client, model=settings.text_model, demo_mode=demo_mode,
        )
        self.evaluator = EvaluationService(
            self.client, model=settings.text_model, demo_mode=demo_mode,
        )
        self.scouting = ScoutingService(
            self.client,
            text_model=settings.text_model,
            image_model=settings.image_model,
            demo_mode=demo_mode,
        )
        if demo_mode:
            self.kitchen = Kitchen(stats=demo.DEMO_STATS, inventory=demo.demo_inventory())
        else:
            self.kitchen = Kitchen()
        self.tasks = BackgroundTasks()
        self.quests: list[RecipeQuest] = []
        self.session: QuestSession | None = None

    def find_quest(self, quest_id: str) -> RecipeQuest | None:
        for quest in self.quests:
            if quest.id == quest_id:
                return quest
        return None

    async def embark(self, quest: RecipeQuest) -> QuestSession:
        """Replace any running session with a fresh one for quest and start it."""
        await self.end_session()
        self.kitchen.active_quest = quest
        session = QuestSession(
            quest,
            narrate=self.narrator.narrate,
            decomposer=self.decomposer,
            evaluator=self.evaluator,
            on_complete=self.kitchen,
        )
        self.session = session
        try:
            await session.start()
        except Exception:
            # its failure line is still in flight; leave that task alone
            self.session = None
            self.kitchen.active_quest = None
            raise
        return session

    async def end_session(self) -> None:
        session, self.session = self.session, None
        if session is not None:
            await session.close()

    def announce(self, text: str) -> None:
        """Have the CDM say a line aloud without waiting for it."""
        self.tasks.spawn(self.narrator.narrate(NarrationRequest(text=text, speak_aloud=True)))

    async def close(self) -> None:
        await self.end_session()
        await self.tasks.close()
        self.narrator.close()
        self.audio.release()
