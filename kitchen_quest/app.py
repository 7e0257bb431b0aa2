import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from kitchen_quest.audio import AudioOutput, SoundDeviceOutput
from kitchen_quest.config import Settings, load_settings
from kitchen_quest.game import Game
from kitchen_quest.routes import router

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    game: Game | None = None,
    audio_output: AudioOutput | None = None,
) -> FastAPI:
    """Build the API app. The audio output is only opened outside demo mode."""
    resolved = settings or (game.settings if game else load_settings())
    game = game or Game(resolved)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if audio_output is not None:
            game.audio.init(audio_output)
        elif not resolved.demo_mode:
            game.audio.init(SoundDeviceOutput())
        logger.info("Kitchen Quest ready (demo_mode=%s)", resolved.demo_mode)
        yield
        await game.close()

    app = FastAPI(title="Kitchen Quest", lifespan=lifespan)
    app.state.game = game
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (settings from the environment / .env)
app = create_app()
