"""Speech synthesis capability for CDM narration.

GeminiSpeech matches the SpeechSynthesizer protocol the narration coordinator
expects: text in, raw 24 kHz mono PCM16 out, or None when there is nothing to
play. Backend failures are logged and reported as None.
"""

from __future__ import annotations

import logging

from kitchen_quest.gemini import GeminiClient, GeminiError

logger = logging.getLogger(__name__)


class GeminiSpeech:
    def __init__(self, client: GeminiClient, *, model: str, voice: str = "Zephyr") -> None:
        self._client = client
        self._model = model
        self._voice = voice

    async def __call__(self, text: str) -> bytes | None:
        if not text.strip():
            return None
        try:
            return await self._client.synthesize(self._model, text, self._voice)
        except GeminiError as e:
            logger.error("speech synthesis failed: %s", e)
            return None
