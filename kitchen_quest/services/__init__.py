"""Backend-facing services: decomposition, evaluation, speech and scouting.

Each service takes a GeminiClient and model names at construction and a
demo_mode flag that answers from the demo dataset without any backend call.
"""

from .decomposition import DecompositionService, number_steps  # noqa: F401
from .evaluation import EvaluationService  # noqa: F401
from .scouting import ScoutingService  # noqa: F401
from .speech import GeminiSpeech  # noqa: F401
