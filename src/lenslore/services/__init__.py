"""Remote pipeline steps: vision, details and narration."""

from lenslore.services.genai import GenAIClient
from lenslore.services.vision import (
    VisionProvider,
    MockVisionProvider,
    GeminiVisionProvider,
)
from lenslore.services.details import (
    DetailsProvider,
    MockDetailsProvider,
    GeminiDetailsProvider,
)
from lenslore.services.narration import (
    NarrationProvider,
    MockNarrationProvider,
    GeminiNarrationProvider,
    truncate_for_narration,
)

__all__ = [
    "GenAIClient",
    "VisionProvider",
    "MockVisionProvider",
    "GeminiVisionProvider",
    "DetailsProvider",
    "MockDetailsProvider",
    "GeminiDetailsProvider",
    "NarrationProvider",
    "MockNarrationProvider",
    "GeminiNarrationProvider",
    "truncate_for_narration",
]
