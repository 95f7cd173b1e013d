"""Vision step: name the landmark in a photo."""

from __future__ import annotations

import asyncio
import base64

from google.genai import types
from pydantic import ValidationError

from lenslore.common.errors import EmptyModelResponseError, MalformedResponseError
from lenslore.common.logging import get_logger
from lenslore.config import GenAIConfig
from lenslore.models import LandmarkAnalysis
from lenslore.services.genai import GenAIClient

VISION_INSTRUCTION = (
    "Identify the primary landmark, building, or tourist attraction in this image. "
    "If there is no clear landmark, describe the scene generally. "
    "Return the name and a very brief 1 sentence visual description."
)

LANDMARK_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "name": types.Schema(
            type=types.Type.STRING,
            description="Name of the landmark or place",
        ),
        "visualDescription": types.Schema(
            type=types.Type.STRING,
            description="A short visual description of what is seen",
        ),
    },
    required=["name", "visualDescription"],
)


def parse_landmark(text: str | None) -> LandmarkAnalysis:
    """Validate the model's JSON answer.

    Raises:
        EmptyModelResponseError: No text at all.
        MalformedResponseError: Not JSON, or missing/mistyped fields.
    """
    if not text or not text.strip():
        raise EmptyModelResponseError("No response from vision model")
    try:
        return LandmarkAnalysis.model_validate_json(text)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Vision model returned an unexpected answer ({e.error_count()} problem(s))"
        ) from e


class VisionProvider:
    """Abstract landmark identifier."""

    async def identify(self, image_b64: str, mime_type: str = "image/jpeg") -> LandmarkAnalysis:
        """Identify the landmark in a base64-encoded image."""
        raise NotImplementedError


class MockVisionProvider(VisionProvider):
    """Canned identification for mock mode."""

    def __init__(self, result: LandmarkAnalysis | None = None, delay: float = 0.05) -> None:
        self.result = result or LandmarkAnalysis(
            name="Eiffel Tower",
            visual_description="A wrought-iron lattice tower rising above the Champ de Mars.",
        )
        self.delay = delay

    async def identify(self, image_b64: str, mime_type: str = "image/jpeg") -> LandmarkAnalysis:
        await asyncio.sleep(self.delay)
        return self.result


class GeminiVisionProvider(VisionProvider):
    """Identification with a multimodal Gemini model and a JSON schema."""

    def __init__(self, client: GenAIClient, config: GenAIConfig) -> None:
        self.client = client
        self.config = config
        self.logger = get_logger("vision")

    async def identify(self, image_b64: str, mime_type: str = "image/jpeg") -> LandmarkAnalysis:
        response = await self.client.generate(
            step="vision",
            model=self.config.vision_model,
            contents=[
                types.Part.from_bytes(data=base64.b64decode(image_b64), mime_type=mime_type),
                VISION_INSTRUCTION,
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=LANDMARK_SCHEMA,
            ),
            timeout=self.config.vision_timeout_seconds,
        )

        landmark = parse_landmark(response.text)
        self.logger.info("vision_identified", name=landmark.name)
        return landmark
