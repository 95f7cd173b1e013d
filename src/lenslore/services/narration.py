"""Narration step: text-to-speech of the landmark story."""

from __future__ import annotations

import asyncio
import base64

import numpy as np
from google.genai import types

from lenslore.common.errors import NoAudioGeneratedError
from lenslore.common.logging import get_logger
from lenslore.config import GenAIConfig
from lenslore.services.genai import GenAIClient, first_candidate

# Raw PCM returned by the speech model: s16le, mono, no container.
NARRATION_SAMPLE_RATE = 24000
NARRATION_CHANNELS = 1


def truncate_for_narration(text: str, limit: int = 500, suffix: str = "...") -> str:
    """Bound the narrated text to keep synthesis fast and cheap."""
    if len(text) > limit:
        return text[:limit] + suffix
    return text


class NarrationProvider:
    """Abstract speech synthesizer."""

    async def synthesize(self, text: str) -> str:
        """Synthesize ``text`` and return base64-encoded raw PCM."""
        raise NotImplementedError


class MockNarrationProvider(NarrationProvider):
    """Short generated tone in place of speech."""

    def __init__(self, duration: float = 0.5, delay: float = 0.05) -> None:
        self.duration = duration
        self.delay = delay
        self.last_text: str | None = None

    async def synthesize(self, text: str) -> str:
        await asyncio.sleep(self.delay)
        self.last_text = text
        t = np.arange(int(NARRATION_SAMPLE_RATE * self.duration)) / NARRATION_SAMPLE_RATE
        tone = (0.2 * np.sin(2 * np.pi * 440.0 * t) * 32767).astype("<i2")
        return base64.b64encode(tone.tobytes()).decode("ascii")


class GeminiNarrationProvider(NarrationProvider):
    """Speech from a Gemini TTS model with one prebuilt voice."""

    def __init__(self, client: GenAIClient, config: GenAIConfig) -> None:
        self.client = client
        self.config = config
        self.logger = get_logger("narration")

    async def synthesize(self, text: str) -> str:
        response = await self.client.generate(
            step="narration",
            model=self.config.tts_model,
            contents=text,
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(
                            voice_name=self.config.voice,
                        )
                    )
                ),
            ),
            timeout=self.config.narration_timeout_seconds,
        )

        data = _inline_audio(response)
        if not data:
            raise NoAudioGeneratedError("No audio generated")

        # The SDK hands back decoded bytes; keep the wire form (base64 text).
        if isinstance(data, bytes):
            data = base64.b64encode(data).decode("ascii")

        self.logger.info("narration_synthesized", chars=len(text), payload=len(data))
        return data


def _inline_audio(response: object) -> bytes | str | None:
    candidate = first_candidate(response)
    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []
    if not parts:
        return None
    inline_data = getattr(parts[0], "inline_data", None)
    return getattr(inline_data, "data", None)
