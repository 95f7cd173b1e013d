"""Pytest configuration and fixtures for LensLore tests."""

from __future__ import annotations

import base64
import io
from types import SimpleNamespace
from typing import Any

import numpy as np
import pytest

from lenslore.audio import AudioPlayer, MockAudioOutput
from lenslore.capture import CapturedImage, from_bytes
from lenslore.config import Config
from lenslore.orchestrator import Orchestrator
from lenslore.services import (
    GenAIClient,
    MockDetailsProvider,
    MockNarrationProvider,
    MockVisionProvider,
)


# Fake google-genai client


class FakeModels:
    """Stands in for ``client.aio.models``; replays queued responses."""

    def __init__(self, responses: list[Any]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, *, model: str, contents: Any, config: Any) -> Any:
        self.calls.append({"model": model, "contents": contents, "config": config})
        result = self.responses.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


class FakeGenAI:
    """Fake client plus a factory compatible with ``GenAIClient``."""

    def __init__(self, *responses: Any) -> None:
        self.models = FakeModels(list(responses))
        self.aio = SimpleNamespace(models=self.models)
        self.api_keys: list[str] = []

    def factory(self, api_key: str) -> FakeGenAI:
        self.api_keys.append(api_key)
        return self

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self.models.calls


def text_response(text: str | None, chunks: list[Any] | None = None) -> SimpleNamespace:
    """Response with text and optional grounding chunks."""
    metadata = SimpleNamespace(grounding_chunks=chunks) if chunks is not None else None
    return SimpleNamespace(
        text=text,
        candidates=[SimpleNamespace(grounding_metadata=metadata, content=None)],
    )


def web_chunk(uri: str | None, title: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(web=SimpleNamespace(uri=uri, title=title))


def audio_response(data: bytes | str | None) -> SimpleNamespace:
    """Response whose first part carries inline audio."""
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data) if data is not None else None)
    return SimpleNamespace(
        text=None,
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))],
    )


def pcm_b64(samples: list[int]) -> str:
    return base64.b64encode(np.array(samples, dtype="<i2").tobytes()).decode("ascii")


# Configuration


@pytest.fixture
def config() -> Config:
    """Test configuration with a dummy API key."""
    cfg = Config()
    cfg.genai.api_key = "test-key"
    cfg.app.log_level = "DEBUG"
    return cfg


@pytest.fixture
def mock_config() -> Config:
    """Mock mode configuration."""
    cfg = Config()
    cfg.mock_mode = True
    cfg.app.mode = "development"
    return cfg


@pytest.fixture
def fake_genai() -> FakeGenAI:
    return FakeGenAI()


@pytest.fixture
def genai_client(config: Config, fake_genai: FakeGenAI) -> GenAIClient:
    return GenAIClient(config.genai, client_factory=fake_genai.factory)


# Images


@pytest.fixture
def mock_image_bytes() -> bytes:
    """Create mock JPEG image."""
    from PIL import Image

    img = Image.new("RGB", (64, 48), color=(73, 109, 137))
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=85)
    return buffer.getvalue()


@pytest.fixture
def captured_image(mock_image_bytes: bytes) -> CapturedImage:
    return from_bytes(mock_image_bytes, "photo.jpg")


# Audio and orchestrator


@pytest.fixture
def audio_output() -> MockAudioOutput:
    return MockAudioOutput()


@pytest.fixture
def player(mock_config: Config, audio_output: MockAudioOutput) -> AudioPlayer:
    return AudioPlayer(mock_config.audio, output_factory=lambda _: audio_output)


@pytest.fixture
def orchestrator(mock_config: Config, player: AudioPlayer) -> Orchestrator:
    """Orchestrator on mock providers with no artificial delay."""
    return Orchestrator(
        mock_config,
        vision=MockVisionProvider(delay=0),
        details=MockDetailsProvider(delay=0),
        narration=MockNarrationProvider(duration=0.1, delay=0),
        player=player,
    )
