"""Data model shared by the pipeline steps, the orchestrator and the views."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from lenslore.audio import AudioBuffer
    from lenslore.capture import CapturedImage


class Status(Enum):
    """Pipeline status; decides which view is rendered."""

    IDLE = "idle"
    ANALYZING_IMAGE = "analyzing_image"
    SEARCHING_INFO = "searching_info"
    GENERATING_AUDIO = "generating_audio"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_loading(self) -> bool:
        return self in (
            Status.ANALYZING_IMAGE,
            Status.SEARCHING_INFO,
            Status.GENERATING_AUDIO,
        )


class LandmarkAnalysis(BaseModel):
    """Vision step result, validated straight from the model's JSON."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, strict=True)

    name: str = Field(description="Name of the landmark or place")
    visual_description: str = Field(
        alias="visualDescription",
        description="A short visual description of what is seen",
    )


@dataclass(frozen=True)
class Source:
    """A web page the narrative was grounded on."""

    title: str
    uri: str

    def short_title(self, limit: int = 20) -> str:
        """Title cut to ``limit`` characters for compact display."""
        if len(self.title) > limit:
            return self.title[:limit] + "..."
        return self.title


@dataclass
class LandmarkDetails:
    """Detail step result: narrative text plus de-duplicated sources."""

    description: str
    sources: list[Source] = field(default_factory=list)


@dataclass
class ErrorInfo:
    """Failure surfaced to the user."""

    message: str
    kind: str = "UnknownError"


@dataclass
class AnalysisState:
    """Everything the views need to render one screen.

    Mutated only by the orchestrator.
    """

    status: Status = Status.IDLE
    image: CapturedImage | None = None
    landmark: LandmarkAnalysis | None = None
    details: LandmarkDetails | None = None
    audio: AudioBuffer | None = None
    error: ErrorInfo | None = None
    attempt: int = 0
