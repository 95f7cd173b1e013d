"""Pipeline orchestrator: identify -> enrich -> narrate, one step at a time."""

from __future__ import annotations

import asyncio
from typing import Any

from lenslore.audio import AudioPlayer
from lenslore.capture import CapturedImage
from lenslore.common.errors import classify_error
from lenslore.common.events import Event, EventBus
from lenslore.common.logging import get_logger
from lenslore.config import Config
from lenslore.models import AnalysisState, ErrorInfo, Status
from lenslore.services import (
    DetailsProvider,
    GeminiDetailsProvider,
    GeminiNarrationProvider,
    GeminiVisionProvider,
    GenAIClient,
    MockDetailsProvider,
    MockNarrationProvider,
    MockVisionProvider,
    NarrationProvider,
    VisionProvider,
    truncate_for_narration,
)

EVENT_SOURCE = "orchestrator"


class Orchestrator:
    """Holds the analysis state and drives the three remote steps.

    All mutable state lives here; views only read ``state`` and
    ``is_playing``. A reset or a newer analysis supersedes an in-flight one:
    its late result or error is dropped instead of being written back.

    Example:
        orchestrator = Orchestrator.from_config(load_config())
        state = await orchestrator.start_analysis(load_image("photo.jpg"))
        if state.status is Status.COMPLETE:
            orchestrator.toggle_audio()
    """

    def __init__(
        self,
        config: Config,
        vision: VisionProvider,
        details: DetailsProvider,
        narration: NarrationProvider,
        player: AudioPlayer | None = None,
        events: EventBus | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Configuration.
            vision: Landmark identification step.
            details: Search-grounded detail step.
            narration: Speech synthesis step.
            player: Audio player (built from config when None).
            events: Bus that receives state change events.
        """
        self.config = config
        self.vision = vision
        self.details = details
        self.narration = narration
        self.player = player or AudioPlayer(config.audio, mock_mode=config.mock_mode)
        self.events = events or EventBus()
        self.logger = get_logger("orchestrator")

        self._state = AnalysisState()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Task] = set()
        self.player.on_change = self._on_playback_change

    @classmethod
    def from_config(
        cls,
        config: Config,
        mock_mode: bool | None = None,
        events: EventBus | None = None,
        output_factory: Any = None,
    ) -> Orchestrator:
        """Build an orchestrator with Gemini or mock providers.

        Args:
            config: Configuration.
            mock_mode: Override ``config.mock_mode``.
            events: Event bus to publish on.
            output_factory: Audio output factory passed to the player.
        """
        if mock_mode is None:
            mock_mode = config.mock_mode

        vision: VisionProvider
        details: DetailsProvider
        narration: NarrationProvider
        if mock_mode:
            vision = MockVisionProvider()
            details = MockDetailsProvider()
            narration = MockNarrationProvider()
        else:
            client = GenAIClient(config.genai)
            vision = GeminiVisionProvider(client, config.genai)
            details = GeminiDetailsProvider(client, config.genai)
            narration = GeminiNarrationProvider(client, config.genai)

        player = AudioPlayer(config.audio, mock_mode=mock_mode, output_factory=output_factory)
        return cls(config, vision, details, narration, player=player, events=events)

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def status(self) -> Status:
        return self._state.status

    @property
    def is_playing(self) -> bool:
        return self.player.is_playing

    async def start_analysis(self, image: CapturedImage) -> AnalysisState:
        """Run the full pipeline for one image.

        Never raises for step failures: they end in ``Status.ERROR`` with
        the failure message in ``state.error``.

        Args:
            image: Image to analyze.

        Returns:
            The state after this attempt finished or was superseded.
        """
        self._loop = asyncio.get_running_loop()
        self.player.release()

        attempt = self._state.attempt + 1
        self._state = AnalysisState(image=image, attempt=attempt)
        log = self.logger.bind(attempt=attempt)
        log.info("analysis_started", mime_type=image.mime_type)

        try:
            await self._set_status(Status.ANALYZING_IMAGE, attempt)
            landmark = await self.vision.identify(image.payload, image.mime_type)
            if not self._is_current(attempt):
                return self._superseded(log, "vision")
            self._state.landmark = landmark

            await self._set_status(Status.SEARCHING_INFO, attempt)
            details = await self.details.fetch(landmark.name, landmark.visual_description)
            if not self._is_current(attempt):
                return self._superseded(log, "details")
            self._state.details = details

            await self._set_status(Status.GENERATING_AUDIO, attempt)
            text = truncate_for_narration(
                details.description,
                limit=self.config.narration.max_chars,
                suffix=self.config.narration.ellipsis,
            )
            audio_b64 = await self.narration.synthesize(text)
            if not self._is_current(attempt):
                return self._superseded(log, "narration")

            buffer = await self._loop.run_in_executor(None, self.player.decode, audio_b64)
            if not self._is_current(attempt):
                return self._superseded(log, "decode")
            self.player.load(buffer)
            self._state.audio = buffer

            await self._set_status(Status.COMPLETE, attempt)
            log.info(
                "analysis_complete",
                landmark=landmark.name,
                sources=len(details.sources),
                audio_seconds=round(buffer.duration, 2),
            )

        except Exception as e:
            if not self._is_current(attempt):
                log.debug("stale_failure_ignored", error=str(e))
                return self._state
            await self._fail(e, attempt)

        return self._state

    def reset(self) -> AnalysisState:
        """Return to Idle from any state, stopping playback.

        In-flight remote calls are not aborted; their results are ignored.
        """
        self.player.release()
        attempt = self._state.attempt + 1
        previous = self._state.status
        self._state = AnalysisState(attempt=attempt)
        self.logger.info("analysis_reset", previous_status=previous.value)
        self._emit(Event(
            topic="analysis.status",
            data={"status": Status.IDLE.value, "attempt": attempt},
            source=EVENT_SOURCE,
        ))
        return self._state

    def toggle_audio(self) -> bool:
        """Start or stop narration playback; no-op without decoded audio.

        Returns:
            Whether audio is playing afterwards.
        """
        if self._state.audio is None or self.player.buffer is None:
            return False
        return self.player.toggle()

    def _is_current(self, attempt: int) -> bool:
        return self._state.attempt == attempt

    def _superseded(self, log: Any, step: str) -> AnalysisState:
        log.debug("stale_result_ignored", step=step)
        return self._state

    async def _set_status(self, status: Status, attempt: int) -> None:
        self._state.status = status
        self.logger.debug("status_changed", status=status.value, attempt=attempt)
        await self.events.publish(Event(
            topic="analysis.status",
            data={"status": status.value, "attempt": attempt},
            source=EVENT_SOURCE,
        ))

    async def _fail(self, exc: Exception, attempt: int) -> None:
        error = classify_error(exc)
        self.logger.exception(
            "analysis_failed",
            attempt=attempt,
            kind=error.kind,
            step=self._state.status.value,
            error=error.message,
        )
        self.player.release()
        self._state.landmark = None
        self._state.details = None
        self._state.audio = None
        self._state.error = ErrorInfo(message=error.message, kind=error.kind)
        await self.events.publish(Event(
            topic="analysis.error",
            data={"message": error.message, "kind": error.kind, "attempt": attempt},
            source=EVENT_SOURCE,
        ))
        await self._set_status(Status.ERROR, attempt)

    def _on_playback_change(self, playing: bool) -> None:
        # May run on the audio driver's thread when playback ends by itself.
        self._emit(Event(
            topic="audio.playback",
            data={"playing": playing},
            source=EVENT_SOURCE,
        ))

    def _emit(self, event: Event) -> None:
        """Publish from synchronous code, on the orchestrator's loop."""
        try:
            running: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        loop = self._loop or running
        if loop is None or loop.is_closed():
            return

        if running is loop:
            task = loop.create_task(self.events.publish(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            asyncio.run_coroutine_threadsafe(self.events.publish(event), loop)