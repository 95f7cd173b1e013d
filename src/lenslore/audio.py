"""Narration audio: base64 PCM decoding and start/stop playback."""

from __future__ import annotations

import base64
import binascii
import threading
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from lenslore.common.errors import UnknownError
from lenslore.common.logging import get_logger
from lenslore.config import AudioConfig

OnEnded = Callable[[], None]


@dataclass
class AudioBuffer:
    """Decoded PCM samples, float32 in [-1, 1), shaped (frames, channels)."""

    samples: np.ndarray
    sample_rate: int
    channels: int

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        """Length in seconds."""
        return self.frames / self.sample_rate if self.sample_rate else 0.0


def decode_base64(text: str) -> bytes:
    """Decode base64 text to raw bytes."""
    try:
        return base64.b64decode(text)
    except binascii.Error as e:
        raise UnknownError(f"Narration audio is not valid base64: {e}") from e


def decode_pcm(raw: bytes, sample_rate: int = 24000, channels: int = 1) -> AudioBuffer:
    """Interpret signed 16-bit little-endian PCM as a playable buffer.

    A trailing partial frame (odd byte, or an incomplete multi-channel
    frame) is dropped.

    Args:
        raw: Raw PCM bytes, no container.
        sample_rate: Sample rate in Hz.
        channels: Interleaved channel count.

    Returns:
        Decoded audio buffer.
    """
    frame_bytes = 2 * channels
    usable = len(raw) - (len(raw) % frame_bytes)
    pcm = np.frombuffer(raw[:usable], dtype="<i2")
    samples = (pcm.astype(np.float32) / 32768.0).reshape(-1, channels)
    return AudioBuffer(samples=samples, sample_rate=sample_rate, channels=channels)


class PlaybackSource:
    """One-shot player bound to a single buffer."""

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        """Halt playback and release the source. Safe to call twice."""
        raise NotImplementedError

    def close(self) -> None:
        """Release driver resources after playback ended on its own."""


class AudioOutput:
    """Audio output context; creates playback sources."""

    def create_source(self, buffer: AudioBuffer, on_ended: OnEnded) -> PlaybackSource:
        raise NotImplementedError

    def close(self) -> None:
        pass


class MockPlaybackSource(PlaybackSource):
    """Silent source for tests and mock mode.

    Playback never finishes on its own; call ``finish()`` to simulate the
    end of the buffer.
    """

    def __init__(self, buffer: AudioBuffer, on_ended: OnEnded) -> None:
        self.buffer = buffer
        self._on_ended = on_ended
        self.started = False
        self.stopped = False
        self.closed = False
        self._ended = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True
        self.finish()
        self.close()

    def close(self) -> None:
        self.closed = True

    def finish(self) -> None:
        if self._ended:
            return
        self._ended = True
        self._on_ended()


class MockAudioOutput(AudioOutput):
    """Output that records sources instead of playing them."""

    def __init__(self) -> None:
        self.sources: list[MockPlaybackSource] = []

    def create_source(self, buffer: AudioBuffer, on_ended: OnEnded) -> PlaybackSource:
        source = MockPlaybackSource(buffer, on_ended)
        self.sources.append(source)
        return source


class SoundDevicePlaybackSource(PlaybackSource):
    """Streams a buffer to the sound card through a PortAudio callback."""

    def __init__(
        self,
        sd: Any,
        buffer: AudioBuffer,
        on_ended: OnEnded,
        device: str | int | None = None,
    ) -> None:
        self._sd = sd
        self._samples = buffer.samples
        self._position = 0
        self._closed = False
        self._stream = sd.OutputStream(
            samplerate=buffer.sample_rate,
            channels=buffer.channels,
            dtype="float32",
            device=device,
            callback=self._callback,
            finished_callback=on_ended,
        )

    def _callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        chunk = self._samples[self._position : self._position + frames]
        outdata[: len(chunk)] = chunk
        self._position += len(chunk)
        if len(chunk) < frames:
            outdata[len(chunk) :] = 0
            raise self._sd.CallbackStop

    def start(self) -> None:
        self._stream.start()

    def stop(self) -> None:
        if self._closed:
            return
        self._stream.abort()
        self.close()

    def close(self) -> None:
        # Never from the finished callback: PortAudio forbids closing a
        # stream on its own audio thread.
        if self._closed:
            return
        self._closed = True
        self._stream.close()


class SoundDeviceOutput(AudioOutput):
    """Sound card output via the ``sounddevice`` package (``lenslore[audio]``)."""

    def __init__(self, config: AudioConfig) -> None:
        import sounddevice as sd

        self._sd = sd
        self.device = config.output_device

    def create_source(self, buffer: AudioBuffer, on_ended: OnEnded) -> PlaybackSource:
        return SoundDevicePlaybackSource(self._sd, buffer, on_ended, self.device)


class AudioPlayer:
    """Owns the decoded narration and the single active playback source.

    The output is created on first use and reused for every playback.
    """

    def __init__(
        self,
        config: AudioConfig,
        mock_mode: bool = False,
        output_factory: Callable[[AudioConfig], AudioOutput] | None = None,
    ) -> None:
        """Initialize the player.

        Args:
            config: Audio configuration.
            mock_mode: Use a silent output.
            output_factory: Builds the output on first use (overrides mock_mode).
        """
        self.config = config
        self.mock_mode = mock_mode
        self.logger = get_logger("audio_player")

        if output_factory is None:
            output_factory = (lambda _: MockAudioOutput()) if mock_mode else SoundDeviceOutput
        self._output_factory = output_factory
        self._output: AudioOutput | None = None
        self._buffer: AudioBuffer | None = None
        self._source: PlaybackSource | None = None
        # Sources that ended on their own, closed on the next play/stop.
        self._ended: list[PlaybackSource] = []
        self._lock = threading.Lock()
        self._playing = False
        self.on_change: Callable[[bool], None] | None = None

    @property
    def output(self) -> AudioOutput:
        """Audio output, created lazily."""
        if self._output is None:
            self._output = self._output_factory(self.config)
            self.logger.debug("audio_output_created", sample_rate=self.config.sample_rate)
        return self._output

    @property
    def buffer(self) -> AudioBuffer | None:
        return self._buffer

    @property
    def is_playing(self) -> bool:
        return self._playing

    def decode(self, audio_b64: str) -> AudioBuffer:
        """Decode base64 PCM using the configured rate and channel count."""
        return decode_pcm(
            decode_base64(audio_b64),
            sample_rate=self.config.sample_rate,
            channels=self.config.channels,
        )

    def load(self, buffer: AudioBuffer) -> None:
        """Replace the current buffer, stopping any playback first."""
        self.stop()
        self._buffer = buffer
        self.logger.debug("audio_loaded", duration=round(buffer.duration, 2))

    def play(self) -> bool:
        """Start the buffer from the beginning on a fresh source.

        Returns:
            True if playback started, False when there is nothing to play.
        """
        if self._buffer is None:
            return False

        self.stop()

        source: PlaybackSource | None = None

        def on_ended() -> None:
            with self._lock:
                if self._source is not source:
                    return
                self._source = None
                self._ended.append(source)
            self._set_playing(False)

        source = self.output.create_source(self._buffer, on_ended)
        with self._lock:
            self._source = source
        source.start()
        self._set_playing(True)
        self.logger.debug("audio_playing", duration=round(self._buffer.duration, 2))
        return True

    def stop(self) -> None:
        """Halt the active source immediately and close finished ones."""
        with self._lock:
            source, self._source = self._source, None
            ended, self._ended = self._ended, []
        if source is not None:
            source.stop()
            self.logger.debug("audio_stopped")
        for finished in ended:
            finished.close()
        self._set_playing(False)

    def toggle(self) -> bool:
        """Play if stopped, stop if playing; no-op without a buffer.

        Returns:
            Whether audio is playing afterwards.
        """
        if self._buffer is None:
            return False
        if self._playing:
            self.stop()
        else:
            self.play()
        return self._playing

    def release(self) -> None:
        """Stop playback and drop the buffer."""
        self.stop()
        self._buffer = None

    def _set_playing(self, playing: bool) -> None:
        if self._playing == playing:
            return
        self._playing = playing
        if self.on_change is not None:
            self.on_change(playing)
