"""Error taxonomy for the analysis pipeline."""

from __future__ import annotations

import asyncio

import httpx
from google.genai import errors as genai_errors

DEFAULT_ERROR_MESSAGE = "Something went wrong during analysis."


class LensLoreError(Exception):
    """Base class for pipeline failures.

    ``kind`` names the failure class shown to the user and written to logs.
    """

    kind = "UnknownError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or DEFAULT_ERROR_MESSAGE


class MissingCredentialError(LensLoreError):
    """No API key is configured."""

    kind = "MissingCredential"


class EmptyModelResponseError(LensLoreError):
    """The model answered without any text."""

    kind = "EmptyModelResponse"


class MalformedResponseError(LensLoreError):
    """The model's text is not JSON or does not match the expected schema."""

    kind = "MalformedJSON"


class NoAudioGeneratedError(LensLoreError):
    """The speech model returned no inline audio payload."""

    kind = "NoAudioGenerated"


class NetworkFailureError(LensLoreError):
    """Transport-level failure, API error status or timeout."""

    kind = "NetworkFailure"


class UnknownError(LensLoreError):
    """Anything not covered by a more specific kind."""

    kind = "UnknownError"


class InvalidImageError(LensLoreError):
    """Input is not an image encoding the vision backend accepts."""

    kind = "InvalidImage"


NETWORK_EXCEPTIONS: tuple[type[BaseException], ...] = (
    genai_errors.APIError,
    httpx.HTTPError,
    asyncio.TimeoutError,
    ConnectionError,
)


def classify_error(exc: BaseException) -> LensLoreError:
    """Map any exception onto the pipeline taxonomy.

    Args:
        exc: The exception caught at the orchestrator boundary.

    Returns:
        ``exc`` itself when it already is a LensLoreError, otherwise a new
        error of the matching kind carrying the original message.
    """
    if isinstance(exc, LensLoreError):
        return exc

    message = str(exc)
    if isinstance(exc, NETWORK_EXCEPTIONS):
        classified: LensLoreError = NetworkFailureError(message)
    else:
        classified = UnknownError(message)
    classified.__cause__ = exc
    return classified
