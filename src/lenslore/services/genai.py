"""Thin async wrapper around the google-genai client.

Every remote call of the pipeline goes through ``GenAIClient.generate`` so
credential checks, timeouts and transport error mapping live in one place.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from lenslore.common.errors import MissingCredentialError, NetworkFailureError
from lenslore.common.logging import get_logger
from lenslore.config import GenAIConfig

ClientFactory = Callable[[str], Any]


def _default_client_factory(api_key: str) -> genai.Client:
    return genai.Client(api_key=api_key)


class GenAIClient:
    """Builds a client per call and runs ``generate_content`` with a timeout."""

    def __init__(
        self,
        config: GenAIConfig,
        client_factory: ClientFactory | None = None,
    ) -> None:
        """Initialize the wrapper.

        Args:
            config: Backend configuration (API key, models, timeouts).
            client_factory: Callable taking an API key and returning an
                object with ``aio.models.generate_content``.
        """
        self.config = config
        self._client_factory = client_factory or _default_client_factory
        self.logger = get_logger("genai")

    def client(self) -> Any:
        """Return a client, failing fast when no API key is configured."""
        if not self.config.api_key:
            raise MissingCredentialError("API_KEY is missing in environment variables")
        return self._client_factory(self.config.api_key)

    async def generate(
        self,
        *,
        step: str,
        model: str,
        contents: Any,
        config: types.GenerateContentConfig,
        timeout: float,
    ) -> types.GenerateContentResponse:
        """Run one ``generate_content`` call.

        Args:
            step: Pipeline step name, for logs and timeout messages.
            model: Model identifier.
            contents: Request contents.
            config: Generation config.
            timeout: Seconds before the call is abandoned.

        Returns:
            The raw SDK response.

        Raises:
            MissingCredentialError: No API key.
            NetworkFailureError: Timeout, API error status or transport failure.
        """
        client = self.client()
        start_time = time.time()

        self.logger.debug("genai_request", step=step, model=model, timeout=timeout)
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=config,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkFailureError(
                f"The {step} request timed out after {timeout:g} seconds"
            ) from e
        except genai_errors.APIError as e:
            raise NetworkFailureError(getattr(e, "message", None) or str(e)) from e
        except httpx.HTTPError as e:
            raise NetworkFailureError(f"Network error during {step}: {e}") from e

        self.logger.info(
            "genai_response",
            step=step,
            model=model,
            latency_ms=int((time.time() - start_time) * 1000),
        )
        return response


def first_candidate(response: Any) -> Any | None:
    """First candidate of a response, or None."""
    candidates = getattr(response, "candidates", None) or []
    return candidates[0] if candidates else None
