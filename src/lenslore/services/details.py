"""Detail step: search-grounded history and facts about a landmark."""

from __future__ import annotations

import asyncio
from typing import Any, Iterable

from google.genai import types

from lenslore.common.logging import get_logger
from lenslore.config import GenAIConfig
from lenslore.models import LandmarkDetails, Source
from lenslore.services.genai import GenAIClient, first_candidate

DETAILS_FALLBACK = "Could not retrieve details."
DEFAULT_SOURCE_TITLE = "Source"


def build_details_prompt(name: str, visual_context: str) -> str:
    """Prompt asking for a short tourist-facing history."""
    return (
        f'Tell me the history and 3 interesting hidden facts about "{name}".\n'
        f"Context from image: {visual_context}.\n"
        "Focus on engaging storytelling for a tourist. Keep it under 200 words."
    )


def extract_sources(chunks: Iterable[Any] | None) -> list[Source]:
    """Turn grounding chunks into sources, dropping entries without a URI."""
    sources = []
    for chunk in chunks or []:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None) or ""
        if not uri:
            continue
        title = getattr(web, "title", None) or DEFAULT_SOURCE_TITLE
        sources.append(Source(title=title, uri=uri))
    return sources


def dedupe_sources(sources: Iterable[Source]) -> list[Source]:
    """Keep the first source per URI, in first-seen order."""
    unique: dict[str, Source] = {}
    for source in sources:
        unique.setdefault(source.uri, source)
    return list(unique.values())


class DetailsProvider:
    """Abstract detail fetcher."""

    async def fetch(self, name: str, visual_description: str) -> LandmarkDetails:
        """Fetch narrative and sources for a landmark."""
        raise NotImplementedError


class MockDetailsProvider(DetailsProvider):
    """Canned details for mock mode."""

    def __init__(self, details: LandmarkDetails | None = None, delay: float = 0.05) -> None:
        self.details = details
        self.delay = delay

    async def fetch(self, name: str, visual_description: str) -> LandmarkDetails:
        await asyncio.sleep(self.delay)
        if self.details is not None:
            return self.details
        return LandmarkDetails(
            description=(
                f"**{name}** has watched over its city for generations. "
                "Built for a world's fair and meant to be temporary, it survived "
                "thanks to its value as a radio antenna. Hidden fact one: it grows "
                "taller in summer as the iron expands. Hidden fact two: its top "
                "floor once held a private apartment. Hidden fact three: it is "
                "repainted by hand roughly every seven years."
            ),
            sources=[
                Source(title="Mock Encyclopedia", uri="https://example.org/landmark"),
                Source(title="Mock Travel Guide", uri="https://example.org/guide"),
            ],
        )


class GeminiDetailsProvider(DetailsProvider):
    """Details from a Gemini text model with Google Search grounding.

    Search grounding cannot be combined with a JSON response schema, so the
    answer is consumed as free text and sources come from grounding metadata.
    """

    def __init__(self, client: GenAIClient, config: GenAIConfig) -> None:
        self.client = client
        self.config = config
        self.logger = get_logger("details")

    async def fetch(self, name: str, visual_description: str) -> LandmarkDetails:
        response = await self.client.generate(
            step="details",
            model=self.config.details_model,
            contents=build_details_prompt(name, visual_description),
            config=types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())],
            ),
            timeout=self.config.details_timeout_seconds,
        )

        candidate = first_candidate(response)
        metadata = getattr(candidate, "grounding_metadata", None)
        chunks = getattr(metadata, "grounding_chunks", None)
        sources = dedupe_sources(extract_sources(chunks))

        self.logger.info("details_fetched", name=name, sources=len(sources))
        return LandmarkDetails(
            description=response.text or DETAILS_FALLBACK,
            sources=sources,
        )
