"""Terminal views, one per pipeline status."""

from __future__ import annotations

import re
from typing import Any

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from lenslore.models import AnalysisState, ErrorInfo, Status

APP_TITLE = "LensLore"
TAGLINE = (
    "Your AI travel companion. Snap any landmark to unlock its history, "
    "secrets, and stories."
)

# (headline, detail) shown while a step is running
LOADING_COPY: dict[Status, tuple[str, str]] = {
    Status.ANALYZING_IMAGE: ("Analyzing Scene...", "Identifying landmarks using Vision AI"),
    Status.SEARCHING_INFO: ("Consulting History...", "Fetching real-time data & facts"),
    Status.GENERATING_AUDIO: ("Creating Audio Guide...", "Synthesizing narration"),
}

_BOLD_SPAN = re.compile(r"(\*\*.*?\*\*)")


def playback_label(is_playing: bool) -> str:
    return "Pause Guide" if is_playing else "Play Audio Guide"


def loading_message(status: Status) -> str:
    """One-line spinner text for a loading status."""
    headline, detail = LOADING_COPY.get(status, ("Working...", ""))
    return f"{headline} [dim]{detail}[/]" if detail else headline


def highlight_bold(text: str) -> Text:
    """Render ``**spans**`` of the narrative as highlighted bold text."""
    rendered = Text()
    for part in _BOLD_SPAN.split(text):
        if not part:
            continue
        if part.startswith("**") and part.endswith("**") and len(part) >= 4:
            rendered.append(part[2:-2], style="bold dark_orange")
        else:
            rendered.append(part)
    return rendered


def render_idle() -> RenderableType:
    body = Group(
        Text(APP_TITLE, style="bold white", justify="center"),
        Text(TAGLINE, style="grey62", justify="center"),
    )
    return Panel(body, border_style="dark_orange", padding=(1, 4))


def render_loading(status: Status) -> RenderableType:
    headline, detail = LOADING_COPY[status]
    body = Group(
        Text(headline, style="bold white", justify="center"),
        Text(detail, style="grey62", justify="center"),
    )
    return Panel(body, border_style="dark_orange")


def render_error(error: ErrorInfo | None) -> RenderableType:
    message = error.message if error else ""
    body = Group(
        Text(message, style="light_coral"),
        Text(""),
        Text("[r] Try Again", style="bold"),
    )
    return Panel(body, title="Analysis Failed", border_style="red")


def render_complete(state: AnalysisState, is_playing: bool = False) -> RenderableType:
    landmark = state.landmark
    details = state.details
    if landmark is None or details is None:
        return render_idle()

    parts: list[RenderableType] = [
        Text("IDENTIFIED", style="bold dark_orange"),
        Text(landmark.name, style="bold white"),
        Text(landmark.visual_description, style="italic grey62"),
        Text(""),
        highlight_bold(details.description),
    ]

    if details.sources:
        sources = Table(title="Information Sources", title_justify="left", box=None, show_header=False)
        sources.add_column("Title", style="dark_orange")
        sources.add_column("URI", style="grey62", overflow="fold")
        for source in details.sources:
            sources.add_row(source.short_title(), source.uri)
        parts += [Text(""), sources]

    if state.audio is not None:
        icon = "||" if is_playing else ">"
        parts += [
            Text(""),
            Text(f"[p] {icon} {playback_label(is_playing)}", style="bold black on dark_orange"),
        ]

    return Panel(Group(*parts), title=APP_TITLE, border_style="dark_orange")


def render(state: AnalysisState, is_playing: bool = False) -> RenderableType:
    """View for the current status."""
    if state.status is Status.IDLE:
        return render_idle()
    if state.status.is_loading:
        return render_loading(state.status)
    if state.status is Status.ERROR:
        return render_error(state.error)
    return render_complete(state, is_playing)


def state_to_dict(state: AnalysisState) -> dict[str, Any]:
    """Machine-readable summary of a finished analysis."""
    data: dict[str, Any] = {"status": state.status.value}
    if state.landmark is not None:
        data["landmark"] = state.landmark.model_dump(by_alias=True)
    if state.details is not None:
        data["description"] = state.details.description
        data["sources"] = [
            {"title": s.title, "uri": s.uri} for s in state.details.sources
        ]
    if state.audio is not None:
        data["audio"] = {
            "sample_rate": state.audio.sample_rate,
            "channels": state.audio.channels,
            "duration_seconds": round(state.audio.duration, 3),
        }
    if state.error is not None:
        data["error"] = {"message": state.error.message, "kind": state.error.kind}
    return data
