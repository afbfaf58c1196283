"""Content generation for task runs, backed by the Claude API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import anthropic

from cadence.config import settings
from cadence.scheduler.models import (
    FetchParameters,
    LearningParameters,
    ReminderParameters,
    SummaryParameters,
)

if TYPE_CHECKING:
    from cadence.scheduler.models import TaskParameters

logger = logging.getLogger(__name__)


class ContentGenerationError(RuntimeError):
    """Raised when content for a task could not be produced."""


class ContentGenerator(Protocol):
    """Anything that turns a task kind and its parameters into text."""

    async def generate(self, kind: str, parameters: TaskParameters | None) -> str: ...


# -- Prompts -------------------------------------------------------------------


def _summary_prompt(params: SummaryParameters) -> tuple[str, str]:
    topic = params.target or "a topic of general interest"
    system = (
        f"You are a helpful assistant that provides interesting and accurate facts about "
        f"{topic}. Focus on lesser-known, fascinating, or educational facts."
    )
    layout = (
        "Format as a cohesive paragraph."
        if params.format == "paragraph"
        else "Format each fact as a bullet point starting with •."
    )
    source = f" Draw on {params.source}." if params.source else ""
    return system, f"Please provide {params.count} interesting facts about {topic}.{source} {layout}"


def _learning_prompt(params: LearningParameters) -> tuple[str, str]:
    topic = params.topic or "something new"
    system = (
        f"You are a friendly and engaging teacher explaining {topic} to a "
        f"{params.difficulty} student. Make the content interesting, easy to "
        "understand, and memorable. Structure it as a short lesson with: a brief "
        "introduction, key points, a real-world example or analogy, a fun fact, "
        "and a thought-provoking question to encourage further learning."
    )
    length = f" Keep it {params.summary_length}." if params.summary_length else ""
    return system, f"Please teach me about {topic} at a {params.difficulty} level.{length}"


def _fetch_prompt(params: FetchParameters) -> tuple[str, str]:
    system = "You are a concise research assistant. Return only the requested items."
    count = params.count or 3
    layout = params.format or "summary"
    return system, f"Collect {count} recent, noteworthy items about {params.target} as a {layout}."


def _reminder_prompt(params: ReminderParameters) -> tuple[str, str]:
    system = "You write short, friendly reminder messages of one or two sentences."
    return system, f"Write a reminder about: {params.target}"


def build_prompt(parameters: TaskParameters) -> tuple[str, str]:
    """Return the ``(system, user)`` prompt pair for *parameters*."""
    if isinstance(parameters, SummaryParameters):
        return _summary_prompt(parameters)
    if isinstance(parameters, LearningParameters):
        return _learning_prompt(parameters)
    if isinstance(parameters, FetchParameters):
        return _fetch_prompt(parameters)
    if isinstance(parameters, ReminderParameters):
        return _reminder_prompt(parameters)
    msg = f"Unsupported parameters: {type(parameters).__name__}"
    raise ContentGenerationError(msg)


def append_sources(content: str, parameters: TaskParameters) -> str:
    """Add the learning resources list, if any, below generated content."""
    if not isinstance(parameters, LearningParameters) or not parameters.sources:
        return content
    lines = [content, "", "Want to learn more? Check out these resources:"]
    lines.extend(f"- {source.name}: {source.url}" for source in parameters.sources)
    return "\n".join(lines)


# -- Claude-backed generator ---------------------------------------------------


class ClaudeContentGenerator:
    """Generates task content with a single-shot Claude call per run.

    Args:
        client: Anthropic client; created lazily from settings when omitted.
        model: Model name (default from settings).
        max_tokens: Response budget per call (default from settings).
    """

    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._client = client
        self._model = model or settings.content_model
        self._max_tokens = max_tokens or settings.content_max_tokens

    def _get_client(self) -> anthropic.AsyncAnthropic:
        """Lazily initialize the Anthropic client."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        return self._client

    async def generate(self, kind: str, parameters: TaskParameters | None) -> str:
        if parameters is None:
            msg = f"No parameters for task kind: {kind}"
            raise ContentGenerationError(msg)
        system, prompt = build_prompt(parameters)
        logger.info("Generating %s content (prompt: %d chars)", kind, len(prompt))
        try:
            response = await self._get_client().messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            msg = f"Content generation failed for {kind}: {exc}"
            raise ContentGenerationError(msg) from exc

        text = "".join(block.text for block in response.content if block.type == "text")
        if not text.strip():
            msg = f"Empty content generated for {kind}"
            raise ContentGenerationError(msg)
        logger.info("Generated %s content (%d chars)", kind, len(text))
        return append_sources(text, parameters)
