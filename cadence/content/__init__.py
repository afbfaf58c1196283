"""Content generation for scheduled task runs."""

from cadence.content.generator import (
    ClaudeContentGenerator,
    ContentGenerationError,
    ContentGenerator,
    build_prompt,
)

__all__ = [
    "ClaudeContentGenerator",
    "ContentGenerationError",
    "ContentGenerator",
    "build_prompt",
]
