"""Rolling conversation summaries."""

from concierge.compaction.summarizer import (
    SUMMARIZATION_PROMPT,
    SummarizationError,
    Summarizer,
    build_summarization_prompt,
    render_transcript,
)

__all__ = [
    "SUMMARIZATION_PROMPT",
    "SummarizationError",
    "Summarizer",
    "build_summarization_prompt",
    "render_transcript",
]
