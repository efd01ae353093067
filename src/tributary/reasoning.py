"""Buffering and recombination of reasoning and answer text."""

from __future__ import annotations

from tributary.config import StreamConfig
from tributary.parser import Delta


def wrap_reasoning(reasoning: str, tag: str) -> str:
    return f"<{tag}>\n{reasoning}\n</{tag}>\n"


class ReasoningMerger:
    """Decides, frame by frame, which answer text can be emitted now.

    Reasoning text is always held back.  Answer text streams straight
    through until reasoning has been seen; from then on it is buffered
    so that :meth:`flush` can deliver the reasoning block ahead of it,
    joined into one text when merging is enabled and as two texts
    otherwise.
    """

    def __init__(self, config: StreamConfig | None = None):
        self.config = config or StreamConfig()
        self.has_reasoning = False
        self._reasoning = ""
        self._content = ""

    def feed(self, delta: Delta) -> list[str]:
        if delta.reasoning_content is not None:
            self.has_reasoning = True
            self._reasoning += delta.reasoning_content

        if delta.content is None:
            return []
        if self.has_reasoning:
            # Held in both modes: the reasoning block must precede the answer.
            self._content += delta.content
            return []
        return [delta.content]

    def flush(self) -> list[str]:
        """Return the deferred text, once, at end of stream."""
        tag = self.config.include_reason_in_content_tag
        reasoning, content = self._reasoning, self._content
        self._reasoning = self._content = ""

        if not self.has_reasoning:
            return [content] if content.strip() else []

        block = wrap_reasoning(reasoning, tag) if reasoning.strip() else ""
        if self.config.include_reason_in_content:
            combined = block + content
            return [combined] if combined.strip() else []
        return [text for text in (block, content) if text.strip()]
