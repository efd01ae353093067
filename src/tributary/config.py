from typing import Any

from pydantic import BaseModel, field_validator

REASONING_PARAM_KEYS = (
    "include_reason_in_content",
    "include_reason_in_content_tag",
)


class StreamConfig(BaseModel):
    """Merge policy for reasoning content.

    Reasoning models (e.g. ``deepseek-reasoner``) stream their thinking
    on a separate ``reasoning_content`` channel.  With
    ``include_reason_in_content`` set, the reasoning is wrapped in
    ``<tag>...</tag>`` and delivered together with the answer as one
    text event at the end of the stream; otherwise the wrapped reasoning
    and the answer are delivered as two separate events.

    Args:
        include_reason_in_content: Combine reasoning and answer into one
            text event.
        include_reason_in_content_tag: Tag name used to wrap reasoning.
    """

    include_reason_in_content: bool = True
    include_reason_in_content_tag: str = "think"

    @field_validator("include_reason_in_content_tag")
    @classmethod
    def _valid_tag(cls, tag: str) -> str:
        if not tag or any(c.isspace() or c in "<>" for c in tag):
            raise ValueError(f"invalid reasoning tag: {tag!r}")
        return tag

    @classmethod
    def from_params(
        cls, params: dict[str, Any] | None, default: "StreamConfig | None" = None,
    ) -> tuple["StreamConfig", dict[str, Any]]:
        """Split the merge policy out of a request's additional params.

        Keys that are absent fall back to *default* (or the field
        defaults).  The returned dict holds everything else and is safe
        to send to the provider.
        """
        params = dict(params or {})
        overrides = {
            key: params.pop(key) for key in REASONING_PARAM_KEYS if key in params
        }
        base = default or cls()
        if not overrides:
            return base, params
        return cls.model_validate({**base.model_dump(), **overrides}), params

    def to_params(self) -> dict[str, Any]:
        return self.model_dump()

    def merged_into(self, params: dict[str, Any] | None) -> dict[str, Any]:
        """Overlay *params* on this policy's params; *params* wins."""
        return {**self.to_params(), **(params or {})}
