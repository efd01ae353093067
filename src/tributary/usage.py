"""Token usage reported by the provider."""

from pydantic import BaseModel, ConfigDict


class Usage(BaseModel):
    """Running token totals from a usage frame.

    Providers report more than the two required counters
    (``completion_tokens``, ``*_tokens_details``); those are kept as
    extra fields so the last snapshot is preserved verbatim.
    """

    model_config = ConfigDict(extra="allow")

    prompt_tokens: int = 0
    total_tokens: int = 0


class UsageTracker:
    """Holds the most recent usage snapshot of one stream.

    Snapshots are running totals, so a later one replaces an earlier one
    outright.
    """

    def __init__(self) -> None:
        self.usage = Usage()

    def observe(self, usage: Usage | None) -> None:
        if usage is not None:
            self.usage = usage
