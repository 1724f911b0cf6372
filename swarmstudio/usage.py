"""Per-participant token accounting. Pure state, no I/O."""

from collections.abc import Iterable

from swarmstudio.models import UsageTotals


class UsageAccumulator:
    """Cumulative input/output token counts keyed by participant identity.

    Additions are not deduplicated: a provider stream that reports usage twice
    is counted twice.
    """

    def __init__(self) -> None:
        self._totals: dict[str, UsageTotals] = {}

    def add(self, identity: str, input_tokens: int, output_tokens: int) -> None:
        if input_tokens < 0 or output_tokens < 0:
            raise ValueError(
                f"Token counts must be non-negative, got ({input_tokens}, {output_tokens})"
            )
        current = self._totals.get(identity, UsageTotals())
        self._totals[identity] = UsageTotals(
            input_tokens=current.input_tokens + input_tokens,
            output_tokens=current.output_tokens + output_tokens,
        )

    def reset(self, identities: Iterable[str]) -> None:
        """Zero the totals for the given identities, leaving others untouched."""
        for identity in identities:
            self._totals[identity] = UsageTotals()

    def clear(self) -> None:
        self._totals.clear()

    def get(self, identity: str) -> UsageTotals:
        return self._totals.get(identity, UsageTotals())

    def read(self) -> dict[str, UsageTotals]:
        """Return a snapshot of the current mapping."""
        return dict(self._totals)
