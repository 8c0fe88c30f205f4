"""Graph data models for diagram emission."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RenderTransition:
    """A flattened, fork-free edge ready for emission."""
    from_id: str  # Source state ID
    to_id: str    # Target state ID
    label: str = ""

    @property
    def key(self) -> tuple[str, str, str]:
        """Deduplication key."""
        return (self.from_id, self.to_id, self.label)
