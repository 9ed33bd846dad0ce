"""
Block classification results.
"""

from dataclasses import dataclass, field
from enum import StrEnum


class ClassificationKind(StrEnum):
    """How an incoming block relates to the stored DAG."""

    EXTENDS_TIP = "extends_tip"
    ALTERS_SELECTED_TIP = "alters_selected_tip"
    STALE_DUPLICATE = "stale_duplicate"
    GAP = "gap"
    # Fork that does not overtake the selected tip
    SIDE_BRANCH = "side_branch"


@dataclass(frozen=True)
class Classification:
    """Classification of one block, with the parents it is missing (GAP only)."""

    kind: ClassificationKind
    missing_parents: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ResumePoint:
    """
    Where ingestion resumes after a restart.

    The cursor is the last block durably committed. An empty store has
    no cursor and resumes from genesis (the node's pruning point).
    """

    cursor_hash: str | None = None
    cursor_height: int | None = None
    selected_tip_hash: str | None = None

    @property
    def is_genesis(self) -> bool:
        return self.cursor_hash is None
