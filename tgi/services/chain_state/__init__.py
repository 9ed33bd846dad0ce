"""
Chain-State Tracker.

Selected tip, sync cursor and block classification.
"""

from .classification import Classification, ClassificationKind, ResumePoint
from .tracker import ChainStateTracker

__all__ = [
    "ChainStateTracker",
    "Classification",
    "ClassificationKind",
    "ResumePoint",
]
