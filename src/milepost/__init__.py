"""Milepost keeps recurring GitLab/GitHub milestones ahead of schedule."""
from __future__ import annotations

__version__ = "0.1.0"
