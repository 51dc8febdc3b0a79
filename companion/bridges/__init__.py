"""
Source bridges - turn external feeds into reconciled deadlines.
"""

from companion.bridges.calendar_exam import CalendarEvent, CalendarExamBridge
from companion.bridges.canvas import CanvasDeadlineBridge
from companion.bridges.github_readme import GitHubDeadlineBridge

__all__ = [
    "CalendarEvent",
    "CalendarExamBridge",
    "CanvasDeadlineBridge",
    "GitHubDeadlineBridge",
]
