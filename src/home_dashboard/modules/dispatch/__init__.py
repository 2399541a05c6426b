"""
Dispatch module for home-dashboard.

Applies device mutations through the persistence feed and reports
user-visible feedback.
"""

from .feedback import Feedback, FeedbackChannel, FeedbackType
from .dispatcher import DispatchResult, MutationDispatcher

__all__ = [
    "Feedback",
    "FeedbackChannel",
    "FeedbackType",
    "DispatchResult",
    "MutationDispatcher",
]
