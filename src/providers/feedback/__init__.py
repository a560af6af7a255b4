"""Feedback persistence providers.

SQLiteFeedbackStore keeps feedback rows and the chat log in data/feedback.db.
A row is written once unclassified and then updated exactly once by the
workflow's save step, which sets every classification field together.
"""

from src.providers.feedback.sqlite_feedback_store import SQLiteFeedbackStore

__all__ = ["SQLiteFeedbackStore"]
