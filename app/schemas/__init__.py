"""
Pydantic schemas package
"""

from .common import *
from .submission import *
from .event import *
from .account import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventSettings",
    "EventResponse",
    "EventSettingsUpdate",
    "PublicEventView",
    "DashboardStats",
    "StorageMeta",
    "SubmissionResponse",
    "MediaPayload",
    "SenderGroup",
    "BoardView",
    "SignedMedia",
    "SignupRequest",
    "AccountResponse",
]
