"""
Database models package
"""

from .account import Account
from .event import Event
from .submission import Submission

__all__ = ["Account", "Event", "Submission"]
