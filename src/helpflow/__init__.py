"""
helpflow - adaptive in-application help and tutorial orchestration.
"""

__version__ = "0.1.0"

from .session import HelpSession, create_session

__all__ = ["__version__", "HelpSession", "create_session"]
