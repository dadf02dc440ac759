"""Squadron Tracker - squadron battle and session monitoring service."""

__version__ = "0.1.0"
