"""
therapyscheduler - proposes therapy sessions, detects booking conflicts and plans daily routes.
"""

__version__ = "0.1.0"
