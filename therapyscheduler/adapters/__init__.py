"""
Adapters layer - Loading entity records from outside the domain.
"""

from .roster_file import Roster, load_roster, roster_from_mapping

__all__ = ["Roster", "load_roster", "roster_from_mapping"]
