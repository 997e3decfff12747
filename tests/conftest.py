"""
Common fixtures for the scheduler tests.
"""

import pytest

from factories import TZ
from therapyscheduler.config import SchedulerConfig


@pytest.fixture
def config() -> SchedulerConfig:
    return SchedulerConfig(timezone=TZ)
