"""
Periodic rebalancing tasks.
"""

from .base_task import BaseRebalanceTask, EvaluationCycle
from .passive import PassiveModeTask
from .active import ActiveModeTask

__all__ = [
    "BaseRebalanceTask",
    "EvaluationCycle",
    "PassiveModeTask",
    "ActiveModeTask",
]
