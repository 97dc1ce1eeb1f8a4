"""
Passive mode task: monitors positions and sends rebalance alerts.
"""

import logging

from ..models.rebalance import RebalanceEvaluation
from .base_task import BaseRebalanceTask, EvaluationCycle
from .notifications import format_rebalance_alert

logger = logging.getLogger(__name__)


class PassiveModeTask(BaseRebalanceTask):
    """Alert-only monitor. Never submits transactions."""

    def get_task_name(self) -> str:
        return "PassiveModeTask"

    async def run(self, cycle: EvaluationCycle) -> None:
        report = cycle.report
        if not report.evaluations:
            logger.info("No positions to evaluate")
            return

        needing_rebalance = report.needing_rebalance
        if not needing_rebalance:
            logger.info(f"All {len(report.evaluations)} positions are healthy, no rebalance needed")
            return

        logger.info(f"{len(needing_rebalance)} positions need rebalancing")
        for evaluation in needing_rebalance:
            await self.send_rebalance_alert(evaluation)

    async def send_rebalance_alert(self, evaluation: RebalanceEvaluation) -> None:
        """Notify about one position, falling back to the log."""
        message = format_rebalance_alert(evaluation)

        if self.notifier is None:
            logger.warning(f"No notification sink configured, logging alert instead:\n{message}")
            return

        try:
            await self.notifier.send(message)
            logger.info(f"Rebalance alert sent for position {evaluation.position_id}")
        except Exception as e:
            logger.error(f"Failed to send rebalance alert: {e}")
            logger.warning(f"Rebalance alert (notification failed):\n{message}")
