"""
Human readable rebalance summaries and a logging notification sink.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..core.sources import NotificationSink
from ..models.rebalance import ExecutionResult, RebalanceEvaluation, RebalancePlan

logger = logging.getLogger(__name__)


def _short(address: str, length: int = 10) -> str:
    return address if len(address) <= length else f"{address[:length]}..."


def format_rebalance_alert(
    evaluation: RebalanceEvaluation,
    mode_label: str = "Passive (Alert Only)",
    timestamp: Optional[datetime] = None
) -> str:
    """
    Format a rebalance alert for a position.

    Args:
        evaluation: Evaluation of a position needing rebalance
        mode_label: Operating mode shown in the message
        timestamp: Alert time, defaults to now

    Returns:
        Markdown formatted message
    """
    timestamp = timestamp or datetime.now()
    current = evaluation.current_range.price_range
    suggested = evaluation.suggested_range.price_range
    volatility = (
        f"{evaluation.volatility:.4f} ({evaluation.volatility_method})"
        if evaluation.volatility is not None else "n/a (default width)"
    )

    return "\n".join([
        "*LP Rebalance Alert*",
        "",
        f"*Position:* {evaluation.token_pair}",
        f"*ID:* `{evaluation.position_id}`",
        f"*Chain:* {evaluation.chain_id}",
        f"*Pool:* `{_short(evaluation.pool_address)}`",
        f"*Time:* {timestamp.strftime('%Y-%m-%d %H:%M:%S')}",
        f"*Mode:* {mode_label}",
        "",
        f"*Reason:* {evaluation.reason}",
        "",
        "*Current Range:*",
        f"{current.lower:.6f} - {current.upper:.6f} "
        f"(ticks {evaluation.current_range.tick_lower} to {evaluation.current_range.tick_upper})",
        "",
        "*Suggested Range:*",
        f"{suggested.lower:.6f} - {suggested.upper:.6f} "
        f"(ticks {evaluation.suggested_range.tick_lower} to {evaluation.suggested_range.tick_upper})",
        "",
        "*Expected Benefits:*",
        f"- APR improvement: {evaluation.estimated_apr_improvement:+.2f}%",
        f"- Volatility: {volatility}",
        f"- Health score: {evaluation.health_score:.0f}/100",
        f"- Risk level: {evaluation.risk_assessment}",
    ])


def format_rebalance_executed(plan: RebalancePlan, result: ExecutionResult) -> str:
    """Format a summary of a submitted rebalance."""
    evaluation = plan.evaluation
    suggested = evaluation.suggested_range
    lines = [
        "*LP Rebalance Executed*" if result.success else "*LP Rebalance Failed*",
        "",
        f"*Position:* {evaluation.token_pair} `{evaluation.position_id}`",
        f"*Reason:* {evaluation.reason}",
        f"*New Range:* ticks {suggested.tick_lower} to {suggested.tick_upper} "
        f"({suggested.price_range.lower:.6f} - {suggested.price_range.upper:.6f})",
        f"*Value:* ${plan.previous_usd_value:,.2f} -> ${plan.new_usd_value:,.2f} "
        f"({plan.value_drift_pct:+.3f}%)",
    ]
    if result.transaction_hash:
        lines.append(f"*Transaction:* `{result.transaction_hash}`")
    if result.error:
        lines.append(f"*Error:* {result.error}")
    return "\n".join(lines)


def format_error(task_name: str, error: Exception) -> str:
    """Format an error notification for a failed cycle."""
    return "\n".join([
        "*Rebalancer Error*",
        "",
        f"The {task_name} monitor encountered an error:",
        f"`{error}`",
        "",
        f"Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
    ])


class LoggingNotificationSink(NotificationSink):
    """Notification sink that writes messages to the log and keeps them."""

    def __init__(self, level: int = logging.INFO):
        self.level = level
        self.messages: List[str] = []

    async def send(self, message: str) -> None:
        self.messages.append(message)
        logger.log(self.level, message)
