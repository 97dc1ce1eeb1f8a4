"""
Main entry point for the LP rebalancer.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from lp_rebalancer.adapters.memory_source import DryRunExecutionSink, SnapshotDataSource
from lp_rebalancer.config.settings import OperatingMode, RebalancerConfig, load_config
from lp_rebalancer.core.exceptions import RebalancerError
from lp_rebalancer.models.rebalance import EvaluationReport
from lp_rebalancer.strategies.evaluator import RangeMathEvaluationStrategy, RebalanceEvaluator
from lp_rebalancer.strategies.risk_profiles import get_available_risk_profiles
from lp_rebalancer.tasks.active import ActiveModeTask
from lp_rebalancer.tasks.base_task import BaseRebalanceTask
from lp_rebalancer.tasks.notifications import LoggingNotificationSink
from lp_rebalancer.tasks.passive import PassiveModeTask

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure root logging for the CLI."""
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def _load(environment: str, config_path: Optional[Path], risk_profile: Optional[str]) -> RebalancerConfig:
    config = load_config(environment, config_path)
    if risk_profile:
        config.risk_profile = risk_profile
    setup_logging(config.log_level, config.log_file)
    return config


def format_report(report: EvaluationReport) -> str:
    """Plain text summary of an evaluation report."""
    lines = [
        f"Evaluated {len(report.evaluations)} of {report.total_positions} positions, "
        f"{len(report.needing_rebalance)} need rebalancing"
    ]
    for evaluation in report.evaluations:
        marker = "REBALANCE" if evaluation.needs_rebalance else "ok"
        suggested = evaluation.suggested_range
        lines.append(
            f"[{marker}] {evaluation.position_id} {evaluation.token_pair}: {evaluation.reason}"
        )
        lines.append(
            f"    current ticks [{evaluation.current_range.tick_lower}, {evaluation.current_range.tick_upper}]"
            f" suggested [{suggested.tick_lower}, {suggested.tick_upper}]"
            f" deviation {evaluation.price_deviation:.2%}"
            f" APR +{evaluation.estimated_apr_improvement:.2f}%"
        )
    for skipped in report.skipped:
        lines.append(f"[skipped] {skipped.position_id} ({skipped.error_kind}): {skipped.message}")
    return "\n".join(lines)


@click.group()
@click.option(
    "--environment",
    "-e",
    type=click.Choice(["dev", "test", "prod"]),
    default="dev",
    help="Environment to run in",
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.pass_context
def cli(ctx: click.Context, environment: str, config: Optional[Path]) -> None:
    """
    Concentrated liquidity position rebalancer.
    """
    ctx.ensure_object(dict)
    ctx.obj["environment"] = environment
    ctx.obj["config_path"] = config


@cli.command()
@click.option(
    "--snapshot",
    "-s",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="JSON snapshot of positions, pool states and market data",
)
@click.option(
    "--risk-profile",
    "-r",
    type=click.Choice(get_available_risk_profiles()),
    help="Override the configured risk profile",
)
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def evaluate(ctx: click.Context, snapshot: Path, risk_profile: Optional[str], as_json: bool) -> None:
    """
    Evaluate every position in a snapshot once.
    """
    try:
        config = _load(ctx.obj["environment"], ctx.obj["config_path"], risk_profile)
        source = SnapshotDataSource.from_file(snapshot)
    except (RebalancerError, ValueError) as e:
        logger.error(f"Failed to load: {e}")
        sys.exit(1)

    evaluator = RebalanceEvaluator(
        config.get_risk_profile(),
        RangeMathEvaluationStrategy(config.get_volatility_method()),
    )
    pool_states = dict(source.pool_states)
    report = evaluator.evaluate_positions(source.all_positions, pool_states, source.market_data)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo(format_report(report))


def build_task(config: RebalancerConfig, source: SnapshotDataSource) -> BaseRebalanceTask:
    """Build the task for the configured operating mode."""
    notifier = LoggingNotificationSink()
    if config.mode == OperatingMode.ACTIVE:
        return ActiveModeTask(
            config, source, source, source,
            execution_sink=DryRunExecutionSink(),
            notifier=notifier,
        )
    return PassiveModeTask(config, source, source, source, notifier=notifier)


async def run_task(task: BaseRebalanceTask, once: bool) -> None:
    """Run a task once, or until interrupted."""
    if once:
        await task.run_once()
        return

    task.start()
    try:
        await task.wait_closed()
    finally:
        task.stop()


@cli.command()
@click.option(
    "--snapshot",
    "-s",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="JSON snapshot of positions, pool states and market data",
)
@click.option("--once", is_flag=True, help="Run a single cycle and exit")
@click.pass_context
def run(ctx: click.Context, snapshot: Path, once: bool) -> None:
    """
    Run the configured monitoring task against a snapshot.
    """
    try:
        config = _load(ctx.obj["environment"], ctx.obj["config_path"], None)
        source = SnapshotDataSource.from_file(snapshot)
    except (RebalancerError, ValueError) as e:
        logger.error(f"Failed to load: {e}")
        sys.exit(1)

    if not config.wallet_address:
        config.wallet_address = source.wallet_address or "snapshot"

    task = build_task(config, source)
    logger.info(f"Starting {task.get_task_name()} with {config.risk_profile.value} risk profile")

    try:
        asyncio.run(run_task(task, once))
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")

    click.echo(json.dumps(task.to_dict(), indent=2))


if __name__ == "__main__":
    cli()
