"""Command-line interface for running voucher batches."""

from __future__ import annotations

import argparse
import logging
import re
import sys
import uuid
from pathlib import Path
from typing import Any

from voucher_pipeline.core.config.base import LogLevel
from voucher_pipeline.core.config.loader import load_from_file
from voucher_pipeline.core.config.pipeline import AutomationConfig
from voucher_pipeline.core.context import DateRange
from voucher_pipeline.core.errors import AdapterLoadError
from voucher_pipeline.core.secrets import DEFAULT_SECRET_REFERENCE, SecretResolutionError, resolve_credentials
from voucher_pipeline.pipeline.steps import build_voucher_pipeline
from voucher_pipeline.runner.batch import BatchController
from voucher_pipeline.runner.checkpoint import (
    CheckpointHooks,
    LocalCheckpointStore,
    PipelineDefinitionChangedError,
    compute_pipeline_fingerprint,
    load_checkpoint_for_resume,
)
from voucher_pipeline.runner.hooks import CompositeHooks, PipelineHooks
from voucher_pipeline.runner.hooks_builtin import LoggingHooks, MetricsHooks
from voucher_pipeline.runner.result import BatchResult
from voucher_pipeline.runtime.loader import instantiate_factory, validate_factory_class
from voucher_pipeline.runtime.logging_setup import configure_logging

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_PARTIAL = 2

_PERIOD = re.compile(r"^(\d{4})-(\d{1,2})$")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voucher-run",
        description="Run the purchase-invoice voucher automation from a HOCON configuration file.",
    )
    parser.add_argument(
        "config",
        help="Path to the HOCON automation configuration file.",
    )
    parser.add_argument(
        "--values",
        nargs="+",
        metavar="V",
        help="Parameters to process, one cycle each (default: batch.default_parameter).",
    )
    parser.add_argument(
        "--period",
        metavar="YYYY-MM",
        help="Accounting month to process (default: period from config, else current month).",
    )
    parser.add_argument(
        "--identity",
        help="Login identity (default: VOUCHER_IDENTITY environment variable).",
    )
    parser.add_argument(
        "--secret",
        default=DEFAULT_SECRET_REFERENCE,
        metavar="REF",
        help=f"Secret reference, env:NAME or file:/path (default: {DEFAULT_SECRET_REFERENCE}).",
    )
    parser.add_argument(
        "--run-id",
        help="Checkpoint run identifier (default: a new random id).",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        default=False,
        help="Skip parameters completed by the checkpointed run given with --run-id.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Validate the pipeline and the adapter factory without running.",
    )
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        default=None,
        help="Override the configured logging level.",
    )
    return parser


def parse_value(text: str) -> Any:
    """Return *text* as an int when it is one, else unchanged."""
    try:
        return int(text)
    except ValueError:
        return text


def parse_period(text: str) -> DateRange:
    """Parse ``YYYY-MM`` into the month's date range.

    Raises:
        ValueError: If *text* is not a valid month.
    """
    match = _PERIOD.match(text.strip())
    if match is None:
        raise ValueError(f"Invalid period {text!r}; expected YYYY-MM")
    month = int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in period {text!r}")
    return DateRange.for_month(int(match.group(1)), month)


def exit_code_for(result: BatchResult) -> int:
    """Map a batch result onto the process exit code."""
    if result.success:
        return EXIT_SUCCESS
    if result.aborted_early or result.success_count == 0:
        return EXIT_FAILURE
    return EXIT_PARTIAL


def _dry_run(config: AutomationConfig) -> int:
    definition = build_voucher_pipeline(config)
    print(f"Pipeline '{definition.name}': {', '.join(step.name for step in definition.steps)}")
    if not config.adapters.factory:
        print("WARNING: adapters.factory is not configured", file=sys.stderr)
        return EXIT_FAILURE
    warnings = validate_factory_class(config.adapters.factory)
    if warnings:
        for w in warnings:
            print(f"WARNING: {w}", file=sys.stderr)
        return EXIT_FAILURE
    print("Dry run passed: pipeline and adapter factory are valid.")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for running voucher batches.

    Args:
        argv: Command-line arguments. Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code: 0 for success, 1 for failure, 2 for partial success.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.resume and not args.run_id:
        parser.error("--resume requires --run-id")

    try:
        config = load_from_file(args.config, AutomationConfig)
    except Exception as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Failed to load configuration: %s", exc)
        return EXIT_FAILURE

    configure_logging(config.logging, args.log_level)

    try:
        if args.dry_run:
            return _dry_run(config)

        date_range = parse_period(args.period) if args.period else None
        definition = build_voucher_pipeline(config)
        credentials = resolve_credentials(args.identity, args.secret)
        factory = instantiate_factory(config.adapters)
    except (ValueError, SecretResolutionError, AdapterLoadError) as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE

    metrics = MetricsHooks()
    hook_list: list[PipelineHooks] = [LoggingHooks(), metrics]
    completed: list[Any] = []
    if config.checkpoint_dir:
        store = LocalCheckpointStore(Path(config.checkpoint_dir).expanduser())
        run_id = args.run_id or uuid.uuid4().hex[:12]
        if args.resume:
            try:
                completed = load_checkpoint_for_resume(store, run_id, definition)
            except (ValueError, PipelineDefinitionChangedError) as exc:
                logger.error("Cannot resume: %s", exc)
                return EXIT_FAILURE
        hook_list.append(CheckpointHooks(store, run_id, compute_pipeline_fingerprint(definition)))
        logger.info("Checkpointing run %s to %s", run_id, config.checkpoint_dir)
    elif args.resume:
        logger.error("Cannot resume: checkpoint_dir is not configured")
        return EXIT_FAILURE

    values = [parse_value(v) for v in args.values] if args.values else [config.batch.default_parameter]
    controller = BatchController(
        config,
        factory,
        definition=definition,
        hooks=CompositeHooks(*hook_list),
        date_range=date_range,
    )
    result = controller.run_batch(values, credentials, completed_parameters=completed)

    print(result.message)
    for cycle in result.cycle_results:
        status = "SUCCESS" if cycle.success else "FAILED"
        print(f"  cycle {cycle.cycle} ({cycle.parameter}): {status} - {cycle.message}")
    logger.debug("Metrics: %s", metrics.summary())
    return exit_code_for(result)


if __name__ == "__main__":
    sys.exit(main())
