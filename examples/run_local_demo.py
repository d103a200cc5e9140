"""Local demo: run a voucher batch against scripted sessions.

Demonstrates a complete batch with lifecycle hooks, checkpointing and
result inspection; no browser, spreadsheet or groupware required.

Usage:
    python examples/run_local_demo.py
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from voucher_pipeline.core.config import AutomationConfig, load_from_file
from voucher_pipeline.core.context import Credentials, DateRange
from voucher_pipeline.examples.scripted import ScriptedSessionFactory
from voucher_pipeline.pipeline import build_voucher_pipeline
from voucher_pipeline.runner import (
    BatchController,
    CheckpointHooks,
    CompositeHooks,
    LoggingHooks,
    MetricsHooks,
    compute_pipeline_fingerprint,
)
from voucher_pipeline.runner.checkpoint import LocalCheckpointStore
from voucher_pipeline.runtime.logging_setup import configure_logging

CHECKPOINT_DIR = Path("/tmp/voucher-demo/checkpoints")


def main() -> None:
    """Load config, attach hooks, run two cycles, and show the outcome."""
    # Clean previous run
    shutil.rmtree("/tmp/voucher-demo", ignore_errors=True)

    # 1. Load HOCON configuration
    config_path = str(Path(__file__).parent / "voucher.conf")
    config = load_from_file(config_path, AutomationConfig)
    configure_logging(config.logging)
    definition = build_voucher_pipeline(config)
    print(f"Automation: {config.name} v{config.version}")
    print(f"Steps     : {', '.join(step.name for step in definition)}")

    # 2. Checkpoint store for resume capability
    store = LocalCheckpointStore(CHECKPOINT_DIR)
    metrics = MetricsHooks()
    hooks = CompositeHooks(
        LoggingHooks(),
        metrics,
        CheckpointHooks(store, run_id="demo-001", pipeline_fingerprint=compute_pipeline_fingerprint(definition)),
    )

    # 3. Run parameter 3 and 4; parameter 99 has no rows and fails
    factory = ScriptedSessionFactory()
    controller = BatchController(
        config,
        factory,
        definition=definition,
        hooks=hooks,
        date_range=DateRange.for_month(2025, 9),
    )
    result = controller.run_batch([3, 4, 99], Credentials(identity="clerk@example.com", secret="demo"))

    # 4. Print results
    print(f"\n{result.message}")
    for cycle in result.cycle_results:
        status = "SUCCESS" if cycle.success else "FAILED"
        print(f"  cycle {cycle.cycle} ({cycle.parameter}): {status} in {cycle.duration_ms} ms")
        for outcome in cycle.step_outcomes:
            print(f"    {outcome.index + 1}. {outcome.name}: {outcome.status.value} ({outcome.attempts} attempt(s))")

    for approval in factory.approvals:
        title, metadata = approval.submissions[0]
        print(f"\nApproval '{title}' keys={metadata['grouping_keys']} amount={metadata['amount']}")

    logging.getLogger(__name__).info("Metrics: %s", metrics.summary())


if __name__ == "__main__":
    main()
