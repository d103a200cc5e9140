"""Example of loading HOCON configuration using dataconf."""

from pathlib import Path

from voucher_pipeline.core.config import AutomationConfig, load_from_file
from voucher_pipeline.pipeline import build_voucher_pipeline


def main() -> None:
    """Load and print the voucher automation configuration."""
    config_path = str(Path(__file__).parent / "voucher.conf")
    config = load_from_file(config_path, AutomationConfig)

    print(f"Automation: {config.name} v{config.version}")
    print(f"ERP: {config.erp.url}")
    print(f"Downloads: {config.workbook.download_dir} ({', '.join(config.workbook.extensions)})")

    columns = config.workbook.columns
    print(f"\nColumns: filter={columns.filter_key} key={columns.grouping_key} amount={columns.amount}")

    print("\nSteps:")
    for step in build_voucher_pipeline(config):
        state = "enabled" if step.enabled else "disabled"
        print(f"  {step.ordinal}. {step.name} ({state}, {step.retry.max_attempts} attempt(s))")

    print(f"\nBatch: delay {config.batch.inter_cycle_delay_seconds}s, default parameter {config.batch.default_parameter}")
    print(f"Adapter factory: {config.adapters.factory or '<not configured>'}")


if __name__ == "__main__":
    main()
