"""Scripted in-memory sessions for running the pipeline without external systems."""

from voucher_pipeline.examples.scripted import (
    SAMPLE_ROWS,
    ScriptedApproval,
    ScriptedBrowser,
    ScriptedSessionFactory,
    ScriptedWorkbook,
)

__all__ = [
    "SAMPLE_ROWS",
    "ScriptedApproval",
    "ScriptedBrowser",
    "ScriptedSessionFactory",
    "ScriptedWorkbook",
]
