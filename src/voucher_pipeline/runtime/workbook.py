"""openpyxl-backed :class:`~voucher_pipeline.core.adapters.Workbook`."""

from __future__ import annotations

import logging
import subprocess
import zipfile
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import openpyxl
from openpyxl.utils import column_index_from_string, get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from voucher_pipeline.core.adapters import Row, RowPredicate, TransformResult
from voucher_pipeline.core.config.pipeline import WorkbookConfig
from voucher_pipeline.core.errors import DataIntegrityError
from voucher_pipeline.runtime.downloads import find_latest_file

logger = logging.getLogger(__name__)

PATH_PLACEHOLDER = "{path}"
HEADER_ROWS = 1


class OpenpyxlWorkbook:
    """Reads the first worksheet of an exported workbook with openpyxl.

    The transform macro is delegated to ``transform_command``, an argv
    list in which ``{path}`` is replaced by the workbook path.  Without a
    command the transform is a no-op.

    Args:
        config: Workbook settings.
        clock: Injectable wall clock for download recency checks.
        run_command: Injectable replacement for ``subprocess.run``.
    """

    def __init__(
        self,
        config: WorkbookConfig,
        clock: Callable[[], float] | None = None,
        run_command: Callable[..., subprocess.CompletedProcess[str]] | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._run_command = run_command or subprocess.run

    def find_latest_downloaded_file(self, directory: Path, within_minutes: float) -> Path | None:
        return find_latest_file(directory, self._config.extensions, within_minutes, clock=self._clock)

    def read_column(self, path: Path, row_predicate: RowPredicate, column: str) -> list[Any]:
        column = column.upper()
        return [row.get(column) for row in self._rows(path) if row_predicate(row)]

    def read_cell(self, path: Path, row: int, column: str) -> Any | None:
        if row < 1:
            raise ValueError(f"Row numbers start at 1, got {row}")
        book = self._open(path)
        try:
            value = book.worksheets[0].cell(row=row, column=column_index_from_string(column.upper())).value
        finally:
            book.close()
        return None if value == "" else value

    def run_transform(self, path: Path) -> TransformResult:
        command = self._config.transform_command
        if not command:
            logger.info("No transform command configured; leaving %s unchanged", path.name)
            return TransformResult(success=True, message="no transform configured")

        argv = [part.replace(PATH_PLACEHOLDER, str(path)) for part in command]
        logger.info("Running workbook transform: %s", argv[0])
        try:
            completed = self._run_command(
                argv,
                capture_output=True,
                text=True,
                timeout=self._config.transform_timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            return TransformResult(
                success=False,
                message=f"Transform timed out after {self._config.transform_timeout_seconds:.0f}s",
            )
        except OSError as exc:
            return TransformResult(success=False, message=f"Transform could not start: {exc}")

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or "").strip().splitlines()
            return TransformResult(
                success=False,
                message=f"Transform exited with {completed.returncode}: {detail[-1] if detail else 'no output'}",
            )
        output = (completed.stdout or "").strip().splitlines()
        return TransformResult(success=True, message=output[-1] if output else "transform completed")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _open(self, path: Path) -> Any:
        try:
            return openpyxl.load_workbook(path, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError) as exc:
            raise DataIntegrityError(f"Cannot read workbook {path.name}: {exc}") from exc

    def _rows(self, path: Path) -> Iterator[Row]:
        book = self._open(path)
        try:
            sheet = book.worksheets[0]
            for values in sheet.iter_rows(min_row=HEADER_ROWS + 1, values_only=True):
                yield {get_column_letter(index + 1): value for index, value in enumerate(values)}
        finally:
            book.close()
