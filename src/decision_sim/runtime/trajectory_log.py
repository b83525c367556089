"""Row-oriented trajectory log.

One tab-separated row per trial::

    trial_index <TAB> step0 columns <TAB> reward0 <TAB> ... <TAB> rewardN

Rows are buffered in memory and written every ``flush_interval`` trials.
Failures while rendering one value or writing to disk are logged and never
abort the batch.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from types import TracebackType
from typing import IO, Any

import numpy as np

from decision_sim.core.contracts import DecisionModel
from decision_sim.runtime.trial import Trial

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_PATH = "data_output.tsv"
DEFAULT_FLUSH_INTERVAL = 1000


class TrajectoryLogger:
    """Buffered writer of trajectory rows.

    Parameters
    ----------
    path : str | pathlib.Path, optional
        Output TSV path.
    model : DecisionModel
        Model that enumerates the observable columns of recorded states.
    flush_interval : int, optional
        Number of recorded trials between flushes.
    resume : bool, optional
        Append to an existing file instead of truncating it.

    Raises
    ------
    ValueError
        If ``flush_interval`` is not positive.

    Notes
    -----
    The logger owns its buffer, counters and file handle. Use it as a
    context manager so the final flush and close always run.
    """

    def __init__(
        self,
        path: str | Path = DEFAULT_OUTPUT_PATH,
        *,
        model: DecisionModel[Any],
        flush_interval: int = DEFAULT_FLUSH_INTERVAL,
        resume: bool = False,
    ) -> None:
        if int(flush_interval) < 1:
            raise ValueError("flush_interval must be >= 1")
        self.path = Path(path)
        self.flush_interval = int(flush_interval)
        self.resume = bool(resume)
        self._model = model
        self._buffer: list[str] = []
        self._handle: IO[str] | None = None
        self._lock = threading.Lock()
        self._closed = False
        self._opened = False
        self.records_count = 0
        self.flush_count = 0
        self.rows_written = 0

    def __enter__(self) -> TrajectoryLogger:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def pending_rows(self) -> int:
        """Rows buffered but not yet written."""

        return len(self._buffer)

    def open(self) -> None:
        """Create or truncate the output file and open it for appending.

        A fresh run never appends to rows left by a previous run; with
        ``resume=True`` existing rows are kept.
        """

        if self._handle is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        mode = "a" if self.resume or self._opened else "w"
        self._handle = self.path.open(mode, encoding="utf-8", newline="")
        self._opened = True
        self._closed = False
        logger.debug("opened trajectory log %s (mode=%s)", self.path, mode)

    def record(self, trial: Trial) -> str:
        """Render one trial and append it to the buffer.

        Parameters
        ----------
        trial : Trial
            Finalized trial.

        Returns
        -------
        str
            The rendered row without its trailing newline.
        """

        row = self.render_row(trial)
        with self._lock:
            self._buffer.append(row)
            self.records_count += 1
            due = self.records_count % self.flush_interval == 0
        if due:
            self.flush()
        return row

    def render_row(self, trial: Trial) -> str:
        """Render a trial as one tab-separated row."""

        cells = [str(trial.trial_index)]
        for step in trial.steps:
            cells.extend(self._step_cells(trial.trial_index, step.epoch, step.state))
            cells.append(repr(float(step.reward)))
        return "\t".join(cells)

    def flush(self) -> None:
        """Write buffered rows and clear the buffer.

        After a failed write the file is truncated back to where the write
        started, so a partial attempt never leaves duplicated rows, and the
        write is retried once. If the file cannot be rewound or the retry
        also fails, the rows stay buffered for the next flush and the error
        is logged.
        """

        with self._lock:
            self.flush_count += 1
            if not self._buffer:
                return
            if self._handle is None:
                self.open()
            payload = "".join(f"{row}\n" for row in self._buffer)
            for attempt in (1, 2):
                start = self._position()
                try:
                    self._handle.write(payload)
                    self._handle.flush()
                except OSError as exc:
                    rewound = self._rewind(start)
                    if attempt == 1 and rewound:
                        logger.warning("writing %s failed (%s); retrying once", self.path, exc)
                        continue
                    logger.error(
                        "writing %s failed (%s); keeping %d rows buffered",
                        self.path,
                        exc,
                        len(self._buffer),
                    )
                    return
                break
            self.rows_written += len(self._buffer)
            logger.info("trajectory log flushed %d rows (trial %d)", len(self._buffer), self.records_count)
            self._buffer.clear()

    def _position(self) -> int | None:
        try:
            return self._handle.tell()
        except OSError:
            return None

    def _rewind(self, start: int | None) -> bool:
        """Drop anything a failed write left behind after ``start``."""

        if start is None:
            return False
        try:
            self._handle.seek(start)
            self._handle.truncate()
        except OSError as exc:
            logger.error("could not rewind %s after a failed write: %s", self.path, exc)
            return False
        return True

    def close(self) -> None:
        """Flush remaining rows and close the file handle."""

        if self._closed:
            return
        self.flush()
        with self._lock:
            if self._handle is not None:
                try:
                    self._handle.close()
                except OSError as exc:
                    logger.error("closing %s failed: %s", self.path, exc)
                self._handle = None
            self._closed = True
            if self._buffer:
                logger.error("%d trajectory rows could not be written to %s", len(self._buffer), self.path)

    def _step_cells(self, trial_index: int, epoch: int, state: Any) -> list[str]:
        try:
            columns = self._model.enumerate_observable_columns(state)
        except Exception as exc:  # noqa: BLE001 - logging must not abort a batch
            logger.warning(
                "could not enumerate columns for trial %d epoch %d: %s",
                trial_index,
                epoch,
                exc,
            )
            return []

        cells: list[str] = []
        for name, value in columns:
            try:
                cells.append(format_value(value))
            except (TypeError, ValueError) as exc:
                logger.warning(
                    "could not retrieve assignment for %s (trial %d epoch %d): %s",
                    name,
                    trial_index,
                    epoch,
                    exc,
                )
        return cells


def format_value(value: Any) -> str:
    """Render one column value.

    Booleans become ``1``/``0``; other scalars use their natural text form.

    Raises
    ------
    ValueError
        If ``value`` is ``None`` (not assigned at this epoch).
    TypeError
        If ``value`` is not a scalar.
    """

    if isinstance(value, np.generic):
        value = value.item()
    if value is None:
        raise ValueError("no value assigned at this epoch")
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, str)):
        text = str(value)
        if "\t" in text or "\n" in text:
            raise ValueError(f"value {text!r} contains a column or row separator")
        return text
    raise TypeError(f"cannot render value of type {type(value).__name__}")


__all__ = [
    "DEFAULT_FLUSH_INTERVAL",
    "DEFAULT_OUTPUT_PATH",
    "TrajectoryLogger",
    "format_value",
]
