"""Run logging for the analyzer.

One analysis run is logged as:
  start line (mode, document count, model)
  one block per phase (extract, classify) closed by a metrics line
  per-document lines in per-document mode, truncation warnings
  end line with the field counts, cost and elapsed time

Console output is concise. With a log directory, each run also gets its own
timestamped file at DEBUG level; the file handler is detached when the run
ends so consecutive runs never write into each other's files.
"""

import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

LOGGER_NAME = "vsme_assistant.run"


class PipelineLogger:
    """Phase-structured logger shared by the analyzer's runs."""

    def __init__(self, verbose: bool = False, log_dir: str | Path | None = None):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        self.log_dir = Path(log_dir) if log_dir else None
        self.log_file: Path | None = None

        self._console = logging.StreamHandler(sys.stdout)
        self._console.setFormatter(logging.Formatter("%(message)s"))
        self._file_handler: logging.FileHandler | None = None
        self._run_start = 0.0
        self._phase_start = 0.0
        self.logger.addHandler(self._console)
        self.verbose = verbose

    @property
    def verbose(self) -> bool:
        return self._console.level == logging.DEBUG

    @verbose.setter
    def verbose(self, value: bool) -> None:
        self._console.setLevel(logging.DEBUG if value else logging.INFO)

    # Run lifecycle

    def start_run(self, mode: str, document_count: int, model: str = ""):
        """Open a run, and its log file when a log directory is set."""
        self._run_start = time.time()
        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            self.log_file = self.log_dir / f"analysis_{stamp}.log"
            self._file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
            self._file_handler.setLevel(logging.DEBUG)
            self._file_handler.setFormatter(
                logging.Formatter("%(asctime)s [%(levelname).4s] %(message)s")
            )
            self.logger.addHandler(self._file_handler)

        model_part = f" with {model}" if model else ""
        self.logger.info(f"Analyzing {document_count} document(s){model_part} [{mode}]")

    def end_run(self, success: bool = True, stats: dict | None = None):
        """Close the run: summary block, elapsed time, file handler detached."""
        if stats:
            self.logger.info(_format_block("SUMMARY", stats))
        status = "complete" if success else "failed"
        self.logger.info(f"Analysis {status} in {_format_duration(time.time() - self._run_start)}")

        if self._file_handler is not None:
            self.logger.info(f"Log: {self.log_file}")
            self.logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def start_phase(self, phase: str, total: int = 0):
        self._phase_start = time.time()
        self.logger.info(phase.upper() + (f" ({total} calls)" if total else ""))

    def phase_result(self, result: str, **metrics):
        """Close the current phase with its counts."""
        elapsed = time.time() - self._phase_start if self._phase_start else 0.0
        counts = ", ".join(f"{k}={v}" for k, v in metrics.items())
        self.logger.info(f"  {result}: {counts} [{elapsed:.1f}s]" if counts else f"  {result} [{elapsed:.1f}s]")
        self._phase_start = 0.0

    # Events inside a phase

    def document_done(self, filename: str, found: int, issues: int = 0):
        suffix = f", {issues} issue(s)" if issues else ""
        self.logger.info(f"  {filename}: {found} field(s) found{suffix}")

    def truncated(self, filenames: Iterable[str]):
        names = list(filenames)
        if names:
            self.warning("Document content truncated to fit the model context", documents=names)

    def debug(self, message: str, **data):
        self.logger.debug(_with_data(f"  {message}", data))

    def info(self, message: str, **data):
        self.logger.info(_with_data(f"  {message}", data))

    def warning(self, message: str, **data):
        self.logger.warning(_with_data(f"  WARN: {message}", data))

    def error(self, message: str, exc: BaseException | None = None, **data):
        if exc is not None:
            data = {**data, "error": f"{type(exc).__name__}: {exc}"}
        self.logger.error(_with_data(f"  ERROR: {message}", data))

    def close(self):
        """Detach every handler this logger added."""
        for handler in (self._console, self._file_handler):
            if handler is not None:
                self.logger.removeHandler(handler)
                handler.close()
        self._file_handler = None


def _with_data(message: str, data: dict[str, Any]) -> str:
    if not data:
        return message
    parts = []
    for key, value in data.items():
        if isinstance(value, (list, tuple)) and len(value) > 5:
            value = f"[{len(value)} items]"
        elif isinstance(value, str) and len(value) > 80:
            value = value[:77] + "..."
        parts.append(f"{key}={value}")
    return f"{message} | {', '.join(parts)}"


def _format_block(title: str, stats: dict, indent: int = 2) -> str:
    lines = [title]
    for key, value in stats.items():
        if isinstance(value, dict):
            lines.append(" " * indent + f"{key}:")
            lines.extend(" " * (indent + 2) + f"{k}: {v}" for k, v in value.items())
        else:
            lines.append(" " * indent + f"{key}: {value}")
    return "\n".join(lines)


def _format_duration(seconds: float) -> str:
    minutes, seconds = divmod(seconds, 60)
    if minutes >= 1:
        return f"{int(minutes)}m {seconds:.0f}s"
    return f"{seconds:.1f}s"


_logger: PipelineLogger | None = None


def get_logger(verbose: bool = False, log_dir: str | Path | None = None) -> PipelineLogger:
    """Get or create the shared run logger.

    A later call can switch on verbose output or set a log directory, never
    switch them off.
    """
    global _logger
    if _logger is None:
        _logger = PipelineLogger(verbose=verbose, log_dir=log_dir)
        return _logger
    if verbose:
        _logger.verbose = True
    if log_dir and _logger.log_dir is None:
        _logger.log_dir = Path(log_dir)
    return _logger


def reset_logger():
    """Drop the shared logger and its handlers (for testing)."""
    global _logger
    if _logger is not None:
        _logger.close()
    _logger = None
