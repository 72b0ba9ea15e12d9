import logging
import os
import sys
import time
from contextlib import contextmanager
from types import SimpleNamespace

logger = logging.getLogger(__name__)


def configure_logging(
    enabled: bool = True,
    log_file: str | None = None,
    level: int = logging.WARNING,
    to_console: bool = True,
    fmt: str = "%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt: str = "%Y-%m-%d %H:%M:%S",
):
    """
    Configure root logging for the profile-view program.

    - enabled: turn logging on/off without changing call sites
    - log_file: path to log file (None => no file handler)
    - to_console: also emit to the terminal (stderr, so command output
      on stdout stays clean)
    - fmt/datefmt: formatting for all handlers

    Returns a handle with .stop() to remove the installed handlers.
    """
    state = SimpleNamespace(logger=None, handlers=[], stopped=False)

    if not enabled:
        state.stop = lambda: None
        return state

    root = logging.getLogger()
    root.setLevel(level)
    state.logger = root

    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    if to_console:
        ch = logging.StreamHandler(stream=sys.stderr)
        ch.setLevel(level)
        ch.setFormatter(formatter)
        root.addHandler(ch)
        state.handlers.append(ch)

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(formatter)
        root.addHandler(fh)
        state.handlers.append(fh)

    logging.captureWarnings(True)

    def stop():
        if state.stopped:
            return
        for h in state.handlers:
            h.flush()
            root.removeHandler(h)
            h.close()
        logging.captureWarnings(False)
        state.stopped = True

    state.stop = stop
    return state


@contextmanager
def time_code(label: str):
    """Context manager: log how long a derivation took, at debug level."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("%s took %.2fms", label, elapsed_ms)
