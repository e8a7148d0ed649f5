"""
Process-wide logging setup.

Modules log through `logging.getLogger(__name__)`; this only attaches the
stdout handler once so gunicorn / Railway pick the lines up.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(getattr(h, "_stifle_handler", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._stifle_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
