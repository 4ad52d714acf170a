import logging
import sys
from typing import Optional

from db_config import get_log_level

_HANDLER_NAME = "factordash-console"


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a single human-readable stdout handler to the root logger.

    Safe to call more than once (Streamlit re-runs the script on every interaction).
    """
    root = logging.getLogger()
    root.setLevel((level or get_log_level()).upper())

    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return

    ch = logging.StreamHandler(sys.stdout)
    ch.set_name(_HANDLER_NAME)
    ch.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"))
    root.addHandler(ch)
