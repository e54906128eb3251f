# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Centralised logging configuration.

All log settings (levels, rotation, format …) live in  etc/logging.conf.
This module resolves the log-file path, patches it into the config text, and
applies it via the standard-library fileConfig loader.  Without a config file
(e.g. an installed wheel) it falls back to a plain console handler.

Import the ready-made logger anywhere:
    from core.logger import logger
"""

import configparser as _cp
import logging
import logging.config
from pathlib import Path

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
# project root: backend/core/logger.py  →  ../../  →  bookshelf/
_PROJECT_ROOT  = Path(__file__).resolve().parent.parent.parent
_LOG_DIR       = _PROJECT_ROOT / "log"
_LOG_FILE      = _LOG_DIR / "app.log"
_LOGGING_CONF  = _PROJECT_ROOT / "etc" / "logging.conf"


def _configure() -> None:
    if not _LOGGING_CONF.is_file():
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        return

    # Ensure the log/ directory exists before the handler tries to open the file
    _LOG_DIR.mkdir(exist_ok=True)

    # logging.conf uses %(log_file)s as a placeholder.  We read the raw text,
    # replace it with the real absolute path, then feed the result to
    # fileConfig via a ConfigParser-compatible object.
    raw = _LOGGING_CONF.read_text(encoding="utf-8")
    raw = raw.replace("%(log_file)s", str(_LOG_FILE))

    # RawConfigParser is required: the logging format strings contain
    # %(asctime)s etc. which ConfigParser would try to interpolate.
    parser = _cp.RawConfigParser()
    parser.read_string(raw)

    logging.config.fileConfig(parser, disable_existing_loggers=False)


_configure()

# ---------------------------------------------------------------------------
# Module-level handle
# ---------------------------------------------------------------------------
logger = logging.getLogger("bookshelf")
