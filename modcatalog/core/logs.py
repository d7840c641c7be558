# ==============================================================================
# LOGGING SETUP
# ==============================================================================
# Library modules log through logging.getLogger(__name__) and never
# configure handlers themselves. Front-ends call configure_logging() once.
#
# Console format mirrors the tool's message style:
#   [INFO] Catalogued cool-mod-1.0.zip as modfile 3 (mod 1)
# ==============================================================================

import logging
from typing import Optional

LOG_FORMAT = "[%(levelname)s] %(message)s"
DEBUG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

_configured = False


def configure_logging(debug: bool = False, log_file: Optional[str] = None):
    """
    Configure process-wide logging for the modcatalog package.

    Args:
        debug: Log DEBUG messages and include logger names
        log_file: Optional file that receives the same messages
    """
    global _configured

    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger('modcatalog')
    root.setLevel(level)

    if _configured:
        return

    formatter = logging.Formatter(DEBUG_FORMAT if debug else LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
        ))
        root.addHandler(file_handler)

    _configured = True
