import os
import sys
from typing import Dict, Sequence

import uvicorn

from weatherpane.main import create_app
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="server")


def parse_plugin_options(argv: Sequence[str]) -> Dict[str, str]:
    """
    Parse host-style ``key=value`` arguments, e.g. ``location=Vienna``.

    Arguments without '=' are ignored with a warning; later keys win.
    """
    options: Dict[str, str] = {}
    for arg in argv:
        key, sep, value = arg.partition("=")
        if not sep or not key.strip():
            logger.warning("Ignoring malformed plugin option", extra={"option": arg})
            continue
        options[key.strip()] = value.strip()
    return options


if __name__ == "__main__":
    uvicorn.run(
        create_app(options=parse_plugin_options(sys.argv[1:])),
        host=os.getenv("WEATHERPANE_HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
