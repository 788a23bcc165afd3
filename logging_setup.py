import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Send everything to stderr with a timestamped format. Call once at startup."""
    root = logging.getLogger()
    root.setLevel(level)

    # avoid duplicate handlers when called twice (uvicorn reload)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)

    logging.captureWarnings(True)
