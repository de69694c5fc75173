from __future__ import annotations

import logging
import sys

# top-level packages; every module logs under logging.getLogger(__name__)
PACKAGE_ROOTS = ("core", "data_prep", "distributions", "risk", "engine", "analytics", "service")


def get_logger(name: str = "service", level: int = logging.INFO) -> logging.Logger:
    """Return a stdout logger; handlers are attached only once per name."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(level)
    h = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
    h.setFormatter(fmt)
    logger.addHandler(h)
    return logger


def configure_package_logging(level: int = logging.INFO) -> None:
    """Attach the stdout handler to each package root so module loggers reach it."""
    for name in PACKAGE_ROOTS:
        get_logger(name, level)
