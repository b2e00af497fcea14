"""Runtime configuration read from the environment.

``MINISTRIDE_DEBUG`` turns on per-access bounds checks in the buffer provider
and ``MINISTRIDE_DTYPE`` picks the default element type for the tensor
constructors.
"""

from __future__ import annotations

import contextlib
import logging
import os
from dataclasses import dataclass
from typing import Iterator, Mapping

import numpy as np

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Config:
    debug: bool = False
    default_dtype: str = "float64"


def load_config(environ: Mapping[str, str] = os.environ) -> Config:
    """Build a `Config` from environment variables.

    Args:
    ----
        environ: mapping to read from, defaults to the process environment.

    Returns:
    -------
        Config with unset variables left at their defaults.

    """
    cfg = Config()
    debug = environ.get("MINISTRIDE_DEBUG")
    if debug is not None:
        cfg.debug = debug.strip().lower() in _TRUTHY
    dtype = environ.get("MINISTRIDE_DTYPE")
    if dtype:
        # Raises TypeError for names numpy does not know.
        cfg.default_dtype = np.dtype(dtype.strip()).name
    logger.debug("loaded config %s", cfg)
    return cfg


config = load_config()


@contextlib.contextmanager
def debug_mode(enabled: bool = True) -> Iterator[Config]:
    """Temporarily switch bounds checking on (or off)."""
    previous = config.debug
    config.debug = enabled
    try:
        yield config
    finally:
        config.debug = previous
