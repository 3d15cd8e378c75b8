from __future__ import annotations
from typing import Optional, Protocol
import numpy as np
import logging

def get_logger(name: str = "shellvox") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger

def ensure_unit_vectors(v: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    norms = np.linalg.norm(v, axis=-1, keepdims=True)
    norms = np.clip(norms, eps, None)
    return v / norms


class ProgressReporter(Protocol):
    """Write-only progress observer; never consulted for control flow."""

    def start(self, total: int) -> None: ...

    def advance(self, steps: int = 1) -> None: ...


class NullProgress:
    def start(self, total: int) -> None:
        pass

    def advance(self, steps: int = 1) -> None:
        pass


def progress_or_null(progress: Optional[ProgressReporter]) -> ProgressReporter:
    return progress if progress is not None else NullProgress()
