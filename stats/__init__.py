from .normalize import normalize
from .skill import classify
from .streak import compute_streak, epoch_day

__all__ = [
    "classify",
    "compute_streak",
    "epoch_day",
    "normalize",
]
