# stylizer/region_stats.py
from typing import Tuple
import numpy as np

HIST_BINS = 256
# R, G, B luma weights used to fold per-channel spread into one score
LUMA_WEIGHTS = np.array([0.2989, 0.5870, 0.1140], dtype=np.float64)
_LEVELS = np.arange(HIST_BINS, dtype=np.float64)

# ---------------- histograms ----------------
def channel_histograms(region: np.ndarray) -> np.ndarray:
    """Return a (3, 256) array of per-channel intensity counts, rows in R, G, B order."""
    pixels = region.reshape(-1, 3)
    return np.stack([np.bincount(pixels[:, c], minlength=HIST_BINS)[:HIST_BINS] for c in range(3)])

def weighted_std(hist: np.ndarray) -> np.ndarray:
    """
    Standard deviation of the bin index weighted by bin count.
    Works on a single histogram or on the last axis of a stack of them.
    Empty histograms give 0.
    """
    hist = np.asarray(hist, dtype=np.float64)
    total = hist.sum(axis=-1)
    safe_total = np.where(total > 0, total, 1.0)
    mu = (hist * _LEVELS).sum(axis=-1) / safe_total
    var = (hist * (_LEVELS - np.expand_dims(mu, -1))**2).sum(axis=-1) / safe_total
    return np.where(total > 0, np.sqrt(var), 0.0)

# ---------------- region stats ----------------
def detail(region: np.ndarray) -> float:
    sigmas = weighted_std(channel_histograms(region))
    return float(np.dot(LUMA_WEIGHTS, sigmas))

def average_color(region: np.ndarray) -> Tuple[int,int,int]:
    pixels = region.reshape(-1, 3)
    if pixels.shape[0] == 0:
        return (0, 0, 0)
    # truncate like an 8-bit cast, never round up past the data
    mean = pixels.astype(np.float64).mean(axis=0)
    return tuple(int(c) for c in np.clip(np.floor(mean), 0, 255))

def region_stats(region: np.ndarray) -> Tuple[float, Tuple[int,int,int]]:
    return detail(region), average_color(region)
