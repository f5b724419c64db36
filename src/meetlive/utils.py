import math
from datetime import datetime, timezone

import numpy as np

TARGET_SAMPLE_RATE = 16000


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resample_block(block, source_rate: float, target_rate: int = TARGET_SAMPLE_RATE) -> np.ndarray:
    """Linearly resample one mono block to ``target_rate``.

    The first and last output samples copy the first and last input samples;
    output sample ``i`` sits at source position ``i * (N - 1) / (M - 1)``.
    """
    data = np.asarray(block, dtype=np.float32).reshape(-1)
    n = data.shape[0]
    if n == 0 or source_rate <= 0:
        return np.zeros(0, dtype=np.float32)

    m = round_half_up(n * target_rate / source_rate)
    if m <= 0:
        return np.zeros(0, dtype=np.float32)
    if m == 1:
        return data[:1].copy()
    if n == 1:
        return np.full(m, data[0], dtype=np.float32)

    positions = np.arange(m, dtype=np.float64) * ((n - 1) / (m - 1))
    left = np.floor(positions).astype(np.int64)
    right = np.minimum(np.ceil(positions).astype(np.int64), n - 1)
    fraction = positions - left

    out = (data[left] + (data[right] - data[left]) * fraction).astype(np.float32)
    out[0] = data[0]
    out[m - 1] = data[n - 1]
    return out


def samples_to_bytes(samples: np.ndarray) -> bytes:
    return np.asarray(samples, dtype="<f4").tobytes()
