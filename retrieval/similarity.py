"""
Vector similarity for stored FAQ embeddings.
"""

from typing import Sequence

import numpy as np


def cosine_sim(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors, padding the shorter one with zeros.

    A zero norm is treated as 1, so a zero vector scores 0 against anything.
    """
    va = np.asarray(a, dtype=float).ravel()
    vb = np.asarray(b, dtype=float).ravel()

    size = max(va.size, vb.size)
    if size == 0:
        return 0.0
    va = np.pad(va, (0, size - va.size))
    vb = np.pad(vb, (0, size - vb.size))

    norm_a = np.linalg.norm(va) or 1.0
    norm_b = np.linalg.norm(vb) or 1.0
    result = float(np.dot(va, vb) / (norm_a * norm_b))

    # Rounding can push |result| a hair past 1
    return float(np.clip(result, -1.0, 1.0))
