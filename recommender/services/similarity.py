import math
from collections.abc import Sequence


def cosine_similarity(vec_a: Sequence[float] | None, vec_b: Sequence[float] | None) -> float:
    """
    Cosine similarity between two equal-length vectors, in [-1, 1].

    Missing, empty, mismatched or zero-magnitude vectors give 0.0 (no signal).
    """
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for a, b in zip(vec_a, vec_b):
        dot += a * b
        norm_a += a * a
        norm_b += b * b

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Clamp floating point drift
    return max(-1.0, min(1.0, similarity))
