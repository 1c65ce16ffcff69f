"""
Exponential backoff with full jitter for request retries.

Delay for retry n is drawn uniformly from [0, min(cap, base * 2^n)], which
spreads retries of many queued requests after connectivity returns.
"""

import random
from typing import Optional


def calculate_delay(
    retry_count: int,
    base: float = 1.0,
    cap: float = 30.0,
    jitter_seed: Optional[int] = None,
) -> float:
    """
    Calculate retry delay in seconds.

    Args:
        retry_count: Zero-based retry number (0 = first retry)
        base: Base delay in seconds
        cap: Maximum delay in seconds
        jitter_seed: Seed for deterministic jitter (testing); None = random

    Returns:
        Delay in seconds within [0, min(cap, base * 2^retry_count)]
    """
    if base <= 0:
        return 0.0

    # Avoid float overflow on very large retry counts
    exponent = min(max(retry_count, 0), 62)
    ceiling = min(cap, base * (2 ** exponent))

    rng = random.Random(jitter_seed) if jitter_seed is not None else random
    return rng.uniform(0, ceiling)


__all__ = ['calculate_delay']
