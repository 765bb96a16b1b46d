"""Time-paced multi-sample measurement with per-sample failure tolerance."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from opsengine.models import Sample, SampleWindow

logger = logging.getLogger(__name__)

Query = Callable[[], Awaitable[float]]
Sleeper = Callable[[float], Awaitable[None]]

DEFAULT_WINDOW_SECONDS = 2.0
DEFAULT_INTERVALS = 8
DEFAULT_SAMPLE_TIMEOUT = 2.0


async def sample(
    query: Query,
    *,
    window_seconds: float = DEFAULT_WINDOW_SECONDS,
    intervals: int = DEFAULT_INTERVALS,
    timeout: float = DEFAULT_SAMPLE_TIMEOUT,
    sleep: Sleeper = asyncio.sleep,
) -> SampleWindow:
    """Take ``intervals`` measurements spaced ``window_seconds / intervals`` apart.

    Measurements run one after another. A measurement that raises or exceeds
    ``timeout`` is kept in the window as an invalid sample and is not
    retried. The window's ``average`` covers valid samples only and is ``0``
    when none succeeded.
    """
    count = max(1, int(intervals))
    spacing = max(0.0, float(window_seconds)) / count
    window = SampleWindow()
    for index in range(count):
        if index:
            await sleep(spacing)
        try:
            value = float(await asyncio.wait_for(query(), timeout=timeout))
        except asyncio.TimeoutError:
            logger.debug("Sample %d/%d timed out after %.1fs", index + 1, count, timeout)
            window.samples.append(Sample(value=0.0, valid=False))
        except Exception as exc:
            logger.debug("Sample %d/%d failed: %s", index + 1, count, exc)
            window.samples.append(Sample(value=0.0, valid=False))
        else:
            window.samples.append(Sample(value=value, valid=True))
    if window.valid_count == 0:
        logger.warning("All %d samples failed; reporting 0", count)
    return window


def load_average_cpu(load1: float, multiplier: float = 10.0) -> float:
    """Approximate CPU usage from the 1-minute load average, clamped to ``[0, 100]``."""
    return min(100.0, max(0.0, float(load1) * float(multiplier)))


__all__ = ["Sample", "SampleWindow", "load_average_cpu", "sample"]
