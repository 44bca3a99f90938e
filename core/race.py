"""
Core Module - Bounded Race.

============================================================
RESPONSIBILITY
============================================================
Runs several interchangeable async attempts concurrently and
returns the first one that succeeds.

- Each attempt is bounded by its own timeout
- The first success wins, pending attempts are cancelled
- If every attempt fails, RaceExhaustedError carries all errors

Transport-agnostic: attempts are plain zero-argument
coroutine factories.

============================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, TypeVar

from .exceptions import VerificationError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RaceExhaustedError(VerificationError):
    """Every attempt in a race failed or timed out."""

    def __init__(self, errors: List[BaseException]):
        super().__init__(
            f"All {len(errors)} attempts failed",
            context={"errors": [repr(e) for e in errors]},
        )
        self.errors = errors


async def race_with_timeout(
    sources: Sequence[Callable[[], Awaitable[T]]],
    per_attempt_timeout: float,
) -> T:
    """
    Return the result of the first attempt to succeed.

    Args:
        sources: Zero-argument callables returning awaitables
        per_attempt_timeout: Seconds each attempt may take

    Raises:
        RaceExhaustedError: If no attempt succeeded
    """
    if not sources:
        raise RaceExhaustedError([])

    tasks = [
        asyncio.ensure_future(asyncio.wait_for(source(), timeout=per_attempt_timeout))
        for source in sources
    ]
    errors: List[BaseException] = []

    try:
        for next_done in asyncio.as_completed(tasks):
            try:
                return await next_done
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug(f"[race] Attempt failed: {e!r}")
                errors.append(e)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    raise RaceExhaustedError(errors)


__all__ = ["RaceExhaustedError", "race_with_timeout"]
