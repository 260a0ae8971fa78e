"""Bounded, timed retries around an async text generator."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from wipsquash.core.log import logger

# prompt -> text
TextGenerator = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class Generated:
    text: str


@dataclass(frozen=True)
class TimedOut:
    timeout: float


@dataclass(frozen=True)
class Failed:
    reason: str


Outcome = Generated | TimedOut | Failed

# Generator calls that lost a race against their timer. They keep
# running until they finish on their own; holding them here stops
# them from being garbage collected mid-flight.
_abandoned: set[asyncio.Task] = set()


def _discard(task: asyncio.Task) -> None:
    _abandoned.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.debug(
            "Abandoned generator call failed", error=repr(task.exception())
        )


async def generate_once(
    generator: TextGenerator, prompt: str, timeout: float
) -> Outcome:
    """Race one generator call against a timer.

    Whichever finishes first decides the outcome. When the timer
    wins, the call is not cancelled: it runs on in the background
    and its result is thrown away.
    """
    call = asyncio.ensure_future(generator(prompt))
    timer = asyncio.ensure_future(asyncio.sleep(timeout))

    done, _ = await asyncio.wait(
        {call, timer}, return_when=asyncio.FIRST_COMPLETED
    )

    if call not in done:
        _abandoned.add(call)
        call.add_done_callback(_discard)
        return TimedOut(timeout)

    timer.cancel()

    if call.cancelled():
        return Failed("cancelled")
    error = call.exception()
    if error is not None:
        return Failed(f"{type(error).__name__}: {error}")

    text = call.result()
    if not text or not text.strip():
        return Failed("empty response")
    return Generated(text)


async def generate_with_retries(
    generator: TextGenerator,
    prompt: str,
    *,
    attempts: int = 3,
    timeout: float = 30.0,
    backoff: float = 1.0,
) -> Outcome:
    """Call generator until it produces text or attempts run out.

    After failed attempt N the loop sleeps N * backoff seconds.

    Returns:
        Generated on success, otherwise the last attempt's outcome
    """
    outcome: Outcome = Failed("no attempts made")
    for attempt in range(1, attempts + 1):
        outcome = await generate_once(generator, prompt, timeout)
        if isinstance(outcome, Generated):
            return outcome

        logger.warn(
            f"Message generation attempt {attempt}/{attempts} failed",
            outcome=repr(outcome),
        )
        if attempt < attempts and backoff > 0:
            await asyncio.sleep(attempt * backoff)

    return outcome
