"""Tests for the timed retry loop around text generators."""

import asyncio

from wipsquash.model import generation
from wipsquash.model.generation import (
    Failed,
    Generated,
    TimedOut,
    generate_once,
    generate_with_retries,
)


def run(coro):
    return asyncio.run(coro)


class FlakyGenerator:
    """Fails a fixed number of times, then answers."""

    def __init__(self, failures: int, answer: str = "Add feature"):
        self.failures = failures
        self.answer = answer
        self.prompts = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if len(self.prompts) <= self.failures:
            raise RuntimeError(f"failure {len(self.prompts)}")
        return self.answer


class TestGenerateOnce:

    def test_success(self):
        async def generator(prompt):
            return f"echo: {prompt}"

        assert run(generate_once(generator, "hi", timeout=1)) == Generated("echo: hi")

    def test_exception_is_failed(self):
        outcome = run(generate_once(FlakyGenerator(1), "hi", timeout=1))

        assert isinstance(outcome, Failed)
        assert "failure 1" in outcome.reason

    def test_empty_text_is_failed(self):
        async def generator(prompt):
            return "   "

        assert run(generate_once(generator, "hi", timeout=1)) == Failed("empty response")

    def test_timer_wins(self):
        async def slow(prompt):
            await asyncio.sleep(10)
            return "too late"

        outcome = run(generate_once(slow, "hi", timeout=0.05))

        assert outcome == TimedOut(0.05)

    def test_loser_keeps_running_in_background(self, monkeypatch):
        monkeypatch.setattr(generation, "_abandoned", set())
        finished = []

        async def slowish(prompt):
            await asyncio.sleep(0.1)
            finished.append(prompt)
            return "late"

        async def scenario():
            outcome = await generate_once(slowish, "hi", timeout=0.01)
            assert len(generation._abandoned) == 1
            await asyncio.sleep(0.3)
            return outcome

        assert isinstance(run(scenario()), TimedOut)
        assert finished == ["hi"]
        assert not generation._abandoned


class TestGenerateWithRetries:

    def test_retries_until_success(self):
        generator = FlakyGenerator(2)

        outcome = run(generate_with_retries(generator, "p", attempts=3, backoff=0))

        assert outcome == Generated("Add feature")
        assert len(generator.prompts) == 3

    def test_returns_last_failure(self):
        generator = FlakyGenerator(5)

        outcome = run(generate_with_retries(generator, "p", attempts=3, backoff=0))

        assert isinstance(outcome, Failed)
        assert "failure 3" in outcome.reason
        assert len(generator.prompts) == 3

    def test_linear_backoff(self, monkeypatch):
        delays = []
        real_sleep = asyncio.sleep

        async def fake_sleep(seconds, *args, **kwargs):
            if seconds >= 1:
                delays.append(seconds)
                return
            await real_sleep(seconds, *args, **kwargs)

        monkeypatch.setattr(generation.asyncio, "sleep", fake_sleep)

        run(generate_with_retries(
            FlakyGenerator(5), "p", attempts=3, timeout=0.5, backoff=1.5
        ))

        assert delays == [1.5, 3.0]
