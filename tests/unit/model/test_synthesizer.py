"""Tests for consolidated commit message synthesis."""

import asyncio

import pytest
from pydantic_ai.messages import ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from wipsquash.core.config import LLMConfig
from wipsquash.git.types import Commit, WipRun
from wipsquash.model.generator import AgentTextGenerator, build_model, clean_output
from wipsquash.model.synthesizer import (
    DEFAULT_TITLE,
    MessageSynthesizer,
    build_prompt,
    describe,
    fallback_message,
)

PREFIX = "[AUTO-WIP]"


def wip_run(*messages):
    """WipRun from messages given newest first."""
    commits = tuple(
        Commit(
            hash=f"{index:040x}",
            message=message,
            timestamp=f"2025-01-0{index}T10:00:00+00:00",
            parents=(f"{index - 1:040x}",),
        )
        for index, message in zip(range(len(messages), 0, -1), messages)
    )
    return WipRun(commits=commits)


@pytest.fixture
def config(make_state):
    return make_state(llm={"attempts": 2, "timeout": 1}).config


class TestFallback:

    def test_headline_and_details(self):
        run = wip_run(
            f"{PREFIX} Add parser tests (2 added)",
            f"{PREFIX} Fix tokenizer",
            f"{PREFIX} Add parser",
        )

        assert fallback_message(run, PREFIX) == (
            "Add parser tests\n\n"
            "Includes the following changes:\n"
            "- Fix tokenizer\n"
            "- Add parser"
        )

    def test_duplicates_listed_once(self):
        run = wip_run(f"{PREFIX} Edit docs", f"{PREFIX} Tweak", f"{PREFIX} Tweak")

        assert fallback_message(run, PREFIX).endswith("- Tweak")
        assert fallback_message(run, PREFIX).count("Tweak") == 1

    def test_long_headline_truncated(self):
        long = "x" * 80
        run = wip_run(f"{PREFIX} {long}", f"{PREFIX} {long}")

        assert fallback_message(run, PREFIX) == "x" * 50 + "..."

    def test_blank_descriptions(self):
        run = wip_run(PREFIX, f"{PREFIX}   ")

        assert fallback_message(run, PREFIX) == DEFAULT_TITLE

    def test_describe_uses_subject_only(self):
        commit = wip_run(f"{PREFIX} Subject (1 modified)\n\nBody").commits[0]

        assert describe(commit, PREFIX) == "Subject"


def test_prompt_lists_every_commit():
    run = wip_run(f"{PREFIX} second", f"{PREFIX} first")

    prompt = build_prompt(run, PREFIX, "Write one message.")

    assert prompt.startswith("Write one message.")
    assert f"1. [{run.commits[0].short_hash}] 2025-01-02T10:00:00+00:00" in prompt
    assert "   second" in prompt
    assert "   first" in prompt
    assert PREFIX not in prompt


def test_clean_output():
    assert clean_output("  [auto-wip] Add X\n\n- detail\n  \n", PREFIX) == "Add X\n- detail"
    assert clean_output("```\nAdd X\n```", PREFIX) == "Add X"
    assert clean_output("\n  \n", PREFIX) == ""


class TestSynthesize:

    def test_override_verbatim(self, config):
        async def never(prompt):
            raise AssertionError("generator must not be called")

        synthesizer = MessageSynthesizer(config, never)
        run = wip_run(f"{PREFIX} a", f"{PREFIX} b")

        assert asyncio.run(synthesizer.synthesize(run, "  My message ")) == "  My message "

    def test_blank_override_ignored(self, config):
        synthesizer = MessageSynthesizer(config)
        run = wip_run(f"{PREFIX} only")

        assert asyncio.run(synthesizer.synthesize(run, "   ")) == "only"

    def test_single_commit_strips_marker(self, config):
        async def never(prompt):
            raise AssertionError("generator must not be called")

        run = wip_run(f"{PREFIX} Add login form\n\nWith validation")

        message = asyncio.run(MessageSynthesizer(config, never).synthesize(run))

        assert message == "Add login form\n\nWith validation"

    def test_generated_text_is_cleaned(self, config):
        prompts = []

        async def generator(prompt):
            prompts.append(prompt)
            return "[AUTO-WIP] Implement login\n\n- form\n- validation\n"

        run = wip_run(f"{PREFIX} form", f"{PREFIX} validation")

        message = asyncio.run(MessageSynthesizer(config, generator).synthesize(run))

        assert message == "Implement login\n- form\n- validation"
        assert len(prompts) == 1

    def test_failures_fall_back(self, config):
        calls = []

        async def broken(prompt):
            calls.append(prompt)
            raise ConnectionError("offline")

        run = wip_run(f"{PREFIX} second", f"{PREFIX} first")

        message = asyncio.run(MessageSynthesizer(config, broken).synthesize(run))

        assert message == fallback_message(run, PREFIX)
        assert len(calls) == config.llm.attempts

    def test_empty_output_counts_as_failure(self, config):
        async def blank(prompt):
            return f"{PREFIX}\n\n"

        run = wip_run(f"{PREFIX} second", f"{PREFIX} first")

        message = asyncio.run(MessageSynthesizer(config, blank).synthesize(run))

        assert message == fallback_message(run, PREFIX)

    def test_generation_disabled(self, make_state):
        config = make_state(squash={"auto_generate_message": False}).config

        async def never(prompt):
            raise AssertionError("generator must not be called")

        run = wip_run(f"{PREFIX} second", f"{PREFIX} first")

        message = asyncio.run(MessageSynthesizer(config, never).synthesize(run))

        assert message == fallback_message(run, PREFIX)

    def test_no_generator(self, config):
        run = wip_run(f"{PREFIX} second", f"{PREFIX} first")

        message = asyncio.run(MessageSynthesizer(config).synthesize(run))

        assert message == fallback_message(run, PREFIX)


class TestAgentTextGenerator:
    """The pydantic-AI backed generator, with model overrides."""

    def test_test_model(self, config):
        generator = AgentTextGenerator(
            config.llm, model=TestModel(custom_output_text="Refactor parser")
        )

        assert asyncio.run(generator("prompt")) == "Refactor parser"

    def test_function_model_sees_prompt(self, config):
        seen = []

        def respond(messages, info: AgentInfo) -> ModelResponse:
            seen.append(messages[-1].parts[-1].content)
            return ModelResponse(parts=[TextPart("Add parser")])

        generator = AgentTextGenerator(
            config.llm, system_prompt="Be brief.", model=FunctionModel(respond)
        )
        run = wip_run(f"{PREFIX} second", f"{PREFIX} first")

        message = asyncio.run(MessageSynthesizer(config, generator).synthesize(run))

        assert message == "Add parser"
        assert "WIP commits:" in seen[0]


class TestBuildModel:

    def test_name_passed_through_without_credentials(self):
        assert build_model(LLMConfig(model="openai:gpt-4o-mini")) == "openai:gpt-4o-mini"

    def test_compatible_endpoint(self):
        model = build_model(
            LLMConfig(
                model="openai:local-model",
                api_key="sk-test",
                base_url="http://localhost:8080/v1",
            )
        )

        assert model.model_name == "local-model"
        assert "localhost:8080" in str(model.base_url)

    def test_anthropic_key(self):
        model = build_model(
            LLMConfig(model="anthropic:claude-haiku-4-5", api_key="sk-ant-test")
        )

        assert model.model_name == "claude-haiku-4-5"
        assert model.system == "anthropic"
