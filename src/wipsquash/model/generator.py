"""Commit message text generation using a pydantic-AI agent."""

from __future__ import annotations

import re

from pydantic_ai import Agent, providers
from pydantic_ai.models import Model

from wipsquash.core.config import LLMConfig
from wipsquash.core.log import logger


def build_model(llm_config: LLMConfig) -> Model | str:
    """The model to hand to the agent.

    Without api_key or base_url this is just the model name and
    pydantic-AI finds credentials itself. Otherwise the provider is
    built with them; providers other than anthropic are treated as
    OpenAI-compatible.

    Raises:
        Exception: Unknown provider, or missing provider package
    """
    kwargs = {}
    if llm_config.api_key:
        kwargs['api_key'] = llm_config.api_key
    if llm_config.base_url:
        kwargs['base_url'] = llm_config.base_url
    if not kwargs:
        return llm_config.model

    provider_name, _, model_name = llm_config.model.partition(":")
    if not model_name:
        provider_name, model_name = "openai", provider_name
    provider = providers.infer_provider_class(provider_name)(**kwargs)

    if provider_name == "anthropic":
        from pydantic_ai.models.anthropic import AnthropicModel
        return AnthropicModel(model_name, provider=provider)

    from pydantic_ai.models.openai import OpenAIChatModel
    return OpenAIChatModel(model_name, provider=provider)


def clean_output(text: str, prefix: str) -> str:
    """Tidy model output into a commit message.

    Strips surrounding whitespace and code fences, removes a WIP
    marker the model may have echoed (any case), and drops blank
    lines. May return "".
    """
    text = text.strip().strip("`").strip()
    text = re.sub(
        r"^\s*" + re.escape(prefix) + r"\s*", "", text, flags=re.IGNORECASE
    )
    lines = [line.rstrip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line.strip())


class AgentTextGenerator:
    """Async prompt -> text callable backed by a pydantic-AI agent."""

    def __init__(
        self,
        llm_config: LLMConfig,
        system_prompt: str | None = None,
        model: Model | str | None = None,
    ):
        """Create the agent.

        Args:
            llm_config: Model name and provider credentials
            system_prompt: Instructions sent with every request
            model: Model override, used instead of llm_config.model

        Raises:
            Exception: Whatever pydantic-AI raises for an unknown
                model or missing credentials
        """
        self.llm_config = llm_config

        logger.debug(
            "Creating message agent",
            model=str(model or llm_config.model),
            api_key_provided=llm_config.api_key is not None,
            base_url=llm_config.base_url,
        )

        self.agent = Agent(
            model or build_model(llm_config),
            system_prompt=system_prompt or "You write git commit messages.",
            output_type=str,
        )

    async def __call__(self, prompt: str) -> str:
        logger.debug("Requesting message", prompt_length=len(prompt))
        result = await self.agent.run(prompt)
        return result.output


def build_generator(
    llm_config: LLMConfig,
    prompts: dict[str, dict[str, str]],
    task: str,
) -> AgentTextGenerator | None:
    """Build the generator for one prompt task, or None if the
    configured model can't be set up (the caller falls back).
    """
    system_prompt = prompts.get(task, {}).get("system")
    try:
        return AgentTextGenerator(llm_config, system_prompt)
    except Exception as e:
        logger.warn(
            "LLM unavailable, using fallback messages",
            model=llm_config.model,
            error=str(e),
        )
        return None
