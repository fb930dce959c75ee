"""Chat model construction and provider-specific kwarg normalization."""

from __future__ import annotations

from typing import Any

from langchain.chat_models import init_chat_model


def normalize_model_kwargs(model_name: str, model_kwargs: dict[str, Any]) -> dict[str, Any]:
    """Return model kwargs normalized for the target model/provider behavior."""
    kwargs = dict(model_kwargs)
    provider = str(kwargs.get("model_provider") or "").strip().lower()
    name = (model_name or "").strip().lower()

    # @@@openai-gpt5-token-param - OpenAI GPT-5 chat completions reject max_tokens and require max_completion_tokens.
    if provider == "openai" and _is_openai_gpt5(name):
        if "max_completion_tokens" not in kwargs and "max_tokens" in kwargs:
            kwargs["max_completion_tokens"] = kwargs["max_tokens"]
        kwargs.pop("max_tokens", None)
        # gpt-5 only accepts the default temperature
        kwargs.pop("temperature", None)

    return kwargs


def _is_openai_gpt5(model_name: str) -> bool:
    bare_name = model_name.split("/")[-1]
    return bare_name.startswith("gpt-5")


def create_chat_model(model_config: Any, temperature: float | None = None) -> Any:
    """Build a chat model for one collaborator role.

    ``model_config`` is a ``config.schema.ModelConfig``; ``temperature``
    overrides the config-level value for the role.
    """
    kwargs: dict[str, Any] = {}
    if model_config.api_key:
        kwargs["api_key"] = model_config.api_key
    if model_config.provider:
        kwargs["model_provider"] = model_config.provider
    if model_config.base_url:
        kwargs["base_url"] = model_config.base_url
    if model_config.max_tokens is not None:
        kwargs["max_tokens"] = model_config.max_tokens
    if temperature is not None:
        kwargs["temperature"] = temperature
    kwargs.update(model_config.model_kwargs)
    kwargs = normalize_model_kwargs(model_config.model, kwargs)
    return init_chat_model(model_config.model, **kwargs)
