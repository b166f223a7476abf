"""Model id helpers used to pick provider-specific tool handling."""

from __future__ import annotations

from collections.abc import Iterable

DEFAULT_RESTRICTED_PREFIXES = ("google/", "gemini")


def is_chatgpt_model(model_id: str) -> bool:
    """OpenAI GPT models, direct (``gpt-*``) or proxied (``openai/gpt-*``)."""
    return model_id.startswith("gpt-") or model_id.startswith("openai/gpt-")


def is_schema_restricted(
    model_id: str,
    prefixes: Iterable[str] = DEFAULT_RESTRICTED_PREFIXES,
) -> bool:
    """Whether the model's provider needs restricted tool schemas."""
    return any(model_id.startswith(prefix) for prefix in prefixes)


def parse_model_id(model_id: str) -> tuple[str, str]:
    """Split ``"provider/model"`` into ``(provider, model)``.

    Bare ids are attributed by name prefix and default to ``"toolplex"``.
    """
    provider, sep, rest = model_id.partition("/")
    if sep:
        return provider, rest

    if model_id.startswith("gpt-") or model_id.startswith("o1"):
        return "openai", model_id
    if model_id.startswith("claude"):
        return "anthropic", model_id
    if model_id.startswith("gemini"):
        return "google", model_id
    return "toolplex", model_id
