"""
Model name normalization.

Collapses vendor-specific model identifiers into stable family buckets.
"""

from typing import Optional, Tuple


# Checked in order; the first family whose markers appear in the name wins.
MODEL_FAMILIES = (
    ("opus", ("claude-opus", "opus")),
    ("sonnet", ("claude-sonnet", "sonnet")),
    ("haiku", ("claude-haiku", "haiku")),
    ("claude", ("claude",)),
    ("gpt-5", ("gpt-5", "gpt5")),
    ("gpt-4o", ("gpt-4o",)),
    ("gpt-4", ("gpt-4",)),
    ("gpt-3.5", ("gpt-3.5", "gpt3")),
    ("minimax", ("minimax",)),
    ("glm", ("glm",)),
    ("gemini", ("gemini",)),
    ("kimi", ("kimi",)),
    ("deepseek", ("deepseek",)),
    ("qwen", ("qwen",)),
    ("yi", ("yi",)),
    ("llama", ("llama",)),
    ("mistral", ("mistral",)),
)

UNKNOWN_MODEL = "unknown"
SNAPSHOT_FALLBACK_MODEL = "droid"


def split_provider(raw_model: str) -> Tuple[Optional[str], str]:
    """Split a ``provider/model`` identifier at its last slash.

    ``custom:`` names are never treated as carrying a provider.

    Examples:
        "minimax/minimax-m2.1" -> ("minimax", "minimax-m2.1")
        "Pro/MiniMaxAI/MiniMax-M2.5" -> ("Pro/MiniMaxAI", "MiniMax-M2.5")
        "claude-opus-4-6" -> (None, "claude-opus-4-6")
    """
    if raw_model.startswith("custom:"):
        return None, raw_model
    last_slash = raw_model.rfind("/")
    if 0 < last_slash < len(raw_model) - 1:
        return raw_model[:last_slash], raw_model[last_slash + 1:]
    return None, raw_model


def _match_family(lower_model: str) -> Optional[str]:
    for family, markers in MODEL_FAMILIES:
        if any(marker in lower_model for marker in markers):
            return family
    return None


def normalize_model_name(model) -> str:
    """Map a raw model identifier to its canonical bucket.

    Unmatched names fall back to the lower-cased text before the first
    ``:`` limited to its first two ``-`` separated tokens.

    Args:
        model: Raw model identifier from a log

    Returns:
        Canonical model name
    """
    if not model or not isinstance(model, str):
        return UNKNOWN_MODEL

    _, model_part = split_provider(model)
    lower_model = model_part.lower()

    family = _match_family(lower_model)
    if family:
        return family

    return "-".join(lower_model.split(":")[0].split("-")[:2]) or UNKNOWN_MODEL


def normalize_snapshot_model_name(model) -> str:
    """Map a snapshot-file model name (e.g. ``custom:Opus-4.6-x``) to a bucket."""
    if not model or not isinstance(model, str):
        return SNAPSHOT_FALLBACK_MODEL

    cleaned = model.lower()
    if cleaned.startswith("custom:"):
        cleaned = cleaned[len("custom:"):]

    return _match_family(cleaned) or SNAPSHOT_FALLBACK_MODEL
