"""Thinking-budget rewrite of request bodies.

Clients select extended thinking through the model name:

    {"model": "claude-sonnet-4-5-thinking-5000", "max_tokens": 100}

becomes

    {"model": "claude-sonnet-4-5", "max_tokens": 6024,
     "thinking": {"type": "enabled", "budget_tokens": 5000}}

The transform is fail-open: whenever a step does not apply or fails, the
original bytes are returned unchanged.
"""

from __future__ import annotations

__all__ = [
    "ThinkingDirective",
    "apply_thinking_transform",
    "compute_max_tokens_ceiling",
    "parse_thinking_directive",
]

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from thinkgate.constants import (
    APP_NAME,
    MAX_OUTPUT_TOKENS_FIELD,
    MAX_TOKENS_FIELD,
    MODEL_PREFIX,
    THINKING_DELIMITER,
    THINKING_HARD_CAP,
    THINKING_MIN_HEADROOM,
)

_logger = logging.getLogger(f"{APP_NAME}.proxy.thinking")

# Optional sign followed by ASCII digits
_BUDGET_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class ThinkingDirective:
    """What a model name asks for.

    Attributes:
        model: Model name as sent by the client.
        clean_model: Model name with the thinking suffix removed.
        budget: Requested budget, None if the suffix is not a positive integer.
        max_token_field: Max-token field present in the body, if any
            (max_output_tokens wins when present).
    """

    model: str
    clean_model: str
    budget: int | None
    max_token_field: str | None = None

    @property
    def effective_budget(self) -> int | None:
        """Budget clamped strictly below the hard cap."""
        if self.budget is None:
            return None
        return min(self.budget, THINKING_HARD_CAP - 1)


def parse_thinking_directive(model: Any, body: dict[str, Any] | None = None) -> ThinkingDirective | None:
    """Parse a model name carrying a thinking suffix.

    Args:
        model: Value of the "model" field.
        body: Request object, used to record which max-token field is present.

    Returns:
        ThinkingDirective, or None if the model is not a prefixed string
        containing the delimiter.
    """
    if not isinstance(model, str) or not model.startswith(MODEL_PREFIX):
        return None

    idx = model.rfind(THINKING_DELIMITER)
    if idx == -1:
        return None

    clean_model = model[:idx]
    suffix = model[idx + len(THINKING_DELIMITER) :]

    budget: int | None = None
    if _BUDGET_RE.fullmatch(suffix):
        value = int(suffix)
        if value > 0:
            budget = value

    max_token_field = None
    if body is not None:
        if MAX_OUTPUT_TOKENS_FIELD in body:
            max_token_field = MAX_OUTPUT_TOKENS_FIELD
        elif MAX_TOKENS_FIELD in body:
            max_token_field = MAX_TOKENS_FIELD

    return ThinkingDirective(
        model=model,
        clean_model=clean_model,
        budget=budget,
        max_token_field=max_token_field,
    )


def compute_max_tokens_ceiling(effective_budget: int) -> int:
    """Max-token value that leaves room for an answer on top of the budget.

    Args:
        effective_budget: Budget already clamped below the hard cap.

    Returns:
        Ceiling in (effective_budget, THINKING_HARD_CAP].
    """
    headroom = max(THINKING_MIN_HEADROOM, effective_budget // 10)
    ceiling = min(effective_budget + headroom, THINKING_HARD_CAP)
    if ceiling <= effective_budget:
        ceiling = min(effective_budget + 1, THINKING_HARD_CAP)
    return ceiling


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def apply_thinking_transform(body: bytes) -> bytes:
    """Rewrite a request body according to its model's thinking suffix.

    Args:
        body: Raw request body.

    Returns:
        Rewritten body, or body itself when nothing applies or anything fails.
    """
    try:
        data = json.loads(body, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError, RecursionError):
        return body
    if not isinstance(data, dict):
        return body

    directive = parse_thinking_directive(data.get("model"), data)
    if directive is None:
        return body

    data["model"] = directive.clean_model

    effective = directive.effective_budget
    if effective is None:
        _logger.info(
            {
                "event": "thinking_suffix_stripped",
                "message": f"Stripped invalid thinking suffix from '{directive.model}' -> '{directive.clean_model}'",
            }
        )
        return _serialize(data, body)

    if directive.budget is not None and directive.budget != effective:
        _logger.info(
            {
                "event": "thinking_budget_clamped",
                "message": f"Adjusted thinking budget from {directive.budget} to {effective}",
            }
        )

    data["thinking"] = {"type": "enabled", "budget_tokens": effective}

    ceiling = compute_max_tokens_ceiling(effective)
    adjusted = False
    for field_name in (MAX_TOKENS_FIELD, MAX_OUTPUT_TOKENS_FIELD):
        value = data.get(field_name)
        if _is_number(value):
            # Whole-token comparison: 5000.5 counts as 5000
            if value < effective + 1:
                data[field_name] = ceiling
            adjusted = True

    if not adjusted:
        if directive.max_token_field == MAX_OUTPUT_TOKENS_FIELD:
            data[MAX_OUTPUT_TOKENS_FIELD] = ceiling
        else:
            data[MAX_TOKENS_FIELD] = ceiling

    _logger.info(
        {
            "event": "thinking_transform_applied",
            "message": f"Transformed model '{directive.model}' -> '{directive.clean_model}' "
            f"with thinking budget {effective}",
        }
    )
    return _serialize(data, body)


def _serialize(data: dict[str, Any], original: bytes) -> bytes:
    """Compact JSON, falling back to the original bytes."""
    try:
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError, OverflowError):
        return original
