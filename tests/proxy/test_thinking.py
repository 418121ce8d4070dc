"""Tests for the thinking-budget body rewrite."""

from __future__ import annotations

import json

import pytest

from thinkgate.proxy.thinking import (
    apply_thinking_transform,
    compute_max_tokens_ceiling,
    parse_thinking_directive,
)


def transform(payload: dict) -> dict:
    return json.loads(apply_thinking_transform(json.dumps(payload).encode()))


class TestApplyThinkingTransform:
    """Tests for apply_thinking_transform()."""

    def test_small_max_tokens_is_raised_to_ceiling(self):
        result = transform({"model": "claude-sonnet-4-5-thinking-5000", "max_tokens": 100})

        assert result == {
            "model": "claude-sonnet-4-5",
            "max_tokens": 6024,
            "thinking": {"type": "enabled", "budget_tokens": 5000},
        }

    def test_budget_above_cap_is_clamped(self):
        result = transform({"model": "claude-opus-4-thinking-40000", "max_tokens": 1000})

        assert result["thinking"]["budget_tokens"] == 31999
        assert result["max_tokens"] == 32000

    def test_large_max_tokens_is_left_alone(self):
        result = transform({"model": "claude-opus-4-thinking-50000", "max_tokens": 64000})

        assert result["thinking"]["budget_tokens"] == 31999
        assert result["max_tokens"] == 64000

    def test_max_tokens_added_when_absent(self):
        result = transform({"model": "claude-sonnet-4-5-thinking-5000", "messages": []})

        assert result["max_tokens"] == 6024
        assert "max_output_tokens" not in result

    def test_max_output_tokens_is_adjusted_instead_of_added_field(self):
        result = transform({"model": "claude-sonnet-4-5-thinking-2000", "max_output_tokens": 50})

        assert result["max_output_tokens"] == 3024
        assert "max_tokens" not in result

    def test_non_numeric_max_output_tokens_is_replaced(self):
        result = transform({"model": "claude-sonnet-4-5-thinking-2000", "max_output_tokens": "lots"})

        assert result["max_output_tokens"] == 3024
        assert "max_tokens" not in result

    def test_both_fields_are_checked_independently(self):
        result = transform(
            {"model": "claude-sonnet-4-5-thinking-5000", "max_tokens": 100, "max_output_tokens": 10000}
        )

        assert result["max_tokens"] == 6024
        assert result["max_output_tokens"] == 10000

    def test_value_equal_to_budget_plus_one_is_kept(self):
        result = transform({"model": "claude-sonnet-4-5-thinking-5000", "max_tokens": 5001})

        assert result["max_tokens"] == 5001

    def test_fractional_value_below_budget_plus_one_is_raised(self):
        result = transform({"model": "claude-sonnet-4-5-thinking-5000", "max_tokens": 5000.5})

        assert result["max_tokens"] == 6024

    def test_boolean_max_tokens_is_not_a_number(self):
        result = transform({"model": "claude-sonnet-4-5-thinking-5000", "max_tokens": True})

        assert result["max_tokens"] == 6024

    def test_explicit_plus_sign_is_accepted(self):
        result = transform({"model": "claude-sonnet-4-5-thinking-+5000"})

        assert result["thinking"]["budget_tokens"] == 5000

    @pytest.mark.parametrize("suffix", ["abc", "0", "-5", "", "5k", " 5000"])
    def test_invalid_suffix_is_stripped_without_thinking(self, suffix):
        result = transform({"model": f"claude-sonnet-4-5-thinking-{suffix}", "max_tokens": 100})

        assert result == {"model": "claude-sonnet-4-5", "max_tokens": 100}

    def test_last_delimiter_wins(self):
        result = transform({"model": "claude-x-thinking-1-thinking-2000"})

        assert result["model"] == "claude-x-thinking-1"
        assert result["thinking"]["budget_tokens"] == 2000

    def test_other_fields_and_key_order_are_preserved(self):
        body = {
            "model": "claude-sonnet-4-5-thinking-5000",
            "messages": [{"role": "user", "content": "héllo ✓"}],
            "stream": True,
            "max_tokens": 100,
        }

        raw = apply_thinking_transform(json.dumps(body).encode())
        result = json.loads(raw)

        assert list(result) == ["model", "messages", "stream", "max_tokens", "thinking"]
        assert result["messages"] == body["messages"]
        assert "héllo ✓".encode() in raw

    def test_existing_thinking_block_is_replaced(self):
        result = transform(
            {"model": "claude-sonnet-4-5-thinking-5000", "thinking": {"type": "disabled"}, "max_tokens": 100}
        )

        assert result["thinking"] == {"type": "enabled", "budget_tokens": 5000}

    def test_output_is_compact(self):
        raw = apply_thinking_transform(b'{"model": "claude-a-thinking-1000", "max_tokens": 1}')

        assert raw == b'{"model":"claude-a","max_tokens":2024,"thinking":{"type":"enabled","budget_tokens":1000}}'

    def test_transform_is_idempotent(self):
        once = apply_thinking_transform(b'{"model":"claude-sonnet-4-5-thinking-5000","max_tokens":100}')

        assert apply_thinking_transform(once) == once


class TestIdentityCases:
    """Bodies that must come back byte-for-byte unchanged."""

    @pytest.mark.parametrize(
        "body",
        [
            b'{"model": "gpt-4o-thinking-5000", "max_tokens": 100}',
            b'{"model": "claude-sonnet-4-5", "max_tokens": 100}',
            b'{"model": "Claude-sonnet-thinking-5000"}',
            b'{"model": 42}',
            b'{"max_tokens": 100}',
            b'["claude-sonnet-thinking-5000"]',
            b'"claude-sonnet-thinking-5000"',
            b"not json at all",
            b'{"model": "claude-a-thinking-5000", "x": NaN}',
            b'{"model": "claude-a-thinking-5000",',
            b"\xff\xfe\x00",
            b"",
        ],
    )
    def test_body_is_returned_unchanged(self, body):
        assert apply_thinking_transform(body) == body

    def test_whitespace_is_preserved_without_suffix(self):
        body = b'{\n  "model" : "claude-sonnet-4-5",\n  "max_tokens": 100\n}\n'

        assert apply_thinking_transform(body) is body


class TestParseThinkingDirective:
    """Tests for parse_thinking_directive()."""

    def test_valid_suffix(self):
        directive = parse_thinking_directive("claude-sonnet-4-5-thinking-5000")

        assert directive is not None
        assert directive.clean_model == "claude-sonnet-4-5"
        assert directive.budget == 5000
        assert directive.effective_budget == 5000

    def test_clamped_effective_budget(self):
        directive = parse_thinking_directive("claude-opus-thinking-40000")

        assert directive is not None
        assert directive.budget == 40000
        assert directive.effective_budget == 31999

    def test_invalid_suffix_has_no_budget(self):
        directive = parse_thinking_directive("claude-opus-thinking-abc")

        assert directive is not None
        assert directive.budget is None
        assert directive.effective_budget is None

    @pytest.mark.parametrize("model", ["gpt-4-thinking-5000", "claude-opus", None, 5000])
    def test_not_applicable(self, model):
        assert parse_thinking_directive(model) is None

    def test_max_output_tokens_field_wins(self):
        directive = parse_thinking_directive(
            "claude-a-thinking-10", {"max_tokens": 1, "max_output_tokens": 1}
        )

        assert directive is not None
        assert directive.max_token_field == "max_output_tokens"

    def test_max_tokens_field(self):
        directive = parse_thinking_directive("claude-a-thinking-10", {"max_tokens": 1})

        assert directive is not None
        assert directive.max_token_field == "max_tokens"


class TestComputeMaxTokensCeiling:
    """Tests for compute_max_tokens_ceiling()."""

    @pytest.mark.parametrize(
        ("budget", "expected"),
        [
            (1, 1025),
            (5000, 6024),
            (10240, 11264),
            (20000, 22000),
            (31500, 32000),
            (31999, 32000),
        ],
    )
    def test_ceiling(self, budget, expected):
        assert compute_max_tokens_ceiling(budget) == expected

    @pytest.mark.parametrize("budget", [1, 100, 5000, 29000, 31998, 31999])
    def test_ceiling_exceeds_budget_and_respects_cap(self, budget):
        ceiling = compute_max_tokens_ceiling(budget)

        assert budget < ceiling <= 32000
