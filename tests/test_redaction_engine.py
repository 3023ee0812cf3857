"""Tests for the dot-notation redaction engine."""

import copy

import pytest

from apilogs.exceptions import ConfigurationError
from apilogs.redaction import DEFAULT_REPLACEMENT, RedactionRule, parse_path, redact
from apilogs.redaction.engine import PathKind, deep_path_matches
from apilogs.redaction.registry import REPLACEMENT_STRATEGIES


@pytest.fixture
def payload():
    return {
        "request": {
            "headers": {"authorization": "Bearer x", "accept": "application/json"},
            "body": {"password": "secret123", "username": "ada", "note": None},
        },
        "users": [
            {"name": "a", "email": "a@example.com"},
            {"name": "b", "email": "b@example.com"},
            {"name": "c"},
        ],
    }


class TestParsePath:
    """Tests for path parsing and rule construction."""

    def test_splits_segments(self):
        """Test a dotted path splits into segments."""
        assert parse_path("a.b.c") == ("a", "b", "c")

    def test_rule_kinds(self):
        """Test rule kind is derived from the path."""
        assert RedactionRule("a.b").kind == PathKind.EXACT
        assert RedactionRule("a.*.b").kind == PathKind.WILDCARD
        assert RedactionRule("**.b").kind == PathKind.DEEP

    @pytest.mark.parametrize("path", ["", "   ", "a..b", "a.pass*", ".a", None, 42])
    def test_invalid_paths_rejected(self, path):
        """Test malformed paths raise ConfigurationError at construction."""
        with pytest.raises(ConfigurationError):
            RedactionRule(path)

    def test_unsupported_rule_type(self):
        """Test non-string, non-rule entries are rejected."""
        with pytest.raises(ConfigurationError):
            redact({"a": 1}, [{"path": "a"}])


class TestExactPaths:
    """Tests for exact path redaction."""

    def test_replaces_only_the_leaf(self, payload):
        """Test exactly the addressed leaf changes."""
        result = redact(payload, ["request.body.password"])

        expected = copy.deepcopy(payload)
        expected["request"]["body"]["password"] = DEFAULT_REPLACEMENT
        assert result == expected

    def test_input_not_mutated(self, payload):
        """Test the caller's structure is left untouched."""
        original = copy.deepcopy(payload)
        redact(payload, ["request.body.password", "users.*.email", "**.authorization"])
        assert payload == original

    def test_missing_path_is_noop(self, payload):
        """Test missing paths never raise and change nothing."""
        assert redact(payload, ["request.body.missing", "nope.deeper.still"]) == payload

    def test_none_value_skipped(self, payload):
        """Test a None leaf is treated as absent."""
        result = redact(payload, ["request.body.note"])
        assert result["request"]["body"]["note"] is None

    def test_list_index_segment(self, payload):
        """Test numeric segments address list items."""
        result = redact(payload, ["users.1.email"])
        assert result["users"][0]["email"] == "a@example.com"
        assert result["users"][1]["email"] == DEFAULT_REPLACEMENT

    def test_subtree_replaced(self, payload):
        """Test a path ending on a container replaces the whole subtree."""
        result = redact(payload, ["request.headers"])
        assert result["request"]["headers"] == DEFAULT_REPLACEMENT

    def test_non_string_dict_keys(self):
        """Test integer dict keys are addressable by their string form."""
        result = redact({"codes": {1: "x", 2: "y"}}, ["codes.1"])
        assert result == {"codes": {1: DEFAULT_REPLACEMENT, 2: "y"}}

    @pytest.mark.parametrize("data", ["text", 42, None, 3.5, True])
    def test_non_structured_input_returned(self, data):
        """Test scalars pass through unchanged."""
        assert redact(data, ["a.b"]) == data


class TestSingleWildcard:
    """Tests for single-level wildcard redaction."""

    def test_every_sibling_with_key(self, payload):
        """Test siblings with the key are redacted and others untouched."""
        result = redact(payload, ["users.*.email"])

        assert result["users"][0] == {"name": "a", "email": DEFAULT_REPLACEMENT}
        assert result["users"][1] == {"name": "b", "email": DEFAULT_REPLACEMENT}
        assert result["users"][2] == {"name": "c"}

    def test_trailing_wildcard_replaces_children(self, payload):
        """Test a trailing * replaces every child of the prefix."""
        result = redact(payload, ["request.headers.*"])
        assert result["request"]["headers"] == {
            "authorization": DEFAULT_REPLACEMENT,
            "accept": DEFAULT_REPLACEMENT,
        }

    def test_multiple_wildcards(self):
        """Test several wildcards in one path expand recursively."""
        data = {
            "orders": [
                {"items": [{"sku": 1, "price": 10}, {"sku": 2, "price": 20}]},
                {"items": [{"sku": 3, "price": 30}]},
            ]
        }
        result = redact(data, ["orders.*.items.*.price"])

        prices = [item["price"] for order in result["orders"] for item in order["items"]]
        skus = [item["sku"] for order in result["orders"] for item in order["items"]]
        assert prices == [DEFAULT_REPLACEMENT] * 3
        assert skus == [1, 2, 3]

    def test_wildcard_over_scalar_is_noop(self):
        """Test a wildcard over a scalar does nothing."""
        assert redact({"a": "x"}, ["a.*.b"]) == {"a": "x"}


class TestDeepWildcard:
    """Tests for deep wildcard redaction."""

    def test_suffix_at_any_depth(self):
        """Test every node ending in the key is redacted at any depth."""
        data = {
            "x": 1,
            "a": {"x": 2, "b": [{"x": 3}, {"c": {"x": 4}}]},
            "y": 5,
        }
        result = redact(data, ["**.x"])

        assert result == {
            "x": DEFAULT_REPLACEMENT,
            "a": {"x": DEFAULT_REPLACEMENT, "b": [{"x": DEFAULT_REPLACEMENT}, {"c": {"x": DEFAULT_REPLACEMENT}}]},
            "y": 5,
        }

    def test_prefix_and_suffix(self):
        """Test a prefix restricts matches to its subtree."""
        data = {
            "request": {"body": {"meta": {"token": "t1"}}},
            "response": {"body": {"token": "t2"}},
        }
        result = redact(data, ["request.**.token"])

        assert result["request"]["body"]["meta"]["token"] == DEFAULT_REPLACEMENT
        assert result["response"]["body"]["token"] == "t2"

    def test_zero_intermediate_segments(self):
        """Test ** may match no segments at all."""
        result = redact({"a": {"b": 1}}, ["a.**.b"])
        assert result == {"a": {"b": DEFAULT_REPLACEMENT}}

    def test_prefix_only(self):
        """Test a trailing ** matches the prefix node itself first."""
        result = redact({"a": {"b": 1, "c": {"d": 2}}, "e": 3}, ["a.**"])
        assert result == {"a": DEFAULT_REPLACEMENT, "e": 3}

    def test_suffix_wildcard_matches_one_segment(self):
        """Test a * after ** matches exactly one trailing segment."""
        data = {"a": {"secret": {"k": 1}, "open": 2}}
        result = redact(data, ["**.secret.*"])
        assert result == {"a": {"secret": {"k": DEFAULT_REPLACEMENT}, "open": 2}}

    def test_prefix_and_suffix_do_not_overlap(self):
        """Test a.**.a needs at least two segments."""
        assert not deep_path_matches(["a"], ("a",), ("a",))
        assert deep_path_matches(["a", "a"], ("a",), ("a",))
        assert deep_path_matches(["a", "x", "y", "a"], ("a",), ("a",))

    def test_nested_match_under_replaced_ancestor(self):
        """Test matches hidden by an earlier replacement are skipped."""
        result = redact({"x": {"x": 1}}, ["**.x"])
        assert result == {"x": DEFAULT_REPLACEMENT}

    def test_scenario_card_numbers_in_transactions(self):
        """Test every nested card number is redacted and expiry kept."""
        data = {
            "transactions": [
                {"payment": {"billing": {"card": {"number": "4111111111111111", "expiry": "12/30"}}}},
                {"payment": {"billing": {"card": {"number": "5500000000000004", "expiry": "01/29"}}}},
            ]
        }
        result = redact(data, ["**.card.number"])

        for tx in result["transactions"]:
            assert tx["payment"]["billing"]["card"]["number"] == DEFAULT_REPLACEMENT
        assert [tx["payment"]["billing"]["card"]["expiry"] for tx in result["transactions"]] == ["12/30", "01/29"]


class TestReplacement:
    """Tests for replacement values and rule composition."""

    def test_literal_replacement(self):
        """Test a literal replacement is used as-is."""
        result = redact({"a": "x"}, [RedactionRule("a", "***")])
        assert result == {"a": "***"}

    def test_callable_receives_value_path_and_data(self):
        """Test callables see the value, resolved path and full data."""
        seen = []

        def mask(value, path, data):
            seen.append((value, path, data["users"][0]["name"]))
            return "*" * len(value)

        result = redact({"users": [{"name": "ada", "email": "a@b.co"}]}, [RedactionRule("users.*.email", mask)])

        assert result["users"][0]["email"] == "******"
        assert seen == [("a@b.co", "users.0.email", "ada")]

    def test_container_replacement_not_shared(self):
        """Test dict replacements are copied per match."""
        result = redact({"a": {"x": 1}, "b": {"x": 2}}, [RedactionRule("*.x", {"masked": True})])
        result["a"]["x"]["masked"] = False
        assert result["b"]["x"] == {"masked": True}

    def test_rules_apply_in_order(self):
        """Test each rule sees the previous rule's output."""
        result = redact(
            {"a": {"b": "secret"}},
            [RedactionRule("a.b", "first"), RedactionRule("a.b", lambda value, path, data: value + "+second")],
        )
        assert result == {"a": {"b": "first+second"}}

    @pytest.mark.parametrize(
        "rules",
        [
            ["request.body.password"],
            ["users.*.email", "request.headers.*"],
            ["**.email", "**.password", "request.**"],
        ],
    )
    def test_idempotent(self, payload, rules):
        """Test applying the same rules twice equals applying them once."""
        once = redact(payload, rules)
        assert redact(once, rules) == once

    @pytest.mark.parametrize("strategy", ["mask", "mask_length", "last_four", "hash"])
    @pytest.mark.parametrize(
        "paths",
        [
            ["request.body.password"],
            ["users.*.email", "request.headers.*"],
            ["**.email", "**.password"],
        ],
    )
    def test_idempotent_with_strategies(self, payload, strategy, paths):
        """Test built-in replacement strategies do not change already redacted values."""
        replace = REPLACEMENT_STRATEGIES[strategy]
        rules = [RedactionRule(path, replace) for path in paths]

        once = redact(payload, rules)

        assert once != payload
        assert redact(once, rules) == once

    def test_hash_not_rehashed(self):
        """Test a hashed value stays the same on a second pass."""
        rules = [RedactionRule("request.body.password", REPLACEMENT_STRATEGIES["hash"])]
        once = redact({"request": {"body": {"password": "secret123"}}}, rules)

        digest = once["request"]["body"]["password"]
        assert digest.startswith("sha256:")
        assert redact(once, rules)["request"]["body"]["password"] == digest
