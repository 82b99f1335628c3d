"""Tests for user-input validation rules."""

from __future__ import annotations

import pytest

from kubelens.validation import (
    MAX_CLUSTER_NAME_LEN,
    MAX_CONTEXT_NAME_LEN,
    MAX_DESCRIPTION_LEN,
    MAX_TAG_LEN,
    MAX_TAGS_COUNT,
    InputValidationError,
    validate_cluster_name,
    validate_context_name,
    validate_description,
    validate_tags,
)

# --- Names ---


class TestClusterName:
    def test_trims_whitespace(self):
        assert validate_cluster_name("  prod east  ") == "prod east"

    def test_allows_punctuation_set(self):
        name = "gke_proj/us-east1:prod (main) [a]+b@c"
        assert validate_cluster_name(name) == name

    def test_empty_rejected(self):
        with pytest.raises(InputValidationError, match="Cluster name cannot be empty"):
            validate_cluster_name("   ")

    def test_length_counted_after_trim(self):
        name = "a" * MAX_CLUSTER_NAME_LEN
        assert validate_cluster_name(f"  {name}  ") == name

    def test_too_long_rejected(self):
        with pytest.raises(InputValidationError, match="100 characters or fewer"):
            validate_cluster_name("a" * (MAX_CLUSTER_NAME_LEN + 1))

    @pytest.mark.parametrize("bad", ["prod;drop", "a\nb", "tab\there", "café", "x#y"])
    def test_invalid_characters(self, bad: str):
        with pytest.raises(InputValidationError, match="invalid characters"):
            validate_cluster_name(bad)

    def test_is_a_value_error(self):
        assert issubclass(InputValidationError, ValueError)


class TestContextName:
    def test_allows_long_context_names(self):
        name = "c" * MAX_CONTEXT_NAME_LEN
        assert validate_context_name(name) == name

    def test_too_long_rejected(self):
        with pytest.raises(InputValidationError, match="Context name must be 253"):
            validate_context_name("c" * (MAX_CONTEXT_NAME_LEN + 1))

    def test_eks_arn_style(self):
        arn = "arn:aws:eks:us-east-1:123456789012:cluster/prod"
        assert validate_context_name(arn) == arn

    def test_empty_rejected(self):
        with pytest.raises(InputValidationError, match="Context name cannot be empty"):
            validate_context_name("")


# --- Description ---


class TestDescription:
    def test_none_passes_through(self):
        assert validate_description(None) is None

    def test_blank_becomes_none(self):
        assert validate_description("   \n ") is None

    def test_trims(self):
        assert validate_description("  hello  ") == "hello"

    def test_allows_newlines_and_tabs(self):
        assert validate_description("line one\n\tline two") == "line one\n\tline two"

    def test_rejects_bell_character(self):
        with pytest.raises(InputValidationError, match="invalid control characters"):
            validate_description("bad\u0007")

    def test_rejects_escape_character(self):
        with pytest.raises(InputValidationError, match="invalid control characters"):
            validate_description("\x1b[31mred")

    def test_too_long_rejected(self):
        with pytest.raises(InputValidationError, match="1000 characters"):
            validate_description("d" * (MAX_DESCRIPTION_LEN + 1))

    def test_unicode_text_allowed(self):
        assert validate_description("Zürich cluster ✓") == "Zürich cluster ✓"


# --- Tags ---


class TestTags:
    def test_trims_and_preserves_order(self):
        assert validate_tags([" prod ", "eu-west", "team/a"]) == ["prod", "eu-west", "team/a"]

    def test_empty_list(self):
        assert validate_tags([]) == []

    def test_too_many(self):
        with pytest.raises(InputValidationError, match="At most 20 tags"):
            validate_tags([f"t{i}" for i in range(MAX_TAGS_COUNT + 1)])

    def test_max_count_allowed(self):
        assert len(validate_tags([f"t{i}" for i in range(MAX_TAGS_COUNT)])) == MAX_TAGS_COUNT

    def test_empty_tag(self):
        with pytest.raises(InputValidationError, match="Tags cannot be empty"):
            validate_tags(["ok", "  "])

    def test_tag_too_long(self):
        with pytest.raises(InputValidationError, match="exceeds 32 characters"):
            validate_tags(["t" * (MAX_TAG_LEN + 1)])

    def test_space_not_allowed_in_tag(self):
        with pytest.raises(InputValidationError, match="invalid characters"):
            validate_tags(["two words"])

    def test_duplicate_after_trim(self):
        with pytest.raises(InputValidationError, match="Duplicate tag 'prod'"):
            validate_tags(["prod", " prod"])

    def test_duplicates_are_case_sensitive(self):
        assert validate_tags(["Prod", "prod"]) == ["Prod", "prod"]

    def test_accepts_generator(self):
        assert validate_tags(t for t in ["a", "b"]) == ["a", "b"]
