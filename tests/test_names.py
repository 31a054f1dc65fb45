"""Tests for devrp.names - subdomain validation and canonical keys."""

import pytest

from devrp.names import canonicalize, validate_identifier


class TestValidateIdentifier:
    @pytest.mark.parametrize("ident", [
        "myapp",
        "a",
        "my-app",
        "App01",
        "prod.api.service",
        "x" * 63,
        "1-2-3",
    ])
    def test_accepts_valid(self, ident):
        assert validate_identifier(ident)

    @pytest.mark.parametrize("ident", [
        "",
        "bad_id!",
        "under_score",
        "-leading",
        "trailing-",
        "a..b",
        ".leading",
        "trailing.",
        "x" * 64,
        "spa ce",
        "ünïcode",
        "new\nline",
        "ok\n",
    ])
    def test_rejects_invalid(self, ident):
        assert not validate_identifier(ident)

    def test_total_length_limit(self):
        label = "a" * 63
        ident = ".".join([label] * 23)  # 23 * 64 - 1 = 1471
        assert len(ident) <= 1500
        assert validate_identifier(ident)

        too_long = ".".join([label] * 24)  # 1535
        assert not validate_identifier(too_long)

    def test_rejects_non_strings(self):
        assert not validate_identifier(None)
        assert not validate_identifier(42)


class TestCanonicalize:
    def test_replaces_dots(self):
        assert canonicalize("prod.api.service") == "prod_api_service"

    def test_single_label_unchanged(self):
        assert canonicalize("myapp") == "myapp"

    def test_deterministic(self):
        assert canonicalize("a.b") == canonicalize("a.b")
