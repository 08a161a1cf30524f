"""Unit tests for endpoint parsing and origin grouping."""

from __future__ import annotations

import logging

import pytest

from fastmirror.models import ProbeResult, ProbeStatus, Technique
from fastmirror.registry import (
    broadcast,
    derive_origin,
    group_by_origin,
    parse_endpoint,
    parse_endpoints,
    parse_url_list,
    representatives,
)


class TestParseEndpoint:
    def test_url_with_display_name(self) -> None:
        endpoint = parse_endpoint("https://fastly.example.com/blog#Fastly CDN", 3)
        assert endpoint.url == "https://fastly.example.com/blog"
        assert endpoint.display_name == "Fastly CDN"
        assert endpoint.origin == "https://fastly.example.com"
        assert endpoint.sequence_index == 3

    def test_name_defaults_to_host(self) -> None:
        endpoint = parse_endpoint("https://mirror.example.org/path", 0)
        assert endpoint.display_name == "mirror.example.org"

    def test_percent_encoded_name_is_decoded(self) -> None:
        endpoint = parse_endpoint("https://a.example.com#Backup%20One", 0)
        assert endpoint.display_name == "Backup One"

    @pytest.mark.parametrize("raw", ["", "   ", "#Name only", "ftp://files.example.com", "https://", "not a url"])
    def test_rejects_malformed_entries(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_endpoint(raw, 0)

    def test_rejects_bad_port(self) -> None:
        with pytest.raises(ValueError):
            parse_endpoint("https://example.com:99999/", 0)


class TestDeriveOrigin:
    def test_default_ports_are_elided(self) -> None:
        assert derive_origin("https://Example.com:443/a") == "https://example.com"
        assert derive_origin("http://example.com:80/a") == "http://example.com"

    def test_custom_port_kept(self) -> None:
        assert derive_origin("https://example.com:8443/a") == "https://example.com:8443"

    def test_ipv6_host_bracketed(self) -> None:
        assert derive_origin("http://[::1]:8080/") == "http://[::1]:8080"

    def test_paths_share_origin(self) -> None:
        assert derive_origin("https://cdn.example.com/a") == derive_origin("https://cdn.example.com/b?x=1")


class TestParseEndpoints:
    def test_drops_malformed_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="fastmirror.registry"):
            endpoints = parse_endpoints([
                "https://a.example.com#A",
                "gopher://old.example.com",
                "https://b.example.com#B",
            ])
        assert [e.display_name for e in endpoints] == ["A", "B"]
        assert [e.sequence_index for e in endpoints] == [0, 1]
        assert "gopher://old.example.com" in caplog.text

    def test_empty_input(self) -> None:
        assert parse_endpoints([]) == []


class TestParseUrlList:
    def test_mixed_separators(self) -> None:
        text = "https://a.example.com#A\n\"https://b.example.com#B\"\t'https://c.example.com'|https://d.example.com"
        assert parse_url_list(text) == [
            "https://a.example.com#A",
            "https://b.example.com#B",
            "https://c.example.com",
            "https://d.example.com",
        ]

    def test_collapses_commas(self) -> None:
        assert parse_url_list(",,https://a.example.com,,,https://b.example.com,") == [
            "https://a.example.com",
            "https://b.example.com",
        ]

    @pytest.mark.parametrize("text", [None, "", ",,,", "\n\t"])
    def test_empty(self, text: str | None) -> None:
        assert parse_url_list(text) == []


class TestGrouping:
    def test_groups_preserve_order(self) -> None:
        endpoints = parse_endpoints([
            "https://a.example.com/one#A1",
            "https://b.example.com#B",
            "https://a.example.com/two#A2",
        ])
        groups = group_by_origin(endpoints)
        assert list(groups) == ["https://a.example.com", "https://b.example.com"]
        assert [e.display_name for e in groups["https://a.example.com"]] == ["A1", "A2"]
        assert [e.display_name for e in representatives(groups)] == ["A1", "B"]

    def test_broadcast_copies_reading(self) -> None:
        a1, _, a2 = parse_endpoints([
            "https://a.example.com/one#A1",
            "https://b.example.com#B",
            "https://a.example.com/two#A2",
        ])
        result = ProbeResult(endpoint=a1, status=ProbeStatus.SUCCESS, technique=Technique.IMAGE_LOAD, latency_ms=42)
        copies = broadcast(result, [a1, a2])
        assert copies[0] is result
        assert copies[1].endpoint == a2
        assert copies[1].latency_ms == 42
        assert copies[1].technique is Technique.IMAGE_LOAD
