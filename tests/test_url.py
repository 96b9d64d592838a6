"""Tests for diagnostic path sanitizing."""

import pytest

from resilient_fetch.url import sanitize_path


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://api.example.com/users/1700000000000/orders", "/users/[id]/orders"),
        ("https://api.example.com/a/123456789012", "/a/123456789012"),
        ("https://api.example.com/a/12345678901234567?x=1700000000000", "/a/[id]"),
        ("https://api.example.com/testing", "/testing"),
        ("https://googl.com", "https://googl.com"),
        ("https://googl.com/", "https://googl.com/"),
        ("/relative/1700000000000", "/relative/[id]"),
        ("https://h//a/1700000000000", "//a/[id]"),
        ("//cdn.example.com/x", "//cdn.example.com/x"),
        ("", ""),
    ],
)
def test_sanitize_path(url: str, expected: str) -> None:
    assert sanitize_path(url) == expected


@pytest.mark.parametrize(
    "url",
    [
        "https://api.example.com/users/1700000000000/orders",
        "https://googl.com",
        "https://1700000000000.example.com",
        "/a/99999999999999999999",
        "not a url",
        "https://h//a/bc",
        "//a/bc",
    ],
)
def test_sanitize_path_is_idempotent(url: str) -> None:
    once = sanitize_path(url)
    assert sanitize_path(once) == once
