# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from server.origin import is_allowed_origin


BASE = "https://fleet.example.com"


@pytest.mark.parametrize(
    "origin",
    [
        "",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://[::1]:8080",
        "https://fleet.example.com",
        "http://fleet.example.com",
    ],
)
def test_allowed(origin: str):
    assert is_allowed_origin(origin, BASE)


def test_extra_origins_require_scheme_match():
    extras = ("https://ops.example.com",)

    assert is_allowed_origin("https://ops.example.com", BASE, extras)
    assert not is_allowed_origin("http://ops.example.com", BASE, extras)


@pytest.mark.parametrize("origin", ["https://evil.example.com", "null", "not a url"])
def test_rejected(origin: str):
    assert not is_allowed_origin(origin, BASE)
