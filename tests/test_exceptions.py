"""
Tests for secretPhrase scrubbing and the explorer error hierarchy.
"""

from __future__ import annotations

import random
import string

import pytest

from signum_explorer.core.exceptions import (
    SECRET_MARKER,
    SECRET_TERMINATORS,
    AllUpstreamsFailedError,
    DomainError,
    HttpStatusError,
    SignumExplorerError,
    TransportError,
    scrub_secret,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("", ""),
        ("no secrets here", "no secrets here"),
        (
            "POST https://h1/burst?requestType=sendMoney&secretPhrase=alpha beta&feeNQT=1",
            "POST https://h1/burst?requestType=sendMoney&secretPhrase= beta&feeNQT=1",
        ),
        ("url?secretPhrase=hunter2&deadline=1440", "url?secretPhrase=&deadline=1440"),
        ('{"secretPhrase=abc"}', '{"secretPhrase="}'),
        ("secretPhrase=abc'rest", "secretPhrase='rest"),
        ("secretPhrase=at-start&x=1", "secretPhrase=&x=1"),
        ("tail secretPhrase=nothing-after", "tail "),
        ("a secretPhrase=one&b secretPhrase=two&c", "a secretPhrase=&b secretPhrase=&c"),
    ],
)
def test_scrub_secret(text, expected):
    assert scrub_secret(text) == expected


def _marker_followed_by_terminator(text: str) -> bool:
    pos = text.find(SECRET_MARKER)
    while pos >= 0:
        after = pos + len(SECRET_MARKER)
        if after >= len(text) or text[after] not in SECRET_TERMINATORS:
            return False
        pos = text.find(SECRET_MARKER, after)
    return True


def test_scrub_secret_no_payload_survives_random_inputs():
    """Every remaining marker is immediately followed by a terminator."""
    rng = random.Random(1234)
    alphabet = string.ascii_letters + string.digits + "&\"' =?"
    for _ in range(500):
        pieces = []
        for _ in range(rng.randint(1, 5)):
            pieces.append("".join(rng.choice(alphabet) for _ in range(rng.randint(0, 12))))
            if rng.random() < 0.6:
                pieces.append(SECRET_MARKER)
        text = "".join(pieces)
        assert _marker_followed_by_terminator(scrub_secret(text)), text


def test_error_messages_are_scrubbed():
    err = TransportError("GET https://h1/burst?secretPhrase=my words&x=1 failed", kind="timeout")
    assert "my" not in str(err)
    assert err.kind == "timeout"
    wrapped = AllUpstreamsFailedError("sendMoney", err)
    assert "secretPhrase=my" not in str(wrapped)
    assert str(wrapped).startswith("couldn't get sendMoney method:")
    assert wrapped.last_error is err


def test_domain_and_status_errors_carry_details():
    domain = DomainError(6, "Not enough funds", host="https://h1", request_type="sendMoney")
    assert domain.code == 6
    assert domain.description == "Not enough funds"
    assert domain.host == "https://h1"
    assert str(domain) == "error 6: Not enough funds"

    status = HttpStatusError(503)
    assert status.status_code == 503
    assert str(status) == "StatusCode 503"
    assert isinstance(status, SignumExplorerError)
