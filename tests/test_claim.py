import time

import pytest

from cnabkit.bundle import Bundle
from cnabkit.claim import (
    ACTION_INSTALL,
    STATUS_SUCCESS,
    Claim,
    InvalidClaimNameError,
    new_claim,
    new_revision,
)

CROCKFORD = set("0123456789ABCDEFGHJKMNPQRSTVWXYZ")


def test_new():
    claim = new_claim("my_claim")
    assert claim.name == "my_claim"
    assert claim.result.status == "unknown"
    assert claim.result.action == "unknown"
    assert claim.created == claim.modified
    assert len(claim.revision) == 26


def test_update():
    claim = new_claim("claim")
    old_mod = claim.modified
    old_rev = claim.revision
    time.sleep(0.001)
    claim.update(ACTION_INSTALL, STATUS_SUCCESS)
    assert claim.modified != old_mod
    assert claim.revision != old_rev
    assert claim.result.action == "install"
    assert claim.result.status == "success"


@pytest.mark.parametrize("name", ["M4cb3th", "3_Witches", "King-Duncan", "hecate"])
def test_valid_name_accepted(name):
    assert new_claim(name).name == name


@pytest.mark.parametrize("name", ["Lady MacBeth", "Banquø", "someone@example.com"])
def test_invalid_name_rejected_by_pattern(name):
    with pytest.raises(InvalidClaimNameError, match="invalid name"):
        new_claim(name)


def test_invalid_name_rejected():
    with pytest.raises(InvalidClaimNameError, match="invalid name"):
        new_claim("Lady MacBeth")


def test_trailing_newline_rejected():
    with pytest.raises(InvalidClaimNameError):
        new_claim("hecate\n")


def test_revisions_differ():
    first = new_revision()
    second = new_revision()
    assert len(first) == 26
    assert set(first) <= CROCKFORD
    assert first != second


def test_round_trip():
    claim = new_claim("foo")
    claim.bundle = Bundle(name="foobundle", version="0.1.2")
    claim.parameters = {"port": 8080}
    claim.files = {"/a": "b"}
    claim.update(ACTION_INSTALL, STATUS_SUCCESS)
    restored = Claim.from_dict(claim.to_dict())
    assert restored == claim
    assert restored.bundle.name == "foobundle"


def test_from_dict_nanosecond_time():
    claim = Claim.from_dict(
        {"name": "x", "created": "2019-01-02T03:04:05.123456789Z", "bundle": None}
    )
    assert claim.created.microsecond == 123456
    assert claim.created.year == 2019
    assert claim.bundle is None