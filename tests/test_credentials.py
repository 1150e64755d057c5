import sys

import pytest
import yaml

from cnabkit.bundle import Bundle, Location
from cnabkit.credentials import (
    CredentialError,
    CredentialSet,
    Source,
    CredentialStrategy,
    expand,
    load,
    validate,
)


@pytest.fixture
def staging(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_USE_VAR", "kakapu")
    monkeypatch.delenv("TEST_FALLTHROUGH", raising=False)
    secret_file = tmp_path / "serval.txt"
    secret_file.write_text("serval\n")
    document = {
        "name": "staging",
        "credentials": [
            {
                "name": "run_program",
                "source": {"command": f"{sys.executable} -c print('wildebeest')"},
            },
            {"name": "use_var", "source": {"env": "TEST_USE_VAR"}},
            {"name": "read_file", "source": {"path": str(secret_file)}},
            {
                "name": "fallthrough",
                "source": {"env": "TEST_FALLTHROUGH", "value": "quokka"},
            },
            {"name": "plain_value", "source": {"value": "cassowary"}},
        ],
    }
    path = tmp_path / "staging.yaml"
    path.write_text(yaml.safe_dump(document))
    return path


def test_credential_set(staging):
    credset = load(staging)
    assert credset.name == "staging"
    results = credset.resolve()
    assert len(results) == 5
    expected = {
        "run_program": "wildebeest",
        "use_var": "kakapu",
        "read_file": "serval",
        "fallthrough": "quokka",
        "plain_value": "cassowary",
    }
    assert {k: v.strip() for k, v in results.items()} == expected


def test_path_expands_environment(tmp_path, monkeypatch):
    (tmp_path / "cred").write_text("value")
    monkeypatch.setenv("CNAB_TEST_DIR", str(tmp_path))
    cs = CredentialSet(
        credentials=[CredentialStrategy(name="c", source=Source(path="$CNAB_TEST_DIR/cred"))]
    )
    assert cs.resolve() == {"c": "value"}


def test_missing_file_raises(tmp_path):
    cs = CredentialSet(
        credentials=[
            CredentialStrategy(name="read_file", source=Source(path=str(tmp_path / "none")))
        ]
    )
    with pytest.raises(CredentialError, match='credential "read_file"'):
        cs.resolve()


def test_failing_command_raises():
    cs = CredentialSet(
        credentials=[
            CredentialStrategy(
                name="bad", source=Source(command=f"{sys.executable} -c exit(2)")
            )
        ]
    )
    with pytest.raises(CredentialError):
        cs.resolve()


def test_expand():
    b = Bundle(
        name="knapsack",
        credentials={
            "first": Location(environment_variable="FIRST_VAR"),
            "second": Location(path="/second/path"),
            "third": Location(environment_variable="/THIRD_VAR", path="/third/path"),
        },
    )
    cs = {"first": "first", "second": "second", "third": "third"}
    env, files = expand(cs, b)
    assert env == {"FIRST_VAR": "first", "/THIRD_VAR": "third"}
    assert files == {"/second/path": "second", "/third/path": "third"}


def test_expand_missing():
    b = Bundle(credentials={"needed": Location(environment_variable="NEEDED")})
    with pytest.raises(CredentialError, match='"needed" is missing'):
        expand({}, b)


def test_validate():
    spec = {"a": Location(path="/a"), "b": Location(environment_variable="B")}
    validate({"a": "1", "b": "2", "c": "3"}, spec)
    with pytest.raises(CredentialError, match="bundle requires credential for b"):
        validate({"a": "1"}, spec)


def test_from_dict_empty():
    cs = CredentialSet.from_dict(None)
    assert cs.name == ""
    assert cs.resolve() == {}