"""Credential sets: where credentials come from and how they reach the bundle."""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import Mapping

import yaml

from .bundle import Bundle, Location

_ENV_REF = re.compile(r"\$(?:\{([^}]*)\}|([A-Za-z0-9_]+))")


class CredentialError(Exception):
    """Raised when credentials are missing or cannot be resolved."""


def _expand_env(text: str) -> str:
    return _ENV_REF.sub(lambda m: os.environ.get(m.group(1) or m.group(2) or "", ""), text)


def expand(creds: Mapping[str, str], bundle: Bundle) -> tuple[dict[str, str], dict[str, str]]:
    """Map resolved credentials onto the bundle's env vars and file paths."""
    env: dict[str, str] = {}
    files: dict[str, str] = {}
    for name, location in bundle.credentials.items():
        if name not in creds:
            raise CredentialError(
                f'credential "{name}" is missing from the user-supplied credentials'
            )
        value = creds[name]
        if location.environment_variable:
            env[location.environment_variable] = value
        if location.path:
            files[location.path] = value
    return env, files


def validate(given: Mapping[str, str], spec: Mapping[str, Location]) -> None:
    """Raise CredentialError if a credential the spec requires is not given."""
    for name in spec:
        if name not in given:
            raise CredentialError(f"bundle requires credential for {name}")


@dataclass
class Source:
    """A strategy for loading a credential on the local host."""

    path: str = ""
    command: str = ""
    value: str = ""
    env: str = ""

    @classmethod
    def _from_dict(cls, data: dict) -> Source:
        return cls(
            path=data.get("path") or "",
            command=data.get("command") or "",
            value=data.get("value") or "",
            env=data.get("env") or "",
        )


@dataclass
class Destination:
    """A strategy for injecting a credential into an image."""

    value: str = ""


@dataclass
class CredentialStrategy:
    """A credential's source, matched to a bundle credential by name."""

    name: str = ""
    source: Source = field(default_factory=Source)
    value: str = ""

    def _resolve(self) -> str:
        src = self.source
        if src.command:
            return _run_command(self.name, src.command)
        if src.path:
            try:
                with open(_expand_env(src.path), encoding="utf-8") as handle:
                    return handle.read()
            except OSError as err:
                raise CredentialError(f'credential "{self.name}": {err}') from err
        if src.env and src.env in os.environ:
            return os.environ[src.env]
        return src.value


def _run_command(name: str, command: str) -> str:
    parts = command.split(" ")
    try:
        completed = subprocess.run(parts, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
    except OSError as err:
        raise CredentialError(f'credential "{name}": {err}') from err
    if completed.returncode != 0:
        raise CredentialError(
            f'credential "{name}": command exited with status {completed.returncode}'
        )
    return completed.stdout.decode("utf-8", errors="replace")


@dataclass
class CredentialSet:
    """A named collection of credential strategies."""

    name: str = ""
    credentials: list[CredentialStrategy] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict | None) -> CredentialSet:
        """Build a credential set from its YAML/JSON mapping form."""
        data = data or {}
        return cls(
            name=data.get("name") or "",
            credentials=[
                CredentialStrategy(
                    name=item.get("name") or "",
                    source=Source._from_dict(item.get("source") or {}),
                )
                for item in data.get("credentials") or []
            ],
        )

    def resolve(self) -> dict[str, str]:
        """Look up every credential; precedence is command, path, env var, value."""
        return {cred.name: cred._resolve() for cred in self.credentials}


def load(path: str | os.PathLike) -> CredentialSet:
    """Load a credential set from a YAML file without resolving the credentials."""
    with open(path, encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    return CredentialSet.from_dict(data)