"""Build manifests: the source description from which a bundle is built."""

from __future__ import annotations

import json
import os
import random
import tomllib
from dataclasses import dataclass, field
from typing import Any

import yaml

from .bundle import Action, Bundle, Image, Location, Maintainer, ParameterDefinition

DUFFLE_FILENAME = "duffle"
DEFAULT_REGISTRY = "example"

_CONFIG_EXTENSIONS = ("json", "toml", "yaml", "yml")

_KNOWN_FIELDS = (
    "name", "version", "description", "keywords", "maintainers", "invocationImages",
    "images", "actions", "parameters", "credentials", "builder", "configuration",
    "type", "defaultValue", "allowedValues", "required", "minValue", "maxValue",
    "minLength", "maxLength", "metadata", "destination", "path", "env", "email", "url",
    "imageType", "image", "digest", "size", "platform", "mediaType", "refs", "field",
    "Modifies",
)
_FIELDS = {name.lower(): name for name in _KNOWN_FIELDS}

_ADJECTIVES = (
    "amber", "brave", "calm", "dusty", "eager", "fuzzy", "gentle", "hasty", "icy",
    "jolly", "keen", "lively", "mellow", "nimble", "quiet", "rusty", "sunny", "tidy",
)
_ANIMALS = (
    "badger", "cougar", "dingo", "egret", "ferret", "gecko", "heron", "ibis", "jackal",
    "koala", "lemur", "marmot", "newt", "otter", "puffin", "quail", "raven", "stoat",
)

_RUN_CONTENT = """#!/bin/bash
action=$CNAB_ACTION

if [[ action == "install" ]]; then
echo "hey I am installing things over here"
elif [[ action == "uninstall" ]]; then
echo "hey I am uninstalling things now"
fi
"""

_DOCKERFILE_CONTENT = """FROM alpine:latest

RUN apk add -u bash

COPY Dockerfile /cnab/Dockerfile
COPY app /cnab/app

CMD ["/cnab/app/run"]
"""


class ManifestError(Exception):
    """Raised when a manifest cannot be found or read."""


def _fold(data: Any) -> dict:
    """Match known field names without regard to case, as config files may lowercase them."""
    if not isinstance(data, dict):
        return {}
    return {_FIELDS.get(str(key).lower(), key): value for key, value in data.items()}


def _fold_image(data: Any) -> dict:
    folded = _fold(data)
    folded["refs"] = [_fold(ref) for ref in folded.get("refs") or []]
    return folded


def _fold_parameter(data: Any) -> dict:
    folded = _fold(data)
    for key in ("metadata", "destination"):
        if isinstance(folded.get(key), dict):
            folded[key] = _fold(folded[key])
    return folded


@dataclass
class InvocationImage:
    """An invocation image component of a bundle, and how to build it."""

    name: str = ""
    builder: str = ""
    configuration: dict[str, str] = field(default_factory=dict)

    @classmethod
    def _from_dict(cls, data: Any) -> InvocationImage:
        folded = _fold(data)
        configuration = folded.get("configuration") or {}
        return cls(
            name=str(folded.get("name") or ""),
            builder=str(folded.get("builder") or ""),
            configuration={str(k): str(v) for k, v in configuration.items()},
        )

    def _to_dict(self) -> dict:
        return {
            "name": self.name,
            "builder": self.builder,
            "configuration": dict(self.configuration),
        }


@dataclass
class Manifest:
    """A build manifest."""

    name: str = ""
    version: str = ""
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    maintainers: list[Maintainer] = field(default_factory=list)
    invocation_images: dict[str, InvocationImage] = field(default_factory=dict)
    images: list[Image] = field(default_factory=list)
    actions: dict[str, Action] = field(default_factory=dict)
    parameters: dict[str, ParameterDefinition] = field(default_factory=dict)
    credentials: dict[str, Location] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> Manifest:
        """Build a manifest from its mapping form; field names match case-insensitively."""
        data = _fold(data)
        typed = Bundle.from_dict(
            {
                "maintainers": [_fold(m) for m in data.get("maintainers") or []],
                "images": [_fold_image(i) for i in data.get("images") or []],
                "actions": {k: _fold(v) for k, v in (data.get("actions") or {}).items()},
                "parameters": {
                    k: _fold_parameter(v) for k, v in (data.get("parameters") or {}).items()
                },
                "credentials": {
                    k: _fold(v) for k, v in (data.get("credentials") or {}).items()
                },
            }
        )
        return cls(
            name=str(data.get("name") or ""),
            version=str(data.get("version") or ""),
            description=str(data.get("description") or ""),
            keywords=[str(k) for k in data.get("keywords") or []],
            maintainers=typed.maintainers,
            invocation_images={
                str(k): InvocationImage._from_dict(v)
                for k, v in (data.get("invocationImages") or {}).items()
            },
            images=typed.images,
            actions=typed.actions,
            parameters=typed.parameters,
            credentials=typed.credentials,
        )

    def to_dict(self) -> dict:
        """Return the JSON object form of the manifest."""
        typed = Bundle(
            maintainers=self.maintainers,
            images=self.images,
            actions=self.actions,
            parameters=self.parameters,
            credentials=self.credentials,
        ).to_dict()
        out: dict[str, Any] = {"name": self.name, "version": self.version}
        if self.description:
            out["description"] = self.description
        if self.keywords:
            out["keywords"] = list(self.keywords)
        if self.maintainers:
            out["maintainers"] = typed["maintainers"]
        if self.invocation_images:
            out["invocationImages"] = {
                k: self.invocation_images[k]._to_dict() for k in sorted(self.invocation_images)
            }
        if self.images:
            out["images"] = typed["images"]
        if self.actions:
            out["actions"] = typed["actions"]
        if self.parameters:
            out["parameters"] = typed["parameters"]
        if self.credentials:
            out["credentials"] = typed["credentials"]
        return out


def _random_name() -> str:
    return f"{random.choice(_ADJECTIVES)}-{random.choice(_ANIMALS)}"


def generate_name() -> str:
    """Name after the current working directory, or make up a random name."""
    try:
        cwd = os.getcwd()
    except OSError:
        return _random_name()
    return os.path.basename(cwd.rstrip(os.sep)) or os.sep


def new_manifest() -> Manifest:
    """Create an empty manifest named after the current directory."""
    return Manifest(name=generate_name())


def _find_config(name: str, directory: str) -> str:
    if name:
        return os.path.join(directory, name)
    for ext in _CONFIG_EXTENSIONS:
        candidate = os.path.join(directory, f"{DUFFLE_FILENAME}.{ext}")
        if os.path.isfile(candidate):
            return candidate
    raise ManifestError(
        f'Config File "{DUFFLE_FILENAME}" Not Found in "[{os.path.abspath(directory)}]"'
    )


def _read_config(path: str) -> Any:
    ext = os.path.splitext(path)[1].lstrip(".").lower()
    if ext not in _CONFIG_EXTENSIONS:
        raise ManifestError(f'Unsupported Config Type "{ext}"')
    if ext == "toml":
        with open(path, "rb") as handle:
            return tomllib.load(handle)
    with open(path, encoding="utf-8") as handle:
        if ext == "json":
            return json.load(handle)
        return yaml.safe_load(handle)


def load(name: str, directory: str | os.PathLike) -> Manifest:
    """Read a manifest from directory; an empty name searches for duffle.<ext>."""
    directory = os.fspath(directory)
    try:
        data = _read_config(_find_config(name, directory))
    except (OSError, ValueError, yaml.YAMLError, ManifestError) as err:
        raise ManifestError(f"Error finding duffle config file: {err}") from err
    folded = _fold(data)
    if "name" not in folded:
        folded["name"] = generate_name()
    return Manifest.from_dict(folded)


def _write(path: str, content: str, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(content)


def scaffold(path: str | os.PathLike) -> None:
    """Write a minimal manifest (duffle.json) in path and scaffold its components."""
    path = os.fspath(path)
    name = os.path.basename(os.path.normpath(path))
    manifest = Manifest(
        name=name,
        version="0.1.0",
        description="A short description of your bundle",
        keywords=[name, "cnab", "tutorial"],
        maintainers=[
            Maintainer(name="John Doe", email="john.doe@example.com", url="https://example.com"),
            Maintainer(name="Jane Doe", email="jane.doe@example.com", url="https://example.com"),
        ],
        invocation_images={
            "cnab": InvocationImage(
                name="cnab", builder="docker", configuration={"registry": DEFAULT_REGISTRY}
            )
        },
    )
    _write(
        os.path.join(path, "duffle.json"),
        json.dumps(manifest.to_dict(), indent=4, ensure_ascii=False),
        0o644,
    )
    cnab_path = os.path.join(path, "cnab")
    os.mkdir(cnab_path, 0o755)
    _write(os.path.join(cnab_path, "Dockerfile"), _DOCKERFILE_CONTENT, 0o644)
    app_path = os.path.join(cnab_path, "app")
    os.mkdir(app_path, 0o755)
    _write(os.path.join(app_path, "run"), _RUN_CONTENT, 0o777)