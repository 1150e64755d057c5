"""Replace values in JSON and YAML documents addressed by dotted selectors."""

from __future__ import annotations

import abc
import json
from dataclasses import dataclass
from typing import Any

import yaml


class SelectorNotFoundError(LookupError):
    """Raised when the document has no field matching the selector."""

    def __init__(self, message: str = "Selector not found") -> None:
        super().__init__(message)


class Replacer(abc.ABC):
    """Replaces the values of fields matched by a selector."""

    @abc.abstractmethod
    def replace(self, source: str, selector: str, value: str) -> str:
        """Return source with the field at selector set to value."""


def parse_selector(selector: str) -> list[str]:
    """Split a dotted selector into its path components."""
    return selector.split(".")


def replace_in(document: dict, selector_path: list[str], value: Any) -> None:
    """Set the field at selector_path inside document to value, in place."""
    if not selector_path:
        raise SelectorNotFoundError()
    key, *rest = selector_path
    if key not in document:
        raise SelectorNotFoundError()
    if not rest:
        document[key] = value
        return
    entry = document[key]
    if not isinstance(entry, dict):
        raise SelectorNotFoundError()
    replace_in(entry, rest, value)


@dataclass(frozen=True)
class JSONReplacer(Replacer):
    """A replacer for JSON documents; output keys are sorted."""

    indent: str = ""

    def replace(self, source: str, selector: str, value: str) -> str:
        document = json.loads(source)
        if not isinstance(document, dict):
            raise ValueError("JSON document must be an object")
        replace_in(document, parse_selector(selector), value)
        return json.dumps(document, indent=self.indent, sort_keys=True, ensure_ascii=False)


@dataclass(frozen=True)
class YAMLReplacer(Replacer):
    """A replacer for YAML documents; output keys are sorted."""

    def replace(self, source: str, selector: str, value: str) -> str:
        document = yaml.safe_load(source)
        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ValueError("YAML document must be a mapping")
        replace_in(document, parse_selector(selector), value)
        return yaml.safe_dump(
            document, default_flow_style=False, sort_keys=True, allow_unicode=True
        )


def new_json_replacer(indent: str) -> JSONReplacer:
    """Create a replacer for JSON documents using the given indent."""
    return JSONReplacer(indent=indent)


def new_yaml_replacer() -> YAMLReplacer:
    """Create a replacer for YAML documents."""
    return YAMLReplacer()