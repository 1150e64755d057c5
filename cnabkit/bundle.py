"""CNAB bundle metadata documents and parameter definitions."""

from __future__ import annotations

import io
import json
import math
import os
import re
from dataclasses import dataclass, field
from typing import IO, Any

_INT_PATTERN = re.compile(r"[+-]?[0-9]+", re.ASCII)


class BundleError(Exception):
    """Raised when a bundle document is malformed or invalid."""


class ParameterValueError(BundleError, ValueError):
    """Raised when a parameter value does not satisfy its definition."""


def _get(data: dict, key: str, default: Any) -> Any:
    value = data.get(key)
    return default if value is None else value


def _opt_int(data: dict, key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise BundleError(f"{key} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise BundleError(f"{key} must be an integer, got {value!r}")


def _as_int(value: float) -> int | None:
    if not math.isfinite(value):
        return None
    as_int = int(value)
    return as_int if as_int == value else None


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    return str(value)


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


@dataclass
class LocationRef:
    """A location within the invocation package."""

    path: str = ""
    field: str = ""

    @classmethod
    def _from_dict(cls, data: dict) -> LocationRef:
        return cls(path=_get(data, "path", ""), field=_get(data, "field", ""))

    def _to_dict(self) -> dict:
        return {"path": self.path, "field": self.field}


@dataclass
class BaseImage:
    """Fields shared by every kind of image."""

    image_type: str = ""
    image: str = ""
    digest: str = ""
    size: int = 0
    platform: str = ""
    media_type: str = ""

    @staticmethod
    def _base_kwargs(data: dict) -> dict:
        return {
            "image_type": _get(data, "imageType", ""),
            "image": _get(data, "image", ""),
            "digest": _get(data, "digest", ""),
            "size": _get(data, "size", 0),
            "platform": _get(data, "platform", ""),
            "media_type": _get(data, "mediaType", ""),
        }

    def _base_dict(self) -> dict:
        out: dict[str, Any] = {"imageType": self.image_type, "image": self.image}
        if self.digest:
            out["digest"] = self.digest
        if self.size:
            out["size"] = self.size
        if self.platform:
            out["platform"] = self.platform
        if self.media_type:
            out["mediaType"] = self.media_type
        return out


@dataclass
class ImagePlatform:
    """The platform an image is built for."""

    architecture: str = ""
    os: str = ""


@dataclass
class Image(BaseImage):
    """A container image used by the bundle."""

    description: str = ""
    refs: list[LocationRef] = field(default_factory=list)

    @classmethod
    def _from_dict(cls, data: dict) -> Image:
        return cls(
            **cls._base_kwargs(data),
            description=_get(data, "description", ""),
            refs=[LocationRef._from_dict(r) for r in _get(data, "refs", [])],
        )

    def _to_dict(self) -> dict:
        out = self._base_dict()
        out["description"] = self.description
        out["refs"] = [r._to_dict() for r in self.refs]
        return out


@dataclass
class InvocationImage(BaseImage):
    """The image that performs the bundle's actions."""

    @classmethod
    def _from_dict(cls, data: dict) -> InvocationImage:
        return cls(**cls._base_kwargs(data))

    def _to_dict(self) -> dict:
        return self._base_dict()

    def validate(self) -> None:
        """Raise BundleError if a docker or OCI image reference lacks a tag."""
        if self.image_type in ("docker", "oci") and ":" not in self.image:
            raise BundleError("tag is required")


@dataclass
class Location:
    """Where a value is written in the invocation image: a file, an env var, or both."""

    path: str = ""
    environment_variable: str = ""

    @classmethod
    def _from_dict(cls, data: dict) -> Location:
        return cls(path=_get(data, "path", ""), environment_variable=_get(data, "env", ""))

    def _to_dict(self) -> dict:
        return {"path": self.path, "env": self.environment_variable}


@dataclass
class Maintainer:
    """A maintainer of a bundle."""

    name: str = ""
    email: str = ""
    url: str = ""

    @classmethod
    def _from_dict(cls, data: dict) -> Maintainer:
        return cls(
            name=_get(data, "name", ""),
            email=_get(data, "email", ""),
            url=_get(data, "url", ""),
        )

    def _to_dict(self) -> dict:
        return {"name": self.name, "email": self.email, "url": self.url}


@dataclass
class Action:
    """A custom (non-core) action."""

    modifies: bool = False

    @classmethod
    def _from_dict(cls, data: dict) -> Action:
        value = data.get("Modifies", data.get("modifies"))
        return cls(modifies=bool(value))

    def _to_dict(self) -> dict:
        return {"Modifies": self.modifies}


@dataclass
class ParameterMetadata:
    """Descriptive metadata for a parameter."""

    description: str = ""

    @classmethod
    def _from_dict(cls, data: dict) -> ParameterMetadata:
        return cls(description=_get(data, "description", ""))

    def _to_dict(self) -> dict:
        return {"description": self.description} if self.description else {}


@dataclass
class ParameterDefinition:
    """The definition of a single bundle parameter."""

    data_type: str = ""
    default_value: Any = None
    allowed_values: list[Any] = field(default_factory=list)
    required: bool = False
    min_value: int | None = None
    max_value: int | None = None
    min_length: int | None = None
    max_length: int | None = None
    metadata: ParameterMetadata = field(default_factory=ParameterMetadata)
    destination: Location | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ParameterDefinition:
        """Build a definition from its JSON object form."""
        destination = data.get("destination")
        return cls(
            data_type=_get(data, "type", ""),
            default_value=data.get("defaultValue"),
            allowed_values=list(_get(data, "allowedValues", [])),
            required=bool(_get(data, "required", False)),
            min_value=_opt_int(data, "minValue"),
            max_value=_opt_int(data, "maxValue"),
            min_length=_opt_int(data, "minLength"),
            max_length=_opt_int(data, "maxLength"),
            metadata=ParameterMetadata._from_dict(_get(data, "metadata", {})),
            destination=Location._from_dict(destination) if destination is not None else None,
        )

    def to_dict(self) -> dict:
        """Return the JSON object form of the definition."""
        out: dict[str, Any] = {"type": self.data_type}
        if self.default_value is not None:
            out["defaultValue"] = self.default_value
        if self.allowed_values:
            out["allowedValues"] = list(self.allowed_values)
        out["required"] = self.required
        for key, value in (
            ("minValue", self.min_value),
            ("maxValue", self.max_value),
            ("minLength", self.min_length),
            ("maxLength", self.max_length),
        ):
            if value is not None:
                out[key] = value
        out["metadata"] = self.metadata._to_dict()
        out["destination"] = self.destination._to_dict() if self.destination else None
        return out

    def validate_parameter_value(self, value: Any) -> None:
        """Raise ParameterValueError unless value is valid for this parameter."""
        self._validate_by_type(value)
        self._validate_allowed_value(value)

    def _validate_by_type(self, value: Any) -> None:
        validators = {
            "string": self._validate_string,
            "int": self._validate_int,
            "bool": self._validate_bool,
        }
        validator = validators.get(self.data_type)
        if validator is None:
            raise ParameterValueError("invalid parameter definition")
        validator(value)

    def _validate_allowed_value(self, value: Any) -> None:
        if not self.allowed_values:
            return
        coerced = self.coerce_value(value)
        if not any(type(v) is type(coerced) and v == coerced for v in self._allowed()):
            raise ParameterValueError("value is not in the set of allowed values for this parameter")

    def _allowed(self) -> list[Any]:
        if self.data_type != "int":
            return list(self.allowed_values)
        return [
            int(v) if isinstance(v, float) and math.isfinite(v) else v
            for v in self.allowed_values
        ]

    def coerce_value(self, value: Any) -> Any:
        """Turn an integral float into an int for int parameters; otherwise return value."""
        if self.data_type == "int" and isinstance(value, float):
            as_int = _as_int(value)
            return value if as_int is None else as_int
        return value

    def convert_value(self, val: str) -> Any:
        """Parse a string into this parameter's data type."""
        if self.data_type == "string":
            return val
        if self.data_type == "int":
            if not _INT_PATTERN.fullmatch(val):
                raise ParameterValueError(f"invalid syntax for an integer: {_quote(val)}")
            return int(val)
        if self.data_type == "bool":
            lowered = val.lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
            raise ParameterValueError(f"{_quote(val)} is not a valid boolean")
        raise ParameterValueError("invalid parameter definition")

    def _validate_string(self, value: Any) -> None:
        if not isinstance(value, str):
            raise ParameterValueError("value is not a string")
        length = len(value.encode("utf-8"))
        if self.min_length is not None and length < self.min_length:
            raise ParameterValueError(f"value is too short: minimum length is {self.min_length}")
        if self.max_length is not None and length > self.max_length:
            raise ParameterValueError(f"value is too long: maximum length is {self.max_length}")

    def _validate_int(self, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ParameterValueError("value is not a number")
        number = value
        if isinstance(value, float):
            number = _as_int(value)
            if number is None:
                raise ParameterValueError("value is not an integer")
        if self.min_value is not None and number < self.min_value:
            raise ParameterValueError(f"value is too low: minimum value is {self.min_value}")
        if self.max_value is not None and number > self.max_value:
            raise ParameterValueError(f"value is too high: maximum value is {self.max_value}")

    @staticmethod
    def _validate_bool(value: Any) -> None:
        if not isinstance(value, bool):
            raise ParameterValueError("value is not a boolean")


@dataclass
class Bundle:
    """A CNAB metadata document."""

    name: str = ""
    version: str = ""
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    maintainers: list[Maintainer] = field(default_factory=list)
    invocation_images: list[InvocationImage] = field(default_factory=list)
    images: list[Image] = field(default_factory=list)
    actions: dict[str, Action] = field(default_factory=dict)
    parameters: dict[str, ParameterDefinition] = field(default_factory=dict)
    credentials: dict[str, Location] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> Bundle:
        """Build a bundle from its JSON object form."""
        if not isinstance(data, dict):
            raise BundleError("bundle document must be a JSON object")
        return cls(
            name=_get(data, "name", ""),
            version=_get(data, "version", ""),
            description=_get(data, "description", ""),
            keywords=list(_get(data, "keywords", [])),
            maintainers=[Maintainer._from_dict(m) for m in _get(data, "maintainers", [])],
            invocation_images=[
                InvocationImage._from_dict(i) for i in _get(data, "invocationImages", [])
            ],
            images=[Image._from_dict(i) for i in _get(data, "images", [])],
            actions={k: Action._from_dict(v or {}) for k, v in _get(data, "actions", {}).items()},
            parameters={
                k: ParameterDefinition.from_dict(v or {})
                for k, v in _get(data, "parameters", {}).items()
            },
            credentials={
                k: Location._from_dict(v or {}) for k, v in _get(data, "credentials", {}).items()
            },
        )

    def to_dict(self) -> dict:
        """Return the JSON object form of the bundle."""
        out: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "description": self.description,
        }
        if self.keywords:
            out["keywords"] = list(self.keywords)
        if self.maintainers:
            out["maintainers"] = [m._to_dict() for m in self.maintainers]
        out["invocationImages"] = [i._to_dict() for i in self.invocation_images]
        out["images"] = [i._to_dict() for i in self.images]
        if self.actions:
            out["actions"] = {k: a._to_dict() for k, a in self.actions.items()}
        out["parameters"] = {k: p.to_dict() for k, p in self.parameters.items()}
        out["credentials"] = {k: c._to_dict() for k, c in self.credentials.items()}
        return out

    def to_json(self) -> str:
        """Serialize the bundle as indented JSON."""
        return json.dumps(self.to_dict(), indent=4, ensure_ascii=False)

    def write_file(self, dest: str | os.PathLike, mode: int = 0o644) -> None:
        """Write the bundle as JSON to dest, creating it with the given mode."""
        data = self.to_json().encode("utf-8")
        fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)

    def write_to(self, writer: IO) -> int:
        """Write the bundle as JSON to a stream and return the number of bytes written."""
        text = self.to_json()
        encoded = text.encode("utf-8")
        if isinstance(writer, io.TextIOBase):
            writer.write(text)
        else:
            writer.write(encoded)
        return len(encoded)

    def validate(self) -> None:
        """Raise BundleError if the bundle contents are invalid."""
        if not self.invocation_images:
            raise BundleError("at least one invocation image must be defined in the bundle")
        for image in self.invocation_images:
            image.validate()


def unmarshal(data: bytes | str) -> Bundle:
    """Parse an unsigned bundle from JSON data."""
    try:
        document = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise BundleError(str(err)) from err
    if document is None:
        return Bundle()
    return Bundle.from_dict(document)


def parse_reader(reader: IO) -> Bundle:
    """Read the first JSON document from a stream and parse it as a bundle."""
    content = reader.read()
    if isinstance(content, bytes):
        content = content.decode("utf-8")
    try:
        document, _ = json.JSONDecoder().raw_decode(content.lstrip())
    except json.JSONDecodeError as err:
        raise BundleError(str(err)) from err
    if document is None:
        return Bundle()
    return Bundle.from_dict(document)


def values_or_defaults(vals: dict[str, Any], bundle: Bundle) -> dict[str, Any]:
    """Return validated parameter values, using defaults where no value is given."""
    result: dict[str, Any] = {}
    for name, definition in bundle.parameters.items():
        if name in vals:
            value = vals[name]
            try:
                definition.validate_parameter_value(value)
            except ParameterValueError as err:
                raise ParameterValueError(
                    f"can't use {_format_value(value)} as value of {name}: {err}"
                ) from err
            result[name] = definition.coerce_value(value)
        elif definition.required:
            raise ParameterValueError(f"parameter {_quote(name)} is required")
        else:
            result[name] = definition.default_value
    return result