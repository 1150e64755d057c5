"""Installation claims: records of what was installed and how."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .bundle import Bundle
from .ulid import new_ulid

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"
STATUS_UNDERWAY = "underway"
STATUS_UNKNOWN = "unknown"

ACTION_INSTALL = "install"
ACTION_UPGRADE = "upgrade"
ACTION_DOWNGRADE = "downgrade"
ACTION_UNINSTALL = "uninstall"
ACTION_STATUS = "status"
ACTION_UNKNOWN = "unknown"

VALID_NAME = re.compile(r"[a-zA-Z0-9_-]+", re.ASCII)

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_FRACTION = re.compile(r"(\.\d{6})\d+")
_entropy = random.SystemRandom()


class InvalidClaimNameError(ValueError):
    """Raised when a claim name contains characters that are not allowed."""


def new_revision() -> str:
    """Return a new revision identifier."""
    return new_ulid(datetime.now(timezone.utc), _entropy)


def _parse_time(text: str) -> datetime:
    text = _FRACTION.sub(r"\1", text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


@dataclass
class Result:
    """The outcome of the last operation on an installation."""

    message: str = ""
    action: str = ""
    status: str = ""


@dataclass
class Claim:
    """An installation claim receipt."""

    name: str = ""
    revision: str = ""
    created: datetime = ZERO_TIME
    modified: datetime = ZERO_TIME
    bundle: Bundle | None = None
    result: Result = field(default_factory=Result)
    parameters: dict[str, Any] = field(default_factory=dict)
    files: dict[str, str] = field(default_factory=dict)

    def update(self, action: str, status: str) -> None:
        """Record a new action and status, refreshing the modified time and revision."""
        self.result.action = action
        self.result.status = status
        self.modified = datetime.now(timezone.utc)
        self.revision = new_revision()

    def to_dict(self) -> dict:
        """Return the JSON object form of the claim."""
        return {
            "name": self.name,
            "revision": self.revision,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
            "bundle": self.bundle.to_dict() if self.bundle is not None else None,
            "result": {
                "message": self.result.message,
                "action": self.result.action,
                "status": self.result.status,
            },
            "parameters": dict(self.parameters),
            "files": dict(self.files),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Claim:
        """Build a claim from its JSON object form."""
        result = data.get("result") or {}
        bundle = data.get("bundle")
        created = data.get("created")
        modified = data.get("modified")
        return cls(
            name=data.get("name") or "",
            revision=data.get("revision") or "",
            created=_parse_time(created) if created else ZERO_TIME,
            modified=_parse_time(modified) if modified else ZERO_TIME,
            bundle=Bundle.from_dict(bundle) if bundle is not None else None,
            result=Result(
                message=result.get("message") or "",
                action=result.get("action") or "",
                status=result.get("status") or "",
            ),
            parameters=dict(data.get("parameters") or {}),
            files=dict(data.get("files") or {}),
        )


def new_claim(name: str) -> Claim:
    """Create a claim ready for an installation."""
    if not VALID_NAME.fullmatch(name):
        raise InvalidClaimNameError(f'invalid name "{name}". Names must be [a-zA-Z0-9-_]+')
    now = datetime.now(timezone.utc)
    return Claim(
        name=name,
        revision=new_revision(),
        created=now,
        modified=now,
        result=Result(action=ACTION_UNKNOWN, status=STATUS_UNKNOWN),
    )