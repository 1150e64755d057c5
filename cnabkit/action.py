"""The primary CNAB actions: install, upgrade, uninstall, status and custom actions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import IO, Any, Mapping

from .bundle import InvocationImage
from .claim import (
    ACTION_INSTALL,
    ACTION_STATUS,
    ACTION_UNINSTALL,
    ACTION_UPGRADE,
    STATUS_FAILURE,
    STATUS_SUCCESS,
    Claim,
)
from .credentials import CredentialError, expand
from .driver import Driver, Operation

BLOCKED_ACTIONS = frozenset({"install", "uninstall", "upgrade"})


class ActionError(Exception):
    """Raised when an action cannot be prepared or run."""


class BlockedActionError(ActionError):
    """Raised when a custom action would bypass a standard action."""

    def __init__(self, message: str = "action not allowed") -> None:
        super().__init__(message)


class UndefinedActionError(ActionError):
    """Raised when the bundle does not define the requested custom action."""

    def __init__(self, message: str = "action not defined for bundle") -> None:
        super().__init__(message)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


def select_invocation_image(driver: Driver, claim: Claim) -> InvocationImage:
    """Return the first invocation image of the claim's bundle that the driver handles."""
    images = claim.bundle.invocation_images if claim.bundle is not None else []
    if not images:
        raise ActionError("no invocationImages are defined in the bundle")
    for image in images:
        if driver.handles(image.image_type):
            return image
    raise ActionError(
        "driver is not compatible with any of the invocation images in the bundle"
    )


def op_from_claim(
    action: str,
    claim: Claim,
    image: InvocationImage,
    creds: Mapping[str, str],
    out: IO[str] | None = None,
) -> Operation:
    """Build the driver operation for an action on the claim."""
    bundle = claim.bundle
    if bundle is None:
        raise ActionError("claim has no bundle")

    expand_error: CredentialError | None = None
    try:
        env, files = expand(creds, bundle)
    except CredentialError as err:
        env, files = {}, {}
        expand_error = err

    for key in claim.parameters:
        if key not in bundle.parameters:
            raise ActionError(f'undefined parameter "{key}"')

    for name, definition in bundle.parameters.items():
        if name not in claim.parameters:
            continue
        value = _format_value(claim.parameters[name])
        destination = definition.destination
        if destination is None:
            env[f"CNAB_P_{name.upper()}"] = value
            continue
        if destination.path:
            files[destination.path] = value
        if destination.environment_variable:
            env[destination.environment_variable] = value

    env["CNAB_INSTALLATION_NAME"] = claim.name
    env["CNAB_ACTION"] = action
    env["CNAB_BUNDLE_NAME"] = bundle.name
    env["CNAB_BUNDLE_VERSION"] = bundle.version

    if expand_error is not None:
        raise expand_error

    return Operation(
        action=action,
        installation=claim.name,
        parameters=claim.parameters,
        image=image.image,
        image_type=image.image_type,
        revision=claim.revision,
        environment=env,
        files=files,
        out=out,
    )


def _run_tracked(
    action: str,
    driver: Driver,
    claim: Claim,
    creds: Mapping[str, str],
    out: IO[str] | None,
) -> None:
    image = select_invocation_image(driver, claim)
    op = op_from_claim(action, claim, image, creds, out)
    try:
        driver.run(op)
    except Exception as err:
        claim.update(action, STATUS_FAILURE)
        claim.result.message = str(err)
        raise
    claim.update(action, STATUS_SUCCESS)


@dataclass
class Install:
    """Installs a bundle and records the outcome in the claim."""

    driver: Driver

    def run(self, claim: Claim, creds: Mapping[str, str], out: IO[str] | None = None) -> None:
        """Perform the installation and update the claim."""
        _run_tracked(ACTION_INSTALL, self.driver, claim, creds, out)


@dataclass
class Upgrade:
    """Upgrades an installation and records the outcome in the claim."""

    driver: Driver

    def run(self, claim: Claim, creds: Mapping[str, str], out: IO[str] | None = None) -> None:
        """Perform the upgrade and update the claim."""
        _run_tracked(ACTION_UPGRADE, self.driver, claim, creds, out)


@dataclass
class Uninstall:
    """Uninstalls an installation and records the outcome in the claim."""

    driver: Driver

    def run(self, claim: Claim, creds: Mapping[str, str], out: IO[str] | None = None) -> None:
        """Perform the uninstallation and update the claim."""
        _run_tracked(ACTION_UNINSTALL, self.driver, claim, creds, out)


@dataclass
class Status:
    """Runs the status action; the claim is left untouched."""

    driver: Driver

    def run(self, claim: Claim, creds: Mapping[str, str], out: IO[str] | None = None) -> None:
        """Run the status action in the invocation image."""
        image = select_invocation_image(self.driver, claim)
        op = op_from_claim(ACTION_STATUS, claim, image, creds, out)
        self.driver.run(op)


@dataclass
class RunCustom:
    """Runs an arbitrary action that the bundle defines."""

    driver: Driver
    action: str

    def run(self, claim: Claim, creds: Mapping[str, str], out: IO[str] | None = None) -> None:
        """Run the custom action, recording it in the claim if it modifies the release."""
        if self.action in BLOCKED_ACTIONS:
            raise BlockedActionError()
        actions = claim.bundle.actions if claim.bundle is not None else {}
        definition = actions.get(self.action)
        if definition is None:
            raise UndefinedActionError()

        image = select_invocation_image(self.driver, claim)
        op = op_from_claim(self.action, claim, image, creds, out)

        try:
            self.driver.run(op)
        except Exception as err:
            if definition.modifies:
                claim.result.message = str(err)
                claim.update(self.action, STATUS_FAILURE)
            raise
        if definition.modifies:
            claim.update(self.action, STATUS_SUCCESS)