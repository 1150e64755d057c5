"""Assembling a bundle from its built components."""

from __future__ import annotations

import abc
import enum
import os
import re
import sys
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import IO, Any

import semver

from .bundle import Bundle, Image
from .bundle import InvocationImage as BundleInvocationImage
from .manifest import Manifest
from .ulid import getulid

_METADATA = re.compile(r"[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*")


class BuildError(Exception):
    """Raised when a build cannot be prepared or fails."""


class DockerfileNotExistError(BuildError, FileNotFoundError):
    """Raised when no Dockerfile exists for a build."""

    def __init__(self, message: str = "Dockerfile does not exist") -> None:
        super().__init__(message)


class SummaryStatusCode(enum.IntEnum):
    """The possible states of a build."""

    UNKNOWN = 0
    LOGGING = 1
    STARTED = 2
    ONGOING = 3
    SUCCESS = 4
    FAILURE = 5


SUMMARY_STATUS_CODE_NAME = {code.value: code.name for code in SummaryStatusCode}


@dataclass
class Summary:
    """A progress message of a build."""

    stage_desc: str = ""
    status_text: str = ""
    status_code: SummaryStatusCode = SummaryStatusCode.UNKNOWN
    build_id: str = ""

    def to_dict(self) -> dict:
        """Return the JSON object form, leaving out empty fields."""
        out: dict[str, Any] = {}
        if self.stage_desc:
            out["stage_desc"] = self.stage_desc
        if self.status_text:
            out["status_text"] = self.status_text
        if self.status_code:
            out["status_code"] = int(self.status_code)
        if self.build_id:
            out["build_id"] = self.build_id
        return out


@dataclass
class Context:
    """What a build knows about the application."""

    manifest: Manifest
    app_dir: str = ""
    components: list[Component] = field(default_factory=list)


class Component(abc.ABC):
    """A buildable part of a bundle."""

    @abc.abstractmethod
    def name(self) -> str:
        """The component name."""

    @abc.abstractmethod
    def type(self) -> str:
        """The component's image type."""

    @abc.abstractmethod
    def uri(self) -> str:
        """The reference of the built image."""

    @abc.abstractmethod
    def digest(self) -> str:
        """The digest of the built image."""

    @abc.abstractmethod
    def prepare_build(self, ctx: Context) -> None:
        """Prepare the component for building."""

    @abc.abstractmethod
    def build(self, app: AppContext) -> None:
        """Build the component."""


@dataclass
class AppContext:
    """State carried across the stages of a build."""

    bldr: Builder
    ctx: Context
    log: IO[str]
    id: str


def _tag_of(uri: str) -> str:
    parts = uri.split(":")
    if len(parts) < 2:
        raise BuildError(f"image reference {uri!r} has no tag")
    return parts[1]


@dataclass
class Builder:
    """Builds bundles from manifests and components."""

    id: str = field(default_factory=getulid)
    logs_dir: str = ""
    version_with_build_metadata: bool = False

    def logs(self, app_name: str) -> str:
        """Return the path of the build logs of an application."""
        return os.path.join(self.logs_dir, app_name, self.id)

    def prepare_build(
        self,
        bldr: Builder,
        mfst: Manifest,
        app_dir: str,
        components: list[Component],
    ) -> tuple[AppContext, Bundle]:
        """Prepare every component and assemble the bundle they make up."""
        ctx = Context(manifest=mfst, app_dir=app_dir, components=list(components))
        bf = Bundle(
            name=mfst.name,
            description=mfst.description,
            images=list(mfst.images),
            keywords=list(mfst.keywords),
            maintainers=list(mfst.maintainers),
            actions=dict(mfst.actions),
            parameters=dict(mfst.parameters),
            credentials=dict(mfst.credentials),
        )
        for component in ctx.components:
            component.prepare_build(ctx)
            if component.name() == "cnab":
                bf.invocation_images = [
                    BundleInvocationImage(image=component.uri(), image_type=component.type())
                ]
                base_version = mfst.version or "0.1.0"
                bf.version = self.version(base_version, _tag_of(component.uri()))
            else:
                bf.images.append(
                    Image(
                        description=component.name(),
                        image=component.uri(),
                        image_type=component.type(),
                    )
                )
        app = AppContext(bldr=bldr, ctx=ctx, log=sys.stdout, id=bldr.id)
        return app, bf

    def version(self, base_version: str, sha: str) -> str:
        """Normalise a semantic version, adding sha as build metadata if configured."""
        text = base_version[1:] if base_version.startswith(("v", "V")) else base_version
        try:
            parsed = semver.Version.parse(text, optional_minor_and_patch=True)
        except (ValueError, TypeError) as err:
            raise BuildError("Invalid Semantic Version") from err
        if self.version_with_build_metadata:
            if not _METADATA.fullmatch(sha):
                raise BuildError("Invalid Metadata string")
            parsed = parsed.replace(build=sha)
        return str(parsed)

    def build(self, app: AppContext) -> None:
        """Build all components concurrently; raise on the first failure."""
        components = app.ctx.components
        if not components:
            return
        pool = ThreadPoolExecutor(max_workers=len(components))
        try:
            futures = {pool.submit(c.build, app): c for c in components}
            pending = set(futures)
            while pending:
                done, pending = wait(pending, return_when=FIRST_EXCEPTION)
                for future in done:
                    err = future.exception()
                    if err is not None:
                        raise BuildError(
                            "error building components: error building component "
                            f"{futures[future].name()}: {err}"
                        ) from err
        finally:
            pool.shutdown(wait=False, cancel_futures=True)