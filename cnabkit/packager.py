"""Exporting bundles to compressed archives and importing them back."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import tarfile
import time
from dataclasses import dataclass, field
from typing import IO, Any

from .bundle import Bundle, BundleError
from .loader import DetectingLoader, Loader

_EXTRACT_OPTIONS: dict[str, Any] = {"filter": "data"} if hasattr(tarfile, "data_filter") else {}
_LOAD_ERRORS = (BundleError, OSError, ValueError)


class PackagerError(Exception):
    """Raised when exporting or importing a bundle fails."""


class DestinationNotDirectoryError(PackagerError):
    """Raised when the destination is not a directory."""

    def __init__(self, message: str = "Destination not directory") -> None:
        super().__init__(message)


class NoArtifactsDirectoryError(PackagerError):
    """Raised when an archive has no artifacts/ directory."""

    def __init__(self, message: str = "No artifacts/ directory found") -> None:
        super().__init__(message)


def build_file_name(uri: str) -> str:
    """Turn an image reference into a file name."""
    return uri.replace("/", "-").replace(":", "-")


def _docker(*args: str, **kwargs: Any) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(["docker", *args], **kwargs)
    except OSError as err:
        raise PackagerError(f"docker: {err}") from err


@dataclass
class Exporter:
    """Packages a bundle, and optionally its images, into a gzipped tar file."""

    source: str
    destination: str = ""
    thin: bool = False
    logs: str = ""
    loader: Loader = field(default_factory=DetectingLoader)
    unsigned: bool = False

    def export(self) -> None:
        """Write the archive to the destination, or to <name>-<version>.tgz."""
        with open(self.logs, "w", encoding="utf-8") as logs:
            self._export(logs)

    def _export(self, logs: IO[str]) -> None:
        bundlefile = "bundle.json" if self.unsigned else "bundle.cnab"
        bundle_path = os.path.join(self.source, bundlefile)
        if not os.path.exists(bundle_path):
            raise PackagerError(f"Bundle manifest not found at {bundle_path}")
        if os.path.isdir(bundle_path):
            raise PackagerError(
                f"Bundle manifest {bundle_path} is a directory, should be a file"
            )
        try:
            bun = self.loader.load(bundle_path)
        except _LOAD_ERRORS as err:
            raise PackagerError(f"Error loading bundle: {err}") from err

        name = f"{bun.name}-{bun.version}"
        archive_dir = name + "-export"
        os.makedirs(archive_dir, 0o755, exist_ok=True)
        try:
            shutil.copyfile(bundle_path, os.path.join(archive_dir, bundlefile))
            if not self.thin:
                try:
                    self._prepare_artifacts(bun, archive_dir, logs)
                except (PackagerError, OSError) as err:
                    raise PackagerError(f"Error preparing artifacts: {err}") from err
            dest = self.destination or name + ".tgz"
            try:
                writer = open(dest, "wb")
            except OSError as err:
                raise PackagerError(f"Error creating archive file: {err}") from err
            with writer, tarfile.open(fileobj=writer, mode="w:gz") as archive:
                archive.add(archive_dir, arcname=".")
        finally:
            shutil.rmtree(archive_dir, ignore_errors=True)

    def _prepare_artifacts(self, bun: Bundle, archive_dir: str, logs: IO[str]) -> None:
        artifacts_dir = os.path.join(archive_dir, "artifacts")
        os.makedirs(artifacts_dir, 0o755, exist_ok=True)
        for image in bun.images:
            self._archive_image(image.image, artifacts_dir, logs)
        for image in bun.invocation_images:
            self._archive_image(image.image, artifacts_dir, logs)

    @staticmethod
    def _archive_image(image: str, artifacts_dir: str, logs: IO[str]) -> str:
        logs.flush()
        pulled = _docker("pull", image, stdout=logs, stderr=subprocess.STDOUT)
        if pulled.returncode != 0:
            raise PackagerError(f"Error pulling image: exit status {pulled.returncode}")
        name = build_file_name(image) + ".tar"
        saved = _docker(
            "save", "-o", os.path.join(artifacts_dir, name), image,
            stdout=subprocess.DEVNULL, stderr=subprocess.PIPE,
        )
        if saved.returncode != 0:
            message = (saved.stderr or b"").decode("utf-8", errors="replace").strip()
            raise PackagerError(f"cannot save image {image}: {message}")
        return name


def new_exporter(
    source: str,
    dest: str,
    logs_dir: str,
    loader: Loader,
    thin: bool,
    unsigned: bool,
) -> Exporter:
    """Create an exporter whose log file is named after the current time."""
    logs = os.path.join(logs_dir, "export-" + time.strftime("%Y%m%d%H%M%S"))
    return Exporter(
        source=source,
        destination=dest,
        thin=thin,
        logs=logs,
        loader=loader,
        unsigned=unsigned,
    )


@dataclass
class Importer:
    """Unpacks an exported bundle archive and loads its images."""

    source: str
    destination: str
    loader: Loader = field(default_factory=DetectingLoader)
    verbose: bool = False

    def import_bundle(self) -> None:
        """Unpack the archive under the destination, validate it and load its images."""
        base_dir = os.path.basename(self.source)
        if base_dir.endswith(".tgz"):
            base_dir = base_dir[: -len(".tgz")]
        dest = os.path.join(self.destination, base_dir)
        os.makedirs(dest, 0o755, exist_ok=True)

        with open(self.source, "rb") as reader:
            try:
                with tarfile.open(fileobj=reader, mode="r:gz") as archive:
                    archive.extractall(dest, **_EXTRACT_OPTIONS)
            except (tarfile.TarError, OSError, EOFError) as err:
                raise PackagerError(f"untar failed: {err}") from err

        ext = "cnab" if os.path.exists(os.path.join(dest, "bundle.cnab")) else "json"
        try:
            self.loader.load(os.path.join(dest, f"bundle.{ext}"))
        except _LOAD_ERRORS as err:
            try:
                shutil.rmtree(dest)
            except OSError as remove_err:
                raise PackagerError(
                    f"failed to load and validate bundle.{ext} on import {err} "
                    f"and failed to remove invalid bundle from filesystem {remove_err}"
                ) from err
            raise PackagerError(f"failed to load and validate bundle.{ext}: {err}") from err

        artifacts_dir = os.path.join(dest, "artifacts")
        if os.path.exists(artifacts_dir):
            try:
                self._load_artifacts(artifacts_dir)
            except (PackagerError, OSError):
                # A failing image load stops further loads but does not fail the import.
                pass

    def _load_artifacts(self, artifacts_dir: str) -> None:
        for root, dirs, files in os.walk(artifacts_dir):
            dirs.sort()
            for filename in sorted(files):
                loaded = _docker(
                    "load", "-i", os.path.join(root, filename),
                    stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                )
                if loaded.returncode != 0:
                    raise PackagerError(f"cannot load image archive {filename}")
                if self.verbose:
                    sys.stdout.write((loaded.stdout or b"").decode("utf-8", errors="replace"))


def new_importer(source: str, destination: str, loader: Loader, verbose: bool) -> Importer:
    """Create an importer for the archive at source."""
    return Importer(source=source, destination=destination, loader=loader, verbose=verbose)