"""Drivers that run an operation inside an invocation image."""

from __future__ import annotations

import abc
import io
import json
import os
import posixpath
import subprocess
import sys
import tarfile
from dataclasses import dataclass, field
from typing import IO, Any

IMAGE_TYPE_DOCKER = "docker"
IMAGE_TYPE_OCI = "oci"
IMAGE_TYPE_QCOW = "qcow"


class DriverError(RuntimeError):
    """Raised when a driver fails to run an operation."""


@dataclass
class Operation:
    """The data handed to a driver to run an operation."""

    installation: str = ""
    revision: str = ""
    action: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    image: str = ""
    image_type: str = ""
    environment: dict[str, str] = field(default_factory=dict)
    files: dict[str, str] = field(default_factory=dict)
    out: IO[str] | None = None

    def to_dict(self) -> dict:
        """Return the JSON object form of the operation."""
        return {
            "installation_name": self.installation,
            "revision": self.revision,
            "action": self.action,
            "parameters": self.parameters,
            "image": self.image,
            "image_type": self.image_type,
            "environment": self.environment,
            "files": self.files,
        }

    def _stream(self) -> IO[str]:
        return self.out if self.out is not None else sys.stdout


@dataclass
class ResolvedCred:
    """A credential resolved and ready for injection into the runtime."""

    type: str = ""
    name: str = ""
    value: str = ""


class Driver(abc.ABC):
    """Something that can run an invocation image."""

    @abc.abstractmethod
    def run(self, op: Operation) -> None:
        """Execute the operation inside the invocation image."""

    @abc.abstractmethod
    def handles(self, image_type: str) -> bool:
        """Return whether this driver supports the image type."""


@dataclass
class DebugDriver(Driver):
    """Prints the operation it is given and never runs an image."""

    settings: dict[str, str] = field(default_factory=dict)

    def run(self, op: Operation) -> None:
        print(json.dumps(op.to_dict(), indent=2, ensure_ascii=False), file=op._stream())

    def handles(self, image_type: str) -> bool:
        return True

    def config(self) -> dict[str, str]:
        """Return the configuration help text."""
        return {"VERBOSE": "Increase verbosity. true, false are supported values"}

    def set_config(self, settings: dict[str, str]) -> None:
        """Replace the driver configuration."""
        self.settings = dict(settings)


@dataclass
class CommandDriver(Driver):
    """Delegates to an external program named after the driver."""

    name: str

    def cli_name(self) -> str:
        """Return the name of the program that implements this driver."""
        return "duffle-" + self.name.lower()

    def handles(self, image_type: str) -> bool:
        cli = self.cli_name()
        try:
            completed = subprocess.run(
                [cli, "--handles"], stdout=subprocess.PIPE, stderr=subprocess.STDOUT
            )
        except OSError as err:
            sys.stdout.write(f"{cli} --handles: {err}")
            return False
        if completed.returncode != 0:
            sys.stdout.write(f"{cli} --handles: exit status {completed.returncode}")
            return False
        output = completed.stdout.decode("utf-8", errors="replace")
        return any(image_type == part.strip() for part in output.split(","))

    def run(self, op: Operation) -> None:
        env = dict(os.environ)
        env.update(op.environment)
        env["DUFFLE_VARS"] = ",".join(op.environment)
        payload = json.dumps(op.to_dict()).encode("utf-8")
        cli = self.cli_name()
        out = op._stream()
        try:
            completed = subprocess.run(
                [cli],
                input=payload,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=env,
                cwd=os.getcwd(),
            )
        except OSError as err:
            print("", file=out)
            raise DriverError(f"{cli}: {err}") from err
        print(completed.stdout.decode("utf-8", errors="replace"), file=out)
        if completed.returncode != 0:
            raise DriverError(f"{cli}: exit status {completed.returncode}")


def generate_tar(files: dict[str, str]) -> bytes:
    """Pack files, keyed by absolute unix path, into an uncompressed tar archive."""
    for path in files:
        if not posixpath.isabs(path):
            raise DriverError(f"destination path {path} should be an absolute unix path")
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.USTAR_FORMAT) as archive:
        for path, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name=path)
            info.mode = 0o644
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@dataclass
class DockerDriver(Driver):
    """Runs docker and OCI invocation images with the docker command line."""

    simulate: bool = False
    settings: dict[str, str] = field(default_factory=dict)

    def handles(self, image_type: str) -> bool:
        return image_type in (IMAGE_TYPE_DOCKER, IMAGE_TYPE_OCI)

    def config(self) -> dict[str, str]:
        """Return the configuration help text."""
        return {
            "VERBOSE": "Increase verbosity. true, false are supported values",
            "PULL_ALWAYS": "Always pull image, even if locally available (0|1)",
            "DOCKER_DRIVER_QUIET": "Make the Docker driver quiet (only print container stdout/stderr)",
        }

    def set_config(self, settings: dict[str, str]) -> None:
        """Replace the driver configuration."""
        self.settings = dict(settings)

    @property
    def _quiet(self) -> bool:
        return self.settings.get("DOCKER_DRIVER_QUIET") == "1"

    @staticmethod
    def _docker(*args: str, **kwargs: Any) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(["docker", *args], **kwargs)
        except OSError as err:
            raise DriverError(f"docker: {err}") from err

    def _pull(self, image: str) -> None:
        target = subprocess.DEVNULL if self._quiet else None
        completed = self._docker("pull", image, stdout=target, stderr=target)
        if completed.returncode != 0:
            raise DriverError(f"cannot pull image {image}")

    def run(self, op: Operation) -> None:
        if self.simulate:
            return
        if self.settings.get("PULL_ALWAYS") == "1":
            self._pull(op.image)
        else:
            found = self._docker(
                "image", "inspect", op.image,
                stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
            )
            if found.returncode != 0:
                if not self._quiet:
                    print(f"Unable to find image '{op.image}' locally", file=sys.stderr)
                self._pull(op.image)

        args = ["create", "--rm", "--entrypoint", "/cnab/app/run",
                "--mount", "type=bind,source=/var/run/docker.sock,target=/var/run/docker.sock"]
        for key, value in op.environment.items():
            args += ["-e", f"{key}={value}"]
        args.append(op.image)
        created = self._docker(*args, capture_output=True)
        if created.returncode != 0:
            message = created.stderr.decode("utf-8", errors="replace").strip()
            raise DriverError(f"cannot create container: {message}")
        container = created.stdout.decode("utf-8").strip()

        try:
            archive = generate_tar(op.files)
        except DriverError as err:
            raise DriverError(f"error staging files: {err}") from err
        copied = self._docker("cp", "-", f"{container}:/", input=archive, capture_output=True)
        if copied.returncode != 0:
            message = copied.stderr.decode("utf-8", errors="replace").strip()
            raise DriverError(f"error copying to / in container: {message}")

        started = self._docker("start", "-a", container)
        if started.returncode != 0:
            raise DriverError(f"container exited with status code: {started.returncode}")


def lookup(name: str) -> Driver:
    """Return the driver best matching the name."""
    if name == "docker":
        return DockerDriver()
    if name == "debug":
        return DebugDriver()
    return CommandDriver(name=name)