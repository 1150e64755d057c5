"""Loading bundles from local files, remote URLs and clear-signed documents."""

from __future__ import annotations

import abc
import os
import re
import urllib.error
import urllib.request

from .bundle import Bundle, unmarshal

_SCHEME = re.compile(r"([A-Za-z][A-Za-z0-9+.-]*):")

_BEGIN_SIGNED = b"-----BEGIN PGP SIGNED MESSAGE-----"
_BEGIN_SIGNATURE = b"-----BEGIN PGP SIGNATURE-----"
_END_SIGNATURE = b"-----END PGP SIGNATURE-----"


class BundleNotFoundError(FileNotFoundError):
    """Raised when a bundle reference is neither a local file nor a fetchable URL."""


def _is_local_reference(path: str) -> bool:
    try:
        os.stat(path)
    except (OSError, ValueError):
        return False
    return True


def _request_uri_scheme(text: str) -> str | None:
    """Return the scheme of an absolute request URI, "" for an absolute path, else None."""
    match = _SCHEME.match(text)
    if match:
        return match.group(1).lower()
    if text.startswith("/"):
        return ""
    return None


def load_data(bundle_file: str) -> bytes:
    """Read a bundle from the local filesystem, or fetch it with an HTTP GET."""
    if _is_local_reference(bundle_file):
        with open(bundle_file, "rb") as handle:
            return handle.read()

    scheme = _request_uri_scheme(bundle_file)
    if scheme is None or scheme == "file":
        raise BundleNotFoundError(f'bundle "{bundle_file}" not found')

    try:
        with urllib.request.urlopen(bundle_file) as response:
            return response.read()
    except urllib.error.HTTPError as err:
        with err:
            return err.read()
    except (urllib.error.URLError, ValueError, OSError) as err:
        raise OSError(f"cannot download bundle file: {err}") from err


def decode_clearsign(data: bytes | str) -> bytes | None:
    """Return the signed text of a clear-signed message, or None if data is not one.

    The signature itself is not verified.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    lines = [line.rstrip(b"\r") for line in data.split(b"\n")]
    remaining = iter(lines)

    for line in remaining:
        if line.rstrip() == _BEGIN_SIGNED:
            break
    else:
        return None

    for line in remaining:
        if not line.strip():
            break
        if b": " not in line:
            return None
    else:
        return None

    text: list[bytes] = []
    for line in remaining:
        if line == _BEGIN_SIGNATURE:
            break
        if line.startswith(b"- "):
            line = line[2:]
        text.append(line.rstrip(b" \t"))
    else:
        return None

    if not any(line.rstrip() == _END_SIGNATURE for line in remaining):
        return None
    return b"\r\n".join(text)


class Loader(abc.ABC):
    """Loads bundles."""

    @abc.abstractmethod
    def load(self, source: str) -> Bundle:
        """Load a bundle from a local file or URL."""

    @abc.abstractmethod
    def load_data(self, data: bytes) -> Bundle:
        """Load a bundle from raw data."""


class UnsignedLoader(Loader):
    """Loads a plain JSON bundle that carries no signature."""

    def load(self, source: str) -> Bundle:
        return self.load_data(load_data(source))

    def load_data(self, data: bytes) -> Bundle:
        return unmarshal(data)


class DetectingLoader(Loader):
    """Loads signed or unsigned bundles without verifying any signature.

    This is insecure: a signed bundle's body is extracted and parsed as is.
    """

    def load(self, source: str) -> Bundle:
        return self.load_data(load_data(source))

    def load_data(self, data: bytes) -> Bundle:
        plaintext = decode_clearsign(data)
        if plaintext is not None:
            data = plaintext
        return UnsignedLoader().load_data(data)