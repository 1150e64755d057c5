"""Paths inside the user's tool home directory."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass

HOME_ENV_VAR = "DUFFLE_HOME"
PLUGIN_ENV_VAR = "DUFFLE_PLUGIN"


def _join(*parts: str) -> str:
    present = [p for p in parts if p]
    if not present:
        return ""
    return os.path.normpath(os.sep.join(present))


@dataclass(frozen=True)
class Home:
    """The location of the CLI configuration, with helpers for paths under it."""

    root: str

    def __str__(self) -> str:
        return self.root

    def __fspath__(self) -> str:
        return self.root

    def path(self, *args: str) -> str:
        """Return the home directory joined with the given elements."""
        return _join(self.root, *args)

    def bundles(self) -> str:
        """Where bundle repository information is stored."""
        return self.path("bundles")

    def logs(self) -> str:
        """Where logs are written."""
        return self.path("logs")

    def claims(self) -> str:
        """Where claims are stored by the filesystem store."""
        return self.path("claims")

    def credentials(self) -> str:
        """Where credential sets are stored."""
        return self.path("credentials")

    def repositories(self) -> str:
        """The file describing all downloaded bundles."""
        return self.path("repositories.json")

    def secret_key_ring(self) -> str:
        """The keyring holding private keys."""
        return self.path("secret.ring")

    def public_key_ring(self) -> str:
        """The keyring holding public keys."""
        return self.path("public.ring")

    def plugins(self) -> str:
        """The plugin directories, from the environment or under the home."""
        return os.environ.get(PLUGIN_ENV_VAR) or self.path("plugins")


def default_home() -> str:
    """Return the default home directory location."""
    home = os.environ.get(HOME_ENV_VAR)
    if home:
        return home
    user_home = os.environ.get("HOME", "")
    if not user_home and sys.platform == "win32":
        user_home = os.environ.get("USERPROFILE", "")
    return _join(user_home, ".duffle")