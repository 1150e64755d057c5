"""Tools for CNAB bundles, claims, credentials, drivers, actions, manifests, builds and archives."""

__version__ = "0.1.0"