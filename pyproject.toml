[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cnabkit"
version = "0.1.0"
description = "Tools for working with CNAB bundles: bundle documents, claims, credentials, drivers, actions, manifests, builds and archives"
requires-python = ">=3.11"
keywords = ["cnab", "bundle", "containers", "packaging", "invocation-image"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
    "Topic :: System :: Software Distribution",
]
dependencies = [
    "pyyaml",
    "semver",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["cnabkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
