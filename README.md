# cnabkit

A library for working with CNAB (Cloud Native Application Bundle) documents
and the operations performed on them.

## Modules

- `cnabkit.bundle` – the `Bundle` document with its invocation images, images,
  parameters (`ParameterDefinition`), credentials (`Location`) and custom
  actions (`Action`). `unmarshal` and `parse_reader` read JSON; `Bundle.to_json`,
  `write_file` and `write_to` write it. `values_or_defaults` validates supplied
  parameter values and fills in defaults; `ParameterDefinition` validates,
  coerces and converts values of type `string`, `int` and `bool`.
- `cnabkit.replacement` – `JSONReplacer` and `YAMLReplacer` (made with
  `new_json_replacer` and `new_yaml_replacer`) set the field picked out by a
  dotted selector such as `b.c`, raising `SelectorNotFoundError` when it is
  missing. Output keys are sorted.
- `cnabkit.claim` – installation claims: `new_claim` checks the name against
  `[a-zA-Z0-9_-]+`; `Claim.update` records an action and status and refreshes
  the modified time and revision; `to_dict` / `from_dict` convert to and from
  JSON objects.
- `cnabkit.credentials` – `load` reads a `CredentialSet` from YAML;
  `CredentialSet.resolve` takes each value from a command, a file, an
  environment variable or a plain value, in that order of precedence;
  `expand` maps resolved credentials onto a bundle's environment variables
  and file paths; `validate` checks that required credentials are given.
- `cnabkit.driver` – `DebugDriver` prints the operation as JSON,
  `DockerDriver` runs docker and OCI images with the `docker` command line,
  and `CommandDriver` hands the operation to an external `duffle-<name>`
  program. `lookup` picks one by name; `generate_tar` packs files into a tar
  archive.
- `cnabkit.action` – `Install`, `Upgrade`, `Uninstall`, `Status` and
  `RunCustom` run a claim through a driver and record the outcome in the claim
  (`Status` leaves it untouched; `RunCustom` records only actions that modify
  the release, and refuses `install`, `upgrade` and `uninstall`).
- `cnabkit.loader` – `UnsignedLoader` loads plain JSON bundles from a file or
  an HTTP(S) URL; `DetectingLoader` also accepts clear-signed bundles and
  extracts their body **without verifying the signature**.
- `cnabkit.manifest` – build manifests: `load` reads `duffle.json`,
  `duffle.toml`, `duffle.yaml` or `duffle.yml` (or a named file) from a
  directory; `scaffold` writes a starter manifest with a `cnab/` Dockerfile and
  run script.
- `cnabkit.builder` – `Builder.prepare_build` turns a manifest and its
  `Component`s into a `Bundle`, and `Builder.build` builds the components
  concurrently. `Component` is an abstract class for you to implement.
- `cnabkit.packager` – `Exporter` writes a bundle (and, unless thin, its
  images saved with `docker save`) into a gzipped tar; `Importer.import_bundle`
  unpacks such an archive, validates the bundle and loads images with
  `docker load`.
- Helpers: `cnabkit.digest` (truncated SHA-256 tags), `cnabkit.osutil`
  (`exists`, `ensure_directory`, `ensure_file`), `cnabkit.home` (paths under
  the home directory, `DUFFLE_HOME` and `DUFFLE_PLUGIN`), `cnabkit.ulid`,
  `cnabkit.multireader` (a concatenating readable stream) and `cnabkit.ohai`
  (prefixed console messages).

## Example

```python
import io

from cnabkit.action import Install
from cnabkit.bundle import unmarshal
from cnabkit.claim import new_claim
from cnabkit.driver import lookup

bundle = unmarshal(b'''{
    "name": "example",
    "version": "0.1.0",
    "invocationImages": [{"imageType": "docker", "image": "example/app:0.1.0"}],
    "credentials": {"token": {"env": "APP_TOKEN"}}
}''')

claim = new_claim("my-install")
claim.bundle = bundle

out = io.StringIO()
Install(driver=lookup("debug")).run(claim, {"token": "token"}, out)
print(claim.result.status)   # "success"
```

Replacing a value in a document:

```python
from cnabkit.replacement import new_json_replacer

replacer = new_json_replacer("  ")
print(replacer.replace('{"b": {"c": "d"}}', "b.c", "test"))
```

## What it does not do

- There is no command-line program; everything is used as a library.
- Bundle signatures are never checked: there is no loader that verifies
  signed bundles against a keyring.
- Claims are not stored anywhere; persisting them (for example with
  `Claim.to_dict`) is left to you.
- No ready-made build components are included; `Builder` needs your own
  `Component` implementations.

## Installing for development

```
pip install -e ".[test]"
pytest
```