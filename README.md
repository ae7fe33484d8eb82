# inkforge

A library for working with ink! smart contract projects that are built with
cargo. It covers the pieces around a contract build:

- **Options** (`inkforge.options`): `OptimizationPasses`, `Verbosity`,
  `UnstableFlags`, `BuildArtifacts`, `BuildMode`, `Network`, `OutputType`,
  and `BuildResult` with its human-readable `display()` and pretty-printed
  `serialize_json()` output. `parse_hex_data()` decodes plain hex strings.
- **Manifests** (`inkforge.manifest`, `inkforge.profile`): `ManifestPath`
  and `Manifest` load, amend and write `Cargo.toml` files: crate types,
  `[profile.release]` defaults and LTO, the `[workspace]` section, and
  rewriting relative lib, bin and dependency paths to absolute ones.
  `Profile.default_contract_release()` holds the preferred release settings.
- **Metadata package** (`inkforge.scaffold`): `generate_package()` writes the
  `metadata-gen` helper package from a directory holding `_Cargo.toml` and
  `main.rs` templates.
- **Workspaces** (`inkforge.workspace`): `Workspace` copies the manifests of
  a cargo workspace, given the parsed output of `cargo metadata`, into another
  directory or a temporary one (`using_temp()`).
- **Crate metadata** (`inkforge.crate_metadata`): `CrateMetadata.collect()`
  runs `cargo metadata`, reads the manifest and works out the Wasm paths,
  the `ink_lang` version and the documentation, homepage and user metadata.
- **Wasm validation** (`inkforge.validate_wasm`): `validate_import_section()`
  rejects imports that do not start with `seal` or `memory`, and explains
  panic imports and ink! enforced-error markers.
- **Helpers** (`inkforge.util`): `invoke_cargo()`, `assert_channel()`,
  `decode_hex()`, `to_upper_camel_case()`, `unzip()` and output helpers.
- **Projects and tests** (`inkforge.new_project`, `inkforge.run_tests`):
  `new_project.execute()` creates a contract project from a template zip
  archive; `run_tests.execute()` runs `cargo test` for a contract.

## Requirements

Python 3.11 or later. The functions that run cargo need `cargo` on the
`PATH` (or the `CARGO` environment variable set); `assert_channel()` checks
with `rustc -vV` (or `RUSTC`) that a nightly or dev toolchain is active.

## Examples

Parse optimization passes as they appear on a command line or in a
`Cargo.toml` profile:

```python
from inkforge.options import OptimizationPasses

passes = OptimizationPasses.parse('"3"')
print(passes)  # 3
```

Apply the preferred release profile defaults to a `[profile.release]` table,
keeping anything already set:

```python
from inkforge.profile import Profile

table = {"lto": False}
Profile.default_contract_release().merge(table)
# table now also holds opt-level, codegen-units, overflow-checks and panic
```

Validate the import section of a compiled contract:

```python
from pathlib import Path

from inkforge.validate_wasm import WasmValidationError, validate_import_section

wasm = Path("target/ink/flipper.wasm").read_bytes()
try:
    validate_import_section(wasm)
except WasmValidationError as err:
    print(err)
```

Errors are reported by raising exceptions such as `ManifestError`,
`CargoError`, `WasmValidationError`, `ValueError` and `FileExistsError`.

## What it does not do

- There is no command-line program; everything is called from Python.
- It does not compile contracts, optimize Wasm files or generate the contract
  metadata and `.contract` bundle itself. `BuildResult` only describes the
  outcome of such a build.
- It does not upload, instantiate, call or decode contracts on a chain.
- It ships no templates: `new_project.execute()` takes the template archive
  as bytes, and `generate_package()` and `Manifest.with_metadata_package()`
  take the directory that holds the metadata package templates.