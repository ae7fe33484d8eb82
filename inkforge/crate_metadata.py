"""Metadata about a contract crate gathered from cargo and its manifest."""

from __future__ import annotations

import json
import logging
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from inkforge.manifest import ManifestPath
from inkforge.util import CargoError, invoke_cargo
from inkforge.workspace import PackageInfo

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"

_SEMVER = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)
_SPECIAL_SCHEMES = {"http", "https", "ws", "wss", "ftp"}


def _as_manifest_path(value) -> ManifestPath:
    return value if isinstance(value, ManifestPath) else ManifestPath(value)


def _parse_url(value: str, field_name: str) -> str:
    error = ValueError(f"{field_name} should be a valid URL")
    try:
        parts = urlsplit(value.strip())
    except ValueError as exc:
        raise error from exc
    scheme = parts.scheme.lower()
    if not scheme:
        raise error
    path = parts.path
    if scheme in _SPECIAL_SCHEMES:
        if not parts.hostname:
            raise error
        if not path:
            path = "/"
    return urlunsplit((scheme, parts.netloc, path, parts.query, parts.fragment))


@dataclass(frozen=True)
class ExtraMetadata:
    """Manifest fields that ``cargo metadata`` does not report."""

    documentation: str | None = None
    homepage: str | None = None
    user: dict | None = None


def get_cargo_metadata(manifest_path) -> tuple[dict, PackageInfo]:
    """Run ``cargo metadata`` and return its output with the root package."""
    manifest_path = _as_manifest_path(manifest_path)
    logger.info("Fetching cargo metadata for %s", manifest_path.path)
    try:
        stdout = invoke_cargo(
            "metadata",
            ["--format-version", "1", "--manifest-path", manifest_path.path],
        )
        metadata = json.loads(stdout)
    except (CargoError, ValueError) as exc:
        raise CargoError(f"Error invoking `cargo metadata`: {exc}") from exc

    root_id = (metadata.get("resolve") or {}).get("root")
    if root_id is None:
        raise CargoError("Cannot infer the root project id")

    for package in metadata.get("packages", []):
        if package.get("id") == root_id:
            return metadata, PackageInfo.from_json(package)
    raise CargoError("The package is not found in the `cargo metadata` output")


def get_cargo_toml_metadata(manifest_path) -> ExtraMetadata:
    """Read documentation, homepage and user metadata from ``Cargo.toml``."""
    manifest_path = _as_manifest_path(manifest_path)
    toml = tomllib.loads(Path(manifest_path).read_text(encoding="utf-8"))

    package = toml.get("package")

    def get_url(field_name: str) -> str | None:
        if package is None:
            raise ValueError("package section not found")
        value = package.get(field_name) if isinstance(package, dict) else None
        if not isinstance(value, str):
            return None
        return _parse_url(value, field_name)

    documentation = get_url("documentation")
    homepage = get_url("homepage")

    user = None
    section = package
    for key in ("metadata", "contract", "user"):
        section = section.get(key) if isinstance(section, dict) else None
    if isinstance(section, dict):
        user = json.loads(json.dumps(section, default=str))

    return ExtraMetadata(documentation=documentation, homepage=homepage, user=user)


@dataclass
class CrateMetadata:
    """Relevant metadata about a contract crate."""

    manifest_path: ManifestPath
    cargo_meta: dict
    contract_artifact_name: str
    root_package: PackageInfo
    original_wasm: Path
    dest_wasm: Path
    ink_version: str
    documentation: str | None
    homepage: str | None
    user: dict | None
    target_directory: Path

    @classmethod
    def collect(cls, manifest_path) -> CrateMetadata:
        """Gather the metadata of the contract whose manifest is at ``manifest_path``."""
        manifest_path = _as_manifest_path(manifest_path)
        metadata, root_package = get_cargo_metadata(manifest_path)
        target_directory = Path(metadata["target_directory"]) / "ink"

        package_name = root_package.name.replace("-", "_")
        lib_target = next(
            (t for t in root_package.targets if "cdylib" in t.get("kind", [])), None
        )
        if lib_target is None:
            raise ValueError("lib name not found")
        lib_name = lib_target["name"].replace("-", "_")

        absolute_manifest_dir = manifest_path.absolute_directory()
        absolute_workspace_root = Path(metadata["workspace_root"]).resolve(strict=True)
        if absolute_manifest_dir != absolute_workspace_root:
            # A contract inside a workspace gets its own sub-folder.
            target_directory = target_directory / package_name

        original_wasm = (
            target_directory / "wasm32-unknown-unknown" / "release" / f"{lib_name}.wasm"
        )
        dest_wasm = target_directory / f"{lib_name}.wasm"

        ink_version = next(
            (
                str(p.get("version", ""))
                for p in metadata.get("packages", [])
                if p.get("name") == "ink_lang"
            ),
            None,
        )
        if ink_version is None:
            raise ValueError("No 'ink_lang' dependency found")
        if not _SEMVER.match(ink_version):
            raise ValueError(f"Invalid ink_lang version string: {ink_version}")

        extra = get_cargo_toml_metadata(manifest_path)

        return cls(
            manifest_path=manifest_path,
            cargo_meta=metadata,
            contract_artifact_name=lib_name,
            root_package=root_package,
            original_wasm=original_wasm,
            dest_wasm=dest_wasm,
            ink_version=ink_version,
            documentation=extra.documentation,
            homepage=extra.homepage,
            user=extra.user,
            target_directory=target_directory,
        )

    def metadata_path(self) -> Path:
        """Path of the contract metadata file."""
        return self.target_directory / METADATA_FILE