"""Reading, amending and writing contract ``Cargo.toml`` manifests."""

from __future__ import annotations

import copy
import logging
import os
import sys
import tomllib
from pathlib import Path

import tomli_w
from termcolor import colored

from inkforge.options import OptimizationPasses
from inkforge.profile import Profile
from inkforge.scaffold import generate_package

logger = logging.getLogger(__name__)

MANIFEST_FILE = "Cargo.toml"
LEGACY_METADATA_PACKAGE_PATH = ".ink/abi_gen"
METADATA_PACKAGE_PATH = ".ink/metadata_gen"


class ManifestError(ValueError):
    """Raised when a manifest is missing, malformed or cannot be amended."""


class ManifestPath:
    """Path to a ``Cargo.toml`` file."""

    __slots__ = ("path",)

    def __init__(self, path=MANIFEST_FILE) -> None:
        path = Path(path)
        if path.name not in ("", "..") and path.name != MANIFEST_FILE:
            raise ManifestError("Manifest file must be a Cargo.toml")
        self.path = path

    @classmethod
    def from_optional(cls, path) -> ManifestPath:
        """The given path, or ``Cargo.toml`` in the current directory if ``None``."""
        return cls() if path is None else cls(path)

    def __fspath__(self) -> str:
        return os.fspath(self.path)

    def __repr__(self) -> str:
        return f"ManifestPath({os.fspath(self.path)!r})"

    def __eq__(self, other) -> bool:
        if isinstance(other, ManifestPath):
            return self.path == other.path
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.path)

    def cargo_arg(self) -> str:
        """The ``--manifest-path=`` argument for cargo."""
        try:
            resolved = self.path.resolve(strict=True)
        except OSError as exc:
            raise ManifestError(f"Failed to canonicalize {self.path}: {exc}") from exc
        return f"--manifest-path={resolved}"

    def directory(self) -> Path | None:
        """The manifest's directory, or ``None`` for a bare ``Cargo.toml``."""
        if self.path.parts == (MANIFEST_FILE,):
            return None
        return self.path.parent

    def absolute_directory(self) -> Path:
        """The canonical absolute directory of the manifest."""
        directory = self.directory()
        if directory is None:
            directory = Path("./")
        return directory.resolve(strict=True)


def _as_manifest_path(value) -> ManifestPath:
    return value if isinstance(value, ManifestPath) else ManifestPath(value)


def _crate_type_exists(crate_type: str, crate_types: list) -> bool:
    return any(isinstance(v, str) and v == crate_type for v in crate_types)


class Manifest:
    """An in-memory copy of a ``Cargo.toml`` that can be amended and saved."""

    def __init__(self, manifest_path) -> None:
        self.path = _as_manifest_path(manifest_path)
        try:
            text = Path(self.path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ManifestError(f"Loading Cargo.toml: {exc}") from exc
        try:
            self.toml: dict = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ManifestError(f"Parsing Cargo.toml: {exc}") from exc
        self.metadata_package = False
        self._template_dir: Path | None = None

    def _crate_types(self) -> list:
        lib = self.toml.get("lib")
        if lib is None:
            raise ManifestError("lib section not found")
        crate_types = lib.get("crate-type") if isinstance(lib, dict) else None
        if crate_types is None:
            raise ManifestError("crate-type section not found")
        if not isinstance(crate_types, list):
            raise ManifestError("crate-types should be an Array")
        return crate_types

    def with_added_crate_type(self, crate_type: str) -> Manifest:
        """Add ``crate_type`` to ``[lib] crate-type`` unless already present."""
        crate_types = self._crate_types()
        if not _crate_type_exists(crate_type, crate_types):
            crate_types.append(crate_type)
        return self

    def with_removed_crate_type(self, crate_type: str) -> Manifest:
        """Remove ``crate_type`` from ``[lib] crate-type`` if present."""
        crate_types = self._crate_types()
        if _crate_type_exists(crate_type, crate_types):
            crate_types[:] = [
                v for v in crate_types if not (isinstance(v, str) and v == crate_type)
            ]
        return self

    def get_profile_optimization_passes(self) -> OptimizationPasses | None:
        """The ``optimization-passes`` from ``[package.metadata.contract]``, if set."""
        section = self.toml
        for key in ("package", "metadata", "contract"):
            section = section.get(key)
            if not isinstance(section, dict):
                return None
        if "optimization-passes" not in section:
            return None
        value = section["optimization-passes"]
        if isinstance(value, bool):
            value = "true" if value else "false"
        return OptimizationPasses.parse(str(value))

    def _profile_release(self) -> dict:
        profile = self.toml.setdefault("profile", {})
        if not isinstance(profile, dict):
            raise ManifestError("profile should be a table")
        release = profile.setdefault("release", {})
        if not isinstance(release, dict):
            raise ManifestError("release should be a table")
        return release

    def with_profile_release_lto(self, enabled: bool) -> Manifest:
        """Set ``lto`` in ``[profile.release]``."""
        self._profile_release()["lto"] = bool(enabled)
        return self

    def with_profile_release_defaults(self, defaults: Profile) -> Manifest:
        """Fill unset ``[profile.release]`` settings from ``defaults``."""
        defaults.merge(self._profile_release())
        return self

    def with_workspace(self) -> Manifest:
        """Add an empty ``[workspace]`` section if there is none."""
        self.toml.setdefault("workspace", {})
        return self

    def with_metadata_package(self, template_dir) -> Manifest:
        """Register the metadata generation package as a workspace member.

        The package itself is written from ``template_dir`` by :meth:`write`.
        """
        workspace = self.toml.setdefault("workspace", {})
        if not isinstance(workspace, dict):
            raise ManifestError("workspace should be a table")
        members = workspace.setdefault("members", [])
        if not isinstance(members, list):
            raise ManifestError("members should be an array")

        if LEGACY_METADATA_PACKAGE_PATH in members:
            bold = ["bold"]
            print(
                colored("warning:", "yellow", attrs=bold),
                colored("please remove", attrs=bold),
                colored(LEGACY_METADATA_PACKAGE_PATH, attrs=bold),
                colored(
                    "from the `[workspace]` section in the `Cargo.toml`, "
                    "and delete that directory. These are now auto-generated.",
                    attrs=bold,
                ),
                file=sys.stderr,
            )
        else:
            members.append(METADATA_PACKAGE_PATH)

        self.metadata_package = True
        self._template_dir = Path(template_dir)
        return self

    def rewrite_relative_paths(self, exclude_deps) -> Manifest:
        """Make the lib, bin and dependency paths absolute.

        Dependencies whose package name is in ``exclude_deps`` are left as they are.
        """
        abs_dir = Path(self.path).resolve(strict=True).parent

        def to_absolute(value_id: str, existing):
            if not isinstance(existing, str):
                raise ManifestError(f"{value_id} should be a string")
            path = Path(existing)
            if path.is_absolute():
                return existing
            absolute = abs_dir / path
            logger.debug("Rewriting %s to '%s'", value_id, absolute)
            return os.fspath(absolute)

        def rewrite_path(table, section: str, default: str) -> None:
            if not isinstance(table, dict):
                raise ManifestError(f"'[{section}]' section should be a table")
            if "path" in table:
                table["path"] = to_absolute(f"[{section}]/path", table["path"])
                return
            if not Path(default).exists():
                raise ManifestError(
                    f"No path specified, and the default `{default}` was not found"
                )
            path = abs_dir / default
            logger.debug("Adding default path '%s'", path)
            table["path"] = os.fspath(path)

        if "lib" in self.toml:
            rewrite_path(self.toml["lib"], "lib", "src/lib.rs")

        if "bin" in self.toml:
            bins = self.toml["bin"]
            if not isinstance(bins, list):
                raise ManifestError("'[[bin]]' section should be a table array")
            for entry in bins:
                rewrite_path(entry, "[bin]", "src/main.rs")

        if "dependencies" in self.toml:
            dependencies = self.toml["dependencies"]
            if not isinstance(dependencies, dict):
                raise ManifestError("dependencies should be a table")
            exclude = {str(name) for name in exclude_deps}
            for name, value in dependencies.items():
                package_name = name
                if isinstance(value, dict) and isinstance(value.get("package"), str):
                    package_name = value["package"]
                if package_name in exclude or not isinstance(value, dict):
                    continue
                if "path" in value:
                    value["path"] = to_absolute(f"dependency {package_name}", value["path"])

        return self

    def write(self, manifest_path) -> None:
        """Write the amended manifest, and the metadata package if registered."""
        manifest_path = _as_manifest_path(manifest_path)
        directory = manifest_path.directory()
        if directory is not None:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ManifestError(f"Creating directory '{directory}': {exc}") from exc

        if self.metadata_package:
            package_dir = (
                directory / METADATA_PACKAGE_PATH
                if directory is not None
                else Path(METADATA_PACKAGE_PATH)
            )
            try:
                package_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ManifestError(
                    f"Creating directory '{package_dir}': {exc}"
                ) from exc

            package = self.toml.get("package")
            if not isinstance(package, dict):
                raise ManifestError("package section not found")
            if "name" not in package:
                raise ManifestError("[package] name field not found")
            package_name = package["name"]
            if not isinstance(package_name, str):
                raise ManifestError("[package] name should be a string")

            dependencies = self.toml.get("dependencies")
            if not isinstance(dependencies, dict):
                raise ManifestError("[dependencies] section not found")
            if "ink_metadata" not in dependencies:
                raise ManifestError("ink_metadata dependency not found")
            ink_metadata = dependencies["ink_metadata"]
            if not isinstance(ink_metadata, dict):
                raise ManifestError("ink_metadata dependency should be a table")

            generate_package(
                package_dir, package_name, copy.deepcopy(ink_metadata), self._template_dir
            )

        logger.debug("Writing updated manifest to '%s'", manifest_path.path)
        Path(manifest_path).write_text(tomli_w.dumps(self.toml), encoding="utf-8")