"""Temporary copies of a cargo workspace with amended manifests."""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from inkforge.manifest import Manifest, ManifestPath

logger = logging.getLogger(__name__)


@dataclass
class PackageInfo:
    """A package entry from the output of ``cargo metadata``."""

    id: str
    name: str
    version: str
    manifest_path: Path
    authors: list[str] = field(default_factory=list)
    description: str | None = None
    repository: str | None = None
    license: str | None = None
    targets: list[dict] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict) -> PackageInfo:
        """Build from one element of the ``packages`` list."""
        return cls(
            id=data["id"],
            name=data["name"],
            version=str(data.get("version", "")),
            manifest_path=Path(data["manifest_path"]),
            authors=list(data.get("authors") or []),
            description=data.get("description"),
            repository=data.get("repository"),
            license=data.get("license"),
            targets=list(data.get("targets") or []),
        )


class Workspace:
    """A copy of a cargo workspace keeping only the structure and manifests.

    Relative source and non-member dependency paths are rewritten to absolute
    paths into the original workspace, so the manifests can be amended and
    written elsewhere without touching the originals.
    """

    def __init__(self, metadata: dict, root_package: str) -> None:
        packages = {p["id"]: p for p in metadata.get("packages", [])}
        self.members: dict[str, tuple[PackageInfo, Manifest]] = {}
        for package_id in metadata.get("workspace_members", []):
            data = packages.get(package_id)
            if data is None:
                raise ValueError(
                    f"Package '{package_id}' is a member and should be in the packages list"
                )
            package = PackageInfo.from_json(data)
            manifest = Manifest(ManifestPath(package.manifest_path))
            self.members[package_id] = (package, manifest)

        if root_package not in self.members:
            raise ValueError("The root package should be a workspace member")

        self.workspace_root = Path(metadata["workspace_root"])
        self.root_package = root_package

    def with_root_package_manifest(self, f: Callable[[Manifest], object]) -> Workspace:
        """Amend the manifest of the package being built with ``f``."""
        _, manifest = self.members[self.root_package]
        f(manifest)
        return self

    def with_contract_manifest(
        self, package_path, f: Callable[[Manifest], object]
    ) -> Workspace:
        """Amend the manifest of the member located at ``package_path`` with ``f``.

        ``package_path`` must be absolute and canonical.
        """
        target = Path(package_path)
        for _, manifest in self.members.values():
            directory = manifest.path.directory()
            if directory is None:
                continue
            if directory.resolve(strict=True) == target:
                f(manifest)
                return self
        raise ValueError(
            f"Cannot find package with package path {target} in workspace members"
        )

    def with_metadata_gen_package(self, package_path, template_dir) -> Workspace:
        """Add the metadata generation package to the member at ``package_path``."""
        return self.with_contract_manifest(
            package_path, lambda manifest: manifest.with_metadata_package(template_dir)
        )

    def write(self, target) -> list[tuple[str, ManifestPath]]:
        """Write all amended manifests below ``target``, keeping the layout.

        Returns the package ids together with the paths of the new manifests.
        """
        exclude = [package.name for package, _ in self.members.values()]
        written: list[tuple[str, ManifestPath]] = []
        for package_id, (package, manifest) in self.members.items():
            relative = package.manifest_path.relative_to(self.workspace_root)
            new_manifest = ManifestPath(Path(target) / relative)
            manifest.rewrite_relative_paths(exclude)
            manifest.write(new_manifest)
            written.append((package_id, new_manifest))
        return written

    def using_temp(self, f: Callable[[ManifestPath], object]):
        """Write the workspace to a temporary directory and call ``f`` on the root
        package's manifest path before the directory is removed.

        Returns whatever ``f`` returns.
        """
        with tempfile.TemporaryDirectory(prefix="cargo-contract_") as tmp_dir:
            logger.debug("Using temp workspace at '%s'", tmp_dir)
            new_paths = self.write(tmp_dir)
            root_manifest = next(
                path for package_id, path in new_paths if package_id == self.root_package
            )
            return f(root_manifest)