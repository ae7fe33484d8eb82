"""Build options, verbosity handling and the result of a contract build."""

from __future__ import annotations

import binascii
import json
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from termcolor import colored


def _bold(text: str) -> str:
    return colored(text, attrs=["bold"])


def parse_hex_data(value: str) -> bytes:
    """Decode a plain hex string (no prefix, no whitespace) into bytes."""
    try:
        return binascii.unhexlify(value.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"Invalid hex data {value!r}: {exc}") from exc


class OptimizationPasses(Enum):
    """Number of optimization passes handed to the Wasm optimizer."""

    ZERO = "0"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    S = "s"
    Z = "z"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> OptimizationPasses:
        """Parse a value from the command line or a manifest profile.

        Surrounding double quotes are ignored, so both ``3`` and ``"3"`` work.
        """
        normalized = str(value).replace('"', "").lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown optimization passes for option {value}")


class Verbosity(Enum):
    """Whether and how much output is printed to stdout."""

    DEFAULT = "Default"
    QUIET = "Quiet"
    VERBOSE = "Verbose"

    def is_verbose(self) -> bool:
        """True unless output is suppressed."""
        return self is not Verbosity.QUIET

    @classmethod
    def from_flags(cls, quiet: bool, verbose: bool) -> Verbosity:
        """Derive the verbosity from the ``--quiet`` and ``--verbose`` flags."""
        if quiet and verbose:
            raise ValueError("Cannot pass both --quiet and --verbose flags")
        if quiet:
            return cls.QUIET
        if verbose:
            return cls.VERBOSE
        return cls.DEFAULT


_VALID_UNSTABLE_FLAGS = ("original-manifest",)


@dataclass(frozen=True)
class UnstableFlags:
    """Unstable options passed via ``-Z``."""

    original_manifest: bool = False

    @classmethod
    def from_options(cls, options) -> UnstableFlags:
        """Build flags from the raw option strings, rejecting unknown ones."""
        options = list(options)
        invalid = [o for o in options if o not in _VALID_UNSTABLE_FLAGS]
        if invalid:
            raise ValueError(f"Unknown unstable-options {json.dumps(invalid)}")
        return cls(original_manifest="original-manifest" in options)


class BuildArtifacts(Enum):
    """Which artifacts a build produces."""

    ALL = "All"
    CODE_ONLY = "CodeOnly"
    CHECK_ONLY = "CheckOnly"

    @property
    def cli_name(self) -> str:
        return {
            BuildArtifacts.ALL: "all",
            BuildArtifacts.CODE_ONLY: "code-only",
            BuildArtifacts.CHECK_ONLY: "check-only",
        }[self]

    def steps(self) -> int:
        """Number of progress steps shown for this kind of build."""
        return {
            BuildArtifacts.ALL: 5,
            BuildArtifacts.CODE_ONLY: 3,
            BuildArtifacts.CHECK_ONLY: 2,
        }[self]


class BuildMode(Enum):
    """Whether debug message support is compiled into the contract."""

    DEBUG = "Debug"
    RELEASE = "Release"

    def __str__(self) -> str:
        return self.value.lower()


class Network(Enum):
    """Whether cargo may use the network or only cached dependencies."""

    ONLINE = "Online"
    OFFLINE = "Offline"

    def __str__(self) -> str:
        return "--offline" if self is Network.OFFLINE else ""


class OutputType(Enum):
    """How the build result is presented."""

    HUMAN_READABLE = "HumanReadable"
    JSON = "Json"


@dataclass(frozen=True)
class MetadataResult:
    """Paths written by metadata generation."""

    dest_metadata: Path
    dest_bundle: Path

    def to_dict(self) -> dict:
        return {
            "dest_metadata": os.fspath(self.dest_metadata),
            "dest_bundle": os.fspath(self.dest_bundle),
        }


@dataclass(frozen=True)
class OptimizationResult:
    """Outcome of optimizing the Wasm file; sizes are in kilobytes."""

    dest_wasm: Path
    original_size: float
    optimized_size: float

    def to_dict(self) -> dict:
        return {
            "dest_wasm": os.fspath(self.dest_wasm),
            "original_size": float(self.original_size),
            "optimized_size": float(self.optimized_size),
        }


@dataclass
class BuildResult:
    """Everything a build produced."""

    target_directory: Path
    dest_wasm: Path | None = None
    metadata_result: MetadataResult | None = None
    optimization_result: OptimizationResult | None = None
    build_mode: BuildMode = BuildMode.DEBUG
    build_artifact: BuildArtifacts = BuildArtifacts.ALL
    verbosity: Verbosity = Verbosity.DEFAULT
    output_type: OutputType = OutputType.HUMAN_READABLE

    def display(self) -> str:
        """Human readable summary of the build."""
        if self.optimization_result is None:
            raise ValueError("optimization result must exist")
        original = self.optimization_result.original_size
        optimized = self.optimization_result.optimized_size

        size_diff = (
            f"\nOriginal wasm size: {_bold(f'{original:.1f}K')}, "
            f"Optimized: {_bold(f'{optimized:.1f}K')}\n\n"
        )
        build_mode = (
            f"The contract was built in {_bold(str(self.build_mode).upper())} mode.\n\n"
        )

        if self.build_artifact is BuildArtifacts.CODE_ONLY:
            if self.dest_wasm is None:
                raise ValueError("wasm path must exist")
            return (
                f"{size_diff}{build_mode}"
                "Your contract's code is ready. You can find it here:\n"
                f"{_bold(os.fspath(self.dest_wasm))}"
            )

        parts = [
            f"{size_diff}{build_mode}"
            "Your contract artifacts are ready. You can find them in:\n"
            f"{_bold(os.fspath(self.target_directory))}\n\n"
        ]
        if self.metadata_result is not None:
            name = Path(self.metadata_result.dest_bundle).name
            parts.append(f"  - {_bold(name)} (code + metadata)\n")
        if self.dest_wasm is not None:
            parts.append(f"  - {_bold(Path(self.dest_wasm).name)} (the contract's code)\n")
        if self.metadata_result is not None:
            name = Path(self.metadata_result.dest_metadata).name
            parts.append(f"  - {_bold(name)} (the contract's metadata)")
        return "".join(parts)

    def to_dict(self) -> dict:
        return {
            "dest_wasm": None if self.dest_wasm is None else os.fspath(self.dest_wasm),
            "metadata_result": None
            if self.metadata_result is None
            else self.metadata_result.to_dict(),
            "target_directory": os.fspath(self.target_directory),
            "optimization_result": None
            if self.optimization_result is None
            else self.optimization_result.to_dict(),
            "build_mode": self.build_mode.value,
            "build_artifact": self.build_artifact.value,
            "verbosity": self.verbosity.value,
        }

    def serialize_json(self) -> str:
        """The build result as pretty printed JSON."""
        return json.dumps(self.to_dict(), indent=2)