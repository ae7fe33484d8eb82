import json
import re
from pathlib import Path

import pytest

from inkforge.options import (
    BuildArtifacts,
    BuildMode,
    BuildResult,
    MetadataResult,
    Network,
    OptimizationPasses,
    OptimizationResult,
    OutputType,
    UnstableFlags,
    Verbosity,
    parse_hex_data,
)

_ANSI = re.compile(r"\x1b\[[0-9;]*m")


def _plain(text: str) -> str:
    return _ANSI.sub("", text)


def _full_result(**overrides) -> BuildResult:
    values = dict(
        dest_wasm=Path("/path/to/contract.wasm"),
        metadata_result=MetadataResult(
            dest_metadata=Path("/path/to/metadata.json"),
            dest_bundle=Path("/path/to/contract.contract"),
        ),
        target_directory=Path("/path/to/target"),
        optimization_result=OptimizationResult(
            dest_wasm=Path("/path/to/contract.wasm"),
            original_size=64.0,
            optimized_size=32.0,
        ),
        verbosity=Verbosity.QUIET,
        output_type=OutputType.JSON,
    )
    values.update(overrides)
    return BuildResult(**values)


def test_build_result_serialization_sanity_check():
    raw_result = """{
  "dest_wasm": "/path/to/contract.wasm",
  "metadata_result": {
    "dest_metadata": "/path/to/metadata.json",
    "dest_bundle": "/path/to/contract.contract"
  },
  "target_directory": "/path/to/target",
  "optimization_result": {
    "dest_wasm": "/path/to/contract.wasm",
    "original_size": 64.0,
    "optimized_size": 32.0
  },
  "build_mode": "Debug",
  "build_artifact": "All",
  "verbosity": "Quiet"
}"""
    assert _full_result().serialize_json() == raw_result


def test_serialization_of_missing_optionals_is_null():
    result = BuildResult(target_directory=Path("/t"))
    data = json.loads(result.serialize_json())
    assert data["dest_wasm"] is None
    assert data["metadata_result"] is None
    assert data["optimization_result"] is None
    assert "output_type" not in data


@pytest.mark.parametrize(
    "text, expected",
    [
        ("0", OptimizationPasses.ZERO),
        ("1", OptimizationPasses.ONE),
        ("2", OptimizationPasses.TWO),
        ("3", OptimizationPasses.THREE),
        ("4", OptimizationPasses.FOUR),
        ("s", OptimizationPasses.S),
        ("Z", OptimizationPasses.Z),
        ('"3"', OptimizationPasses.THREE),
    ],
)
def test_optimization_passes_parse(text, expected):
    assert OptimizationPasses.parse(text) is expected


def test_optimization_passes_unknown():
    with pytest.raises(ValueError, match="Unknown optimization passes for option 5"):
        OptimizationPasses.parse("5")


def test_optimization_passes_display_round_trip():
    for member in OptimizationPasses:
        assert OptimizationPasses.parse(str(member)) is member
    assert str(OptimizationPasses.Z) == "z"


def test_verbosity_from_flags():
    assert Verbosity.from_flags(False, False) is Verbosity.DEFAULT
    assert Verbosity.from_flags(True, False) is Verbosity.QUIET
    assert Verbosity.from_flags(False, True) is Verbosity.VERBOSE
    with pytest.raises(ValueError, match="Cannot pass both --quiet and --verbose flags"):
        Verbosity.from_flags(True, True)


def test_verbosity_is_verbose():
    assert Verbosity.DEFAULT.is_verbose() is True
    assert Verbosity.VERBOSE.is_verbose() is True
    assert Verbosity.QUIET.is_verbose() is False


def test_unstable_flags():
    assert UnstableFlags.from_options([]).original_manifest is False
    assert UnstableFlags.from_options(["original-manifest"]).original_manifest is True
    with pytest.raises(ValueError, match=r'Unknown unstable-options \["bogus"\]'):
        UnstableFlags.from_options(["original-manifest", "bogus"])


def test_build_artifacts_steps():
    assert BuildArtifacts.ALL.steps() == 5
    assert BuildArtifacts.CODE_ONLY.steps() == 3
    assert BuildArtifacts.CHECK_ONLY.steps() == 2


def test_mode_and_network_display():
    debug_text = _plain(_full_result(build_mode=BuildMode.DEBUG).display())
    release_text = _plain(_full_result(build_mode=BuildMode.RELEASE).display())
    assert "The contract was built in DEBUG mode." in debug_text
    assert "The contract was built in RELEASE mode." in release_text
    assert BuildMode.DEBUG.__str__() == "debug"
    assert BuildMode.RELEASE.__str__() == "release"
    assert Network.ONLINE.__str__() == ""
    assert Network.OFFLINE.__str__() == "--offline"


def test_parse_hex_data():
    assert parse_hex_data("babebabe01") == bytes([0xBA, 0xBE, 0xBA, 0xBE, 0x01])
    assert parse_hex_data("") == b""
    with pytest.raises(ValueError):
        parse_hex_data("abc")
    with pytest.raises(ValueError):
        parse_hex_data("zz")


def test_display_all_artifacts():
    text = _plain(_full_result().display())
    assert text == (
        "\nOriginal wasm size: 64.0K, Optimized: 32.0K\n\n"
        "The contract was built in DEBUG mode.\n\n"
        "Your contract artifacts are ready. You can find them in:\n"
        f"{Path('/path/to/target')}\n\n"
        "  - contract.contract (code + metadata)\n"
        "  - contract.wasm (the contract's code)\n"
        "  - metadata.json (the contract's metadata)"
    )


def test_display_code_only():
    result = _full_result(
        build_artifact=BuildArtifacts.CODE_ONLY,
        build_mode=BuildMode.RELEASE,
        metadata_result=None,
    )
    text = _plain(result.display())
    assert text == (
        "\nOriginal wasm size: 64.0K, Optimized: 32.0K\n\n"
        "The contract was built in RELEASE mode.\n\n"
        "Your contract's code is ready. You can find it here:\n"
        f"{Path('/path/to/contract.wasm')}"
    )


def test_display_requires_optimization_result():
    with pytest.raises(ValueError, match="optimization result must exist"):
        _full_result(optimization_result=None).display()