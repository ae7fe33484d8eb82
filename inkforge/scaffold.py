"""Generation of the helper package that prints a contract's metadata."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path

import tomli_w

logger = logging.getLogger(__name__)

CARGO_TEMPLATE = "_Cargo.toml"
MAIN_TEMPLATE = "main.rs"

_DROPPED_DEPENDENCY_KEYS = ("default-features", "features", "optional")


def generate_package(
    target_dir,
    contract_package_name: str,
    ink_metadata_dependency: dict,
    template_dir,
) -> None:
    """Write the ``metadata-gen`` package into ``target_dir``.

    The manifest and entry point are taken from ``template_dir``. The
    ``contract`` dependency is pointed at ``contract_package_name`` and the
    ``ink_metadata`` dependency is copied from the contract's manifest, with
    its feature selection removed so that default features are used.
    """
    target = Path(target_dir)
    templates = Path(template_dir)
    logger.debug(
        "Generating metadata package for %s in %s", contract_package_name, target
    )

    cargo_toml = tomllib.loads((templates / CARGO_TEMPLATE).read_text(encoding="utf-8"))
    main_rs = (templates / MAIN_TEMPLATE).read_text(encoding="utf-8")

    deps = cargo_toml.get("dependencies")
    if not isinstance(deps, dict):
        raise ValueError("the template must specify a [dependencies] table")
    contract = deps.get("contract")
    if not isinstance(contract, dict):
        raise ValueError("the template must specify the contract dependency as a table")
    contract["package"] = contract_package_name

    ink_metadata = {
        key: value
        for key, value in ink_metadata_dependency.items()
        if key not in _DROPPED_DEPENDENCY_KEYS
    }
    deps["ink_metadata"] = ink_metadata

    target.joinpath("Cargo.toml").write_text(tomli_w.dumps(cargo_toml), encoding="utf-8")
    target.joinpath("main.rs").write_text(main_rs, encoding="utf-8")