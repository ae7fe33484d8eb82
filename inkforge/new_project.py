"""Creation of a new contract project from a template archive."""

from __future__ import annotations

from pathlib import Path

from inkforge.util import unzip


def execute(name: str, directory=None, template: bytes = b"") -> Path:
    """Create the contract project ``name`` inside ``directory``.

    ``directory`` defaults to the current working directory and ``template``
    is a zip archive whose files have ``{{name}}`` and ``{{camel_name}}``
    replaced. Returns the directory of the new project.
    """
    if not all(c.isalnum() or c == "_" for c in name):
        raise ValueError(
            "Contract names can only contain alphanumeric characters and underscores"
        )
    if not name[:1].isalpha():
        raise ValueError("Contract names must begin with an alphabetic character")

    base = Path.cwd() if directory is None else Path(directory)
    out_dir = base / name
    if (out_dir / "Cargo.toml").exists():
        raise FileExistsError(f"A Cargo package already exists in {name}")
    if not out_dir.exists():
        out_dir.mkdir()

    unzip(template, out_dir, name)
    return out_dir