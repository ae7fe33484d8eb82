"""Helpers for invoking cargo, decoding hex, printing and unpacking templates."""

from __future__ import annotations

import binascii
import io
import logging
import os
import re
import stat
import subprocess
import zipfile
from collections.abc import Iterable
from pathlib import Path

from termcolor import colored

from inkforge.options import Verbosity

logger = logging.getLogger(__name__)

DEFAULT_KEY_COL_WIDTH = 13


class CargoError(RuntimeError):
    """Raised when cargo or rustc cannot be run or reports a failure."""


def _channel_of(release: str) -> str:
    pre = release.partition("-")[2]
    for channel in ("nightly", "beta", "dev"):
        if channel in pre:
            return channel
    return "stable"


def assert_channel() -> None:
    """Check that the active rust toolchain is a nightly or dev channel."""
    rustc = os.environ.get("RUSTC", "rustc")
    try:
        proc = subprocess.run(
            [rustc, "-vV"], capture_output=True, text=True, check=False
        )
    except OSError as exc:
        raise CargoError(f"Error executing `{rustc} -vV`") from exc
    if proc.returncode != 0:
        raise CargoError(f"`{rustc} -vV` failed with exit code: {proc.returncode}")

    release = next(
        (
            line.partition(":")[2].strip()
            for line in proc.stdout.splitlines()
            if line.startswith("release:")
        ),
        None,
    )
    if release is None:
        raise CargoError("Could not determine the rustc version")

    channel = _channel_of(release)
    if channel in ("stable", "beta"):
        raise CargoError(
            f'Cannot build using the "{channel}" channel. Switch to nightly.'
        )


def invoke_cargo(
    command: str,
    args: Iterable,
    working_dir=None,
    verbosity: Verbosity = Verbosity.DEFAULT,
    env: Iterable[tuple[str, str | None]] = (),
) -> bytes:
    """Run ``cargo <command> <args>`` and return its stdout.

    ``env`` holds ``(name, value)`` pairs; a value of ``None`` removes the
    variable from the child's environment. The cargo executable is taken
    from the ``CARGO`` environment variable if set.
    """
    cargo = os.environ.get("CARGO", "cargo")
    child_env = dict(os.environ)
    for key, value in env:
        if value is None:
            child_env.pop(key, None)
        else:
            child_env[key] = value

    cwd = None
    if working_dir is not None:
        cwd = os.fspath(working_dir)
        logger.debug("Setting cargo working dir to '%s'", cwd)

    cmd = [cargo, command, *(os.fspath(a) for a in args)]
    if verbosity is Verbosity.QUIET:
        cmd.append("--quiet")
    elif verbosity is Verbosity.VERBOSE and command != "dylint":
        cmd.append("--verbose")

    logger.info("Invoking cargo: %s", cmd)
    try:
        proc = subprocess.run(
            cmd, stdout=subprocess.PIPE, cwd=cwd, env=child_env, check=False
        )
    except OSError as exc:
        raise CargoError(f"Error executing `{cmd}`") from exc

    if proc.returncode != 0:
        raise CargoError(f"`{cmd}` failed with exit code: {proc.returncode}")
    return proc.stdout


def base_name(path) -> str:
    """The final component of ``path``."""
    name = Path(path).name
    if not name:
        raise ValueError(f"file name must exist in {os.fspath(path)!r}")
    return name


def decode_hex(value: str) -> bytes:
    """Decode a hex string with or without ``0x`` prefix."""
    while value.startswith("0x"):
        value = value[2:]
    try:
        return binascii.unhexlify(value.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"Invalid hex string: {exc}") from exc


def maybe_print(verbosity: Verbosity, message: str) -> None:
    """Print ``message`` unless output is suppressed."""
    if verbosity.is_verbose():
        print(message)


def name_value_line(name: str, value: str, width: int = DEFAULT_KEY_COL_WIDTH) -> str:
    """A line with ``name`` right aligned in ``width`` columns, then ``value``."""
    padded = f"{name:>{width}}"
    return (
        f"{colored(padded, 'light_magenta', attrs=['bold'])} "
        f"{colored(str(value), 'white')}"
    )


def _words(text: str) -> list[str]:
    words: list[str] = []
    for segment in re.split(r"[\W_]+", text):
        if not segment:
            continue
        start = 0
        mode = None
        for i, ch in enumerate(segment):
            if ch.islower():
                mode = "lower"
            elif ch.isupper():
                mode = "upper"
            if i + 1 >= len(segment):
                break
            nxt = segment[i + 1]
            after = segment[i + 2] if i + 2 < len(segment) else ""
            if mode == "lower" and nxt.isupper():
                words.append(segment[start : i + 1])
                start = i + 1
                mode = None
            elif mode == "upper" and ch.isupper() and nxt.isupper() and after.islower():
                words.append(segment[start : i + 1])
                start = i + 1
                mode = None
        words.append(segment[start:])
    return words


def to_upper_camel_case(name: str) -> str:
    """Convert ``name`` to UpperCamelCase."""
    return "".join(word[0].upper() + word[1:].lower() for word in _words(name))


def unzip(template: bytes, out_dir, name: str | None = None) -> None:
    """Extract the zip archive ``template`` into ``out_dir``.

    If ``name`` is given, every file is treated as a text template in which
    ``{{name}}`` and ``{{camel_name}}`` are replaced. Existing files are
    never overwritten.
    """
    out_dir = Path(out_dir)
    with zipfile.ZipFile(io.BytesIO(template)) as archive:
        for info in archive.infolist():
            outpath = out_dir / info.filename
            if info.filename.endswith("/"):
                outpath.mkdir(parents=True, exist_ok=True)
            else:
                outpath.parent.mkdir(parents=True, exist_ok=True)
                data = archive.read(info)
                if name is not None:
                    text = data.decode("utf-8")
                    text = text.replace("{{name}}", name)
                    text = text.replace("{{camel_name}}", to_upper_camel_case(name))
                    data = text.encode("utf-8")
                try:
                    with open(outpath, "xb") as outfile:
                        outfile.write(data)
                except FileExistsError:
                    raise FileExistsError(
                        f"File {info.filename} already exists"
                    ) from None

            mode = info.external_attr >> 16
            if os.name == "posix" and info.create_system == 3 and mode:
                os.chmod(outpath, stat.S_IMODE(mode))