"""Checks on the import section of a compiled contract's Wasm module."""

from __future__ import annotations

from dataclasses import dataclass

from termcolor import colored

from inkforge.util import decode_hex

INK_ENFORCE_ERR = "__ink_enforce_error_"
ALLOWED_PREFIXES = ("seal", "memory")

_WASM_MAGIC = b"\x00asm"
_WASM_VERSION = b"\x01\x00\x00\x00"
_IMPORT_SECTION_ID = 2

_PANIC_IMPORT_MESSAGE = (
    "An unexpected panic function import was found in the contract Wasm.\n"
    "This typically goes back to a known bug in the Rust compiler "
    "(rust-lang/rust issue 78744).\n\n"
    "As a workaround try to insert `overflow-checks = false` into your `Cargo.toml`.\n"
    "This will disable safe math operations, but unfortunately we are currently not \n"
    "aware of a better workaround until the bug in the compiler is fixed."
)


class WasmValidationError(ValueError):
    """Raised when a Wasm module is malformed or fails validation."""


@dataclass(frozen=True)
class Import:
    """One entry of a Wasm import section."""

    module: str
    field: str
    kind: int


@dataclass(frozen=True)
class CannotCallTraitMessage:
    """A `&mut self` trait message was called where only `&self` is allowed."""

    trait_ident: str
    message_ident: str
    message_selector: bytes
    message_mut: bool

    def __str__(self) -> str:
        receiver = "&mut self" if self.message_mut else "&self"
        return (
            "An error was found while compiling the contract:\n"
            f"The ink! message `{self.trait_ident}::{self.message_ident}` with the "
            f"selector `0x{self.message_selector.hex()}` contains an invalid trait call.\n\n"
            "Please check if the receiver of the function to call is consistent\n"
            f"with the scope in which it is called. The receiver is `{receiver}`."
        )


@dataclass(frozen=True)
class CannotCallTraitConstructor:
    """A trait constructor was called in a context that forbids it."""

    trait_ident: str
    constructor_ident: str
    constructor_selector: bytes

    def __str__(self) -> str:
        return (
            "An error was found while compiling the contract:\n"
            f"The ink! constructor `{self.trait_ident}::{self.constructor_ident}` with the "
            f"selector `0x{self.constructor_selector.hex()}` contains an invalid trait call.\n"
            "Constructor never need to be forwarded, please check if this is the case."
        )


class _Reader:
    """Sequential reader over a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def take(self, count: int) -> bytes:
        if count < 0 or self._pos + count > len(self._data):
            raise WasmValidationError("unexpected end of data")
        chunk = self._data[self._pos : self._pos + count]
        self._pos += count
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]

    def uleb(self) -> int:
        result = 0
        shift = 0
        while True:
            b = self.byte()
            result |= (b & 0x7F) << shift
            if not b & 0x80:
                return result
            shift += 7
            if shift > 63:
                raise WasmValidationError("LEB128 value too long")

    def name(self) -> str:
        raw = self.take(self.uleb())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WasmValidationError(f"invalid UTF-8 name: {exc}") from exc

    def limits(self) -> None:
        flags = self.byte()
        self.uleb()
        if flags & 0x01:
            self.uleb()


def _read_import(reader: _Reader) -> Import:
    module = reader.name()
    field = reader.name()
    kind = reader.byte()
    if kind == 0x00:  # function
        reader.uleb()
    elif kind == 0x01:  # table
        reader.byte()
        reader.limits()
    elif kind == 0x02:  # memory
        reader.limits()
    elif kind == 0x03:  # global
        reader.byte()
        reader.byte()
    elif kind == 0x04:  # tag
        reader.byte()
        reader.uleb()
    else:
        raise WasmValidationError(f"unknown import kind {kind:#x}")
    return Import(module=module, field=field, kind=kind)


def parse_imports(wasm: bytes) -> list[Import] | None:
    """Return the entries of the module's import section.

    Returns ``None`` if the module has no import section at all.
    """
    reader = _Reader(bytes(wasm))
    if reader.take(4) != _WASM_MAGIC:
        raise WasmValidationError("not a Wasm module: bad magic number")
    if reader.take(4) != _WASM_VERSION:
        raise WasmValidationError("unsupported Wasm version")

    while not reader.at_end:
        section_id = reader.byte()
        content = reader.take(reader.uleb())
        if section_id != _IMPORT_SECTION_ID:
            continue
        section = _Reader(content)
        imports = [_read_import(section) for _ in range(section.uleb())]
        if not section.at_end:
            raise WasmValidationError("trailing bytes in import section")
        return imports
    return None


class _ScaleReader(_Reader):
    """Reader for the SCALE encoding used by the error markers."""

    def compact(self) -> int:
        first = self.byte()
        mode = first & 0b11
        if mode == 0:
            return first >> 2
        if mode == 1:
            return int.from_bytes(bytes([first]) + self.take(1), "little") >> 2
        if mode == 2:
            return int.from_bytes(bytes([first]) + self.take(3), "little") >> 2
        return int.from_bytes(self.take((first >> 2) + 4), "little")

    def string(self) -> str:
        raw = self.take(self.compact())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WasmValidationError(f"invalid UTF-8 string: {exc}") from exc

    def boolean(self) -> bool:
        value = self.byte()
        if value not in (0, 1):
            raise WasmValidationError(f"invalid boolean byte {value}")
        return value == 1


def decode_enforced_error(
    data: bytes,
) -> CannotCallTraitMessage | CannotCallTraitConstructor:
    """Decode a SCALE encoded error marker payload."""
    try:
        reader = _ScaleReader(bytes(data))
        variant = reader.byte()
        if variant == 1:
            return CannotCallTraitMessage(
                trait_ident=reader.string(),
                message_ident=reader.string(),
                message_selector=reader.take(4),
                message_mut=reader.boolean(),
            )
        if variant == 2:
            return CannotCallTraitConstructor(
                trait_ident=reader.string(),
                constructor_ident=reader.string(),
                constructor_selector=reader.take(4),
            )
        raise WasmValidationError(f"unknown enforced error variant {variant}")
    except WasmValidationError as exc:
        raise WasmValidationError(
            "The `EnforcedError` object could not be decoded. The probable cause is a "
            "mismatch between the ink! definition of the type and the local "
            f"definition: {exc}"
        ) from exc


def _parse_linker_error(field: str) -> str:
    encoded = field[len(INK_ENFORCE_ERR) :]
    try:
        payload = decode_hex(encoded)
    except ValueError as exc:
        raise WasmValidationError(f"decoding hex failed: {exc}") from exc
    return str(decode_enforced_error(payload))


def _check_import(field: str) -> str | None:
    if field.startswith(ALLOWED_PREFIXES):
        return None
    return (
        f"An unexpected import function was found in the contract Wasm: {field}.\n"
        "The only allowed import functions are those starting with one of the "
        f"following prefixes:\n{', '.join(ALLOWED_PREFIXES)}"
    )


def validate_import_section(wasm: bytes) -> None:
    """Check the module's imports, raising ``WasmValidationError`` on failure.

    Panic imports and ink! error markers are reported with an explanation,
    and only imports starting with an allowed prefix are accepted.
    """
    imports = parse_imports(wasm)
    if not imports:
        return

    errors: list[str] = []
    rejected = False
    for entry in imports:
        field = entry.field
        if "panic" in field:
            errors.append(_PANIC_IMPORT_MESSAGE)
        elif field.startswith(INK_ENFORCE_ERR):
            errors.append(_parse_linker_error(field))

        problem = _check_import(field)
        if problem is not None:
            errors.append(problem)
            rejected = True

    if rejected:
        label = colored("ERROR:", attrs=["bold"])
        details = "\n\n\n".join(f"{label} {err}" for err in errors)
        raise WasmValidationError(f"Validation of the Wasm failed.\n\n\n{details}")