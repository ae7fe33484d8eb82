import pytest

from inkforge.validate_wasm import (
    CannotCallTraitConstructor,
    CannotCallTraitMessage,
    Import,
    WasmValidationError,
    decode_enforced_error,
    parse_imports,
    validate_import_section,
)

HEADER = b"\x00asm\x01\x00\x00\x00"


def _leb(value: int) -> bytes:
    out = bytearray()
    while True:
        b = value & 0x7F
        value >>= 7
        if value:
            out.append(b | 0x80)
        else:
            out.append(b)
            return bytes(out)


def _name(text: str) -> bytes:
    raw = text.encode("utf-8")
    return _leb(len(raw)) + raw


def _section(section_id: int, content: bytes) -> bytes:
    return bytes([section_id]) + _leb(len(content)) + content


def _func_import(module: str, field: str, type_index: int = 0) -> bytes:
    return _name(module) + _name(field) + b"\x00" + _leb(type_index)


def _module(*entries: bytes) -> bytes:
    type_section = _section(1, _leb(1) + b"\x60" + _leb(3) + b"\x7f\x7f\x7f" + _leb(0))
    import_section = _section(2, _leb(len(entries)) + b"".join(entries))
    return HEADER + type_section + import_section


def test_must_catch_panic_import():
    wasm = _module(_func_import("env", "_ZN4core9panicking5panic17h00e3acdd8048cb7cE"))
    with pytest.raises(WasmValidationError) as info:
        validate_import_section(wasm)
    assert (
        "An unexpected panic function import was found in the contract Wasm."
        in str(info.value)
    )


def test_must_catch_ink_enforce_error_marker_message():
    field = "__ink_enforce_error_0x0110466c697010666c6970aa97cade01"
    wasm = _module(_func_import("env", field))
    with pytest.raises(WasmValidationError) as info:
        validate_import_section(wasm)
    message = str(info.value)
    assert (
        "The ink! message `Flip::flip` with the selector `0xaa97cade` "
        "contains an invalid trait call." in message
    )
    assert "The receiver is `&mut self`." in message


def test_must_catch_ink_enforce_error_marker_constructor():
    field = "__ink_enforce_error_0x0210466c69700c6e657740d75d74"
    wasm = _module(_func_import("env", field))
    with pytest.raises(WasmValidationError) as info:
        validate_import_section(wasm)
    assert (
        "The ink! constructor `Flip::new` with the selector `0x40d75d74` "
        "contains an invalid trait call." in str(info.value)
    )


def test_must_catch_invalid_import():
    wasm = _module(_func_import("env", "some_fn"))
    with pytest.raises(WasmValidationError) as info:
        validate_import_section(wasm)
    message = str(info.value)
    assert "An unexpected import function was found in the contract Wasm: some_fn." in message
    assert message.startswith("Validation of the Wasm failed.\n\n\n")
    assert "seal, memory" in message


def test_must_validate_successfully():
    wasm = _module(_func_import("env", "seal_foo"), _func_import("env", "memory"))
    assert validate_import_section(wasm) is None
    assert [i.field for i in parse_imports(wasm)] == ["seal_foo", "memory"]


def test_must_validate_successfully_if_no_import_section_found():
    assert parse_imports(HEADER) is None
    assert validate_import_section(HEADER) is None


def test_all_errors_reported_in_order():
    wasm = _module(_func_import("env", "some_fn"), _func_import("env", "other_fn"))
    with pytest.raises(WasmValidationError) as info:
        validate_import_section(wasm)
    message = str(info.value)
    assert message.index("some_fn") < message.index("other_fn")
    assert message.count("\n\n\n") == 2


def test_parse_imports_handles_all_kinds():
    memory = _name("env") + _name("memory") + b"\x02" + b"\x01" + _leb(2) + _leb(16)
    table = _name("env") + _name("table") + b"\x01" + b"\x70" + b"\x00" + _leb(1)
    glob = _name("env") + _name("glob") + b"\x03" + b"\x7f" + b"\x00"
    func = _func_import("env", "seal_call", 300)
    imports = parse_imports(_module(memory, table, glob, func))
    assert imports == [
        Import("env", "memory", 2),
        Import("env", "table", 1),
        Import("env", "glob", 3),
        Import("env", "seal_call", 0),
    ]


def test_parse_imports_skips_other_sections():
    custom = _section(0, _name("name") + b"\x01\x02\x03")
    wasm = HEADER + custom + _section(2, _leb(1) + _func_import("env", "seal_x"))
    assert parse_imports(wasm) == [Import("env", "seal_x", 0)]


def test_parse_imports_rejects_bad_magic():
    with pytest.raises(WasmValidationError, match="magic"):
        parse_imports(b"\x00abc\x01\x00\x00\x00")


def test_parse_imports_rejects_truncated_module():
    wasm = _module(_func_import("env", "seal_foo"))
    with pytest.raises(WasmValidationError, match="unexpected end"):
        parse_imports(wasm[:-3])


def test_decode_enforced_error_message():
    decoded = decode_enforced_error(bytes.fromhex("0110466c697010666c6970aa97cade01"))
    assert decoded == CannotCallTraitMessage(
        trait_ident="Flip",
        message_ident="flip",
        message_selector=bytes.fromhex("aa97cade"),
        message_mut=True,
    )


def test_decode_enforced_error_immutable_receiver():
    decoded = decode_enforced_error(bytes.fromhex("0110466c697010666c6970aa97cade00"))
    assert "The receiver is `&self`." in str(decoded)


def test_decode_enforced_error_constructor():
    decoded = decode_enforced_error(bytes.fromhex("0210466c69700c6e657740d75d74"))
    assert decoded == CannotCallTraitConstructor(
        trait_ident="Flip",
        constructor_ident="new",
        constructor_selector=bytes.fromhex("40d75d74"),
    )


def test_decode_enforced_error_unknown_variant():
    with pytest.raises(WasmValidationError, match="could not be decoded"):
        decode_enforced_error(b"\x05\x00")


def test_decode_enforced_error_truncated():
    with pytest.raises(WasmValidationError, match="could not be decoded"):
        decode_enforced_error(bytes.fromhex("0110466c6970"))