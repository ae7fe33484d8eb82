"""Release profile defaults for building contracts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OptLevel(Enum):
    """The ``opt-level`` profile setting."""

    NO_OPTIMIZATIONS = 0
    O1 = 1
    O2 = 2
    O3 = 3
    S = "s"
    Z = "z"


class Lto(Enum):
    """The ``lto`` profile setting."""

    THIN_LOCAL = False
    FAT = "fat"
    THIN = "thin"
    OFF = "off"


class PanicStrategy(Enum):
    """The ``panic`` profile setting."""

    UNWIND = "unwind"
    ABORT = "abort"


@dataclass(frozen=True)
class Profile:
    """Subset of cargo profile settings used as defaults for contracts.

    ``codegen_units`` of ``None`` leaves the compiler default in place.
    """

    opt_level: OptLevel
    lto: Lto
    codegen_units: int | None
    overflow_checks: bool
    panic: PanicStrategy

    @classmethod
    def default_contract_release(cls) -> Profile:
        """The preferred defaults for a contract release build."""
        return cls(
            opt_level=OptLevel.Z,
            lto=Lto.FAT,
            codegen_units=1,
            overflow_checks=True,
            panic=PanicStrategy.ABORT,
        )

    def merge(self, table: dict) -> None:
        """Add every setting missing from ``table``; keep those already set."""
        table.setdefault("opt-level", self.opt_level.value)
        table.setdefault("lto", self.lto.value)
        if self.codegen_units is not None:
            table.setdefault("codegen-units", self.codegen_units)
        table.setdefault("overflow-checks", self.overflow_checks)
        table.setdefault("panic", self.panic.value)