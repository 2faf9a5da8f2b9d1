"""Per-SoC memory layout facts needed to run code on Allwinner chips over FEL."""

from __future__ import annotations

import struct
import sys
from dataclasses import dataclass
from typing import Optional, Tuple

SOC_NAME_MAX = 7


@dataclass(frozen=True)
class SramSwapBuffer:
    """A BROM buffer (buf1) and its backup location (buf2), swapped around SPL runs."""

    buf1: int
    buf2: int
    size: int


@dataclass(frozen=True)
class WatchdogInfo:
    """The register to write, and the value, that triggers a watchdog reset."""

    reg_mode: int
    reg_mode_value: int


@dataclass(frozen=True)
class SocInfo:
    """Memory layout and quirks of one SoC variant."""

    soc_id: int = 0
    name: Optional[str] = None
    spl_addr: int = 0
    scratch_addr: int = 0
    thunk_addr: int = 0
    thunk_size: int = 0
    needs_l2en: bool = False
    mmu_tt_addr: int = 0
    sid_base: int = 0
    sid_offset: int = 0
    rvbar_reg: int = 0
    watchdog: Optional[WatchdogInfo] = None
    sid_fix: bool = False
    icache_fix: bool = False
    needs_smc_workaround_if_zero_word_at_addr: int = 0
    sram_size: int = 0
    swap_buffers: Tuple[SramSwapBuffer, ...] = ()


_VERSION = struct.Struct("<8sIIHBBI2I")


@dataclass(frozen=True)
class AwFelVersion:
    """SoC version information as returned by the FEL protocol."""

    signature: bytes
    soc_id: int
    unknown_0a: int
    protocol: int
    unknown_12: int
    unknown_13: int
    scratchpad: int
    pad: Tuple[int, int] = (0, 0)

    SIZE = _VERSION.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "AwFelVersion":
        """Decode the 32-byte little-endian version reply."""
        if len(data) < _VERSION.size:
            raise ValueError(f"FEL version data needs {_VERSION.size} bytes, "
                             f"got {len(data)}")
        (signature, soc_id, unknown_0a, protocol, unknown_12, unknown_13,
         scratchpad, pad0, pad1) = _VERSION.unpack_from(bytes(data), 0)
        return cls(signature, soc_id, unknown_0a, protocol, unknown_12,
                   unknown_13, scratchpad, (pad0, pad1))


def _swap(*triples: Tuple[int, int, int]) -> Tuple[SramSwapBuffer, ...]:
    return tuple(SramSwapBuffer(*t) for t in triples)


A10_A13_A20_SWAP = _swap(
    (0x1C00, 0xA400, 0x0400),   # IRQ stack
    (0x5C00, 0xA800, 0x1400),   # stack
    (0x7C00, 0xBC00, 0x0400),   # something important
)
A31_SWAP = _swap(
    (0x1800, 0x20000, 0x800),
    (0x5C00, 0x20800, 0x8000 - 0x5C00),
)
A64_SWAP = _swap(
    (0x11C00, 0x31400, 0x0400),
    (0x15C00, 0x31800, 0x1400),
    (0x17C00, 0x32C00, 0x0400),
)
AR100_ABUSING_SWAP = _swap(
    (0x1800, 0x44000, 0x800),
    (0x5C00, 0x44800, 0x8000 - 0x5C00),
)
A80_SWAP = _swap(
    (0x11800, 0x20000, 0x800),
    (0x15400, 0x20800, 0x18000 - 0x15400),
)
H6_SWAP = _swap(
    (0x21C00, 0x42400, 0x0400),
    (0x25C00, 0x42800, 0x1400),
    (0x27C00, 0x43C00, 0x0400),
)
V831_SWAP = _swap((0x21000, 0x38000, 0x1000))
H616_SWAP = _swap((0x21000, 0x52A00, 0x1000))
R329_SWAP = _swap((0x101000, 0x13BC00, 0x0400))
F1C100S_SWAP = _swap(
    (0x1C00, 0x9000, 0x0400),
    (0x5C00, 0x9400, 0x1400),
    (0x7C00, 0xA800, 0x0400),
)
A133_SWAP = _swap((0x21000, 0x42400, 0x0400))
GENERIC_SWAP = _swap((0x1C00, 0x5800, 0x400))

WD_A10_COMPAT = WatchdogInfo(0x01C20C94, 3)
WD_H3_COMPAT = WatchdogInfo(0x01C20CB8, 1)
WD_A80 = WatchdogInfo(0x06000CB8, 1)
WD_H6_COMPAT = WatchdogInfo(0x030090B8, 1)
WD_V853_COMPAT = WatchdogInfo(0x020500B8, 0x16AA0001)

SOC_INFO_TABLE: Tuple[SocInfo, ...] = (
    SocInfo(soc_id=0x1623, name="A10", scratch_addr=0x1000,
            thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SWAP, sram_size=48 * 1024,
            needs_l2en=True, sid_base=0x01C23800, watchdog=WD_A10_COMPAT),
    SocInfo(soc_id=0x1625, name="A13", scratch_addr=0x1000,
            thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SWAP, sram_size=48 * 1024,
            needs_l2en=True, sid_base=0x01C23800, watchdog=WD_A10_COMPAT),
    SocInfo(soc_id=0x1651, name="A20", scratch_addr=0x1000,
            thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SWAP, sram_size=48 * 1024,
            sid_base=0x01C23800, watchdog=WD_A10_COMPAT),
    SocInfo(soc_id=0x1650, name="A23", scratch_addr=0x1000,
            thunk_addr=0x46E00, thunk_size=0x200,
            swap_buffers=AR100_ABUSING_SWAP, sram_size=64 * 1024,
            sid_base=0x01C23800, watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1633, name="A31", scratch_addr=0x1000,
            thunk_addr=0x22E00, thunk_size=0x200,
            swap_buffers=A31_SWAP, sram_size=32 * 1024,
            watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1667, name="A33", scratch_addr=0x1000,
            thunk_addr=0x46E00, thunk_size=0x200,
            swap_buffers=AR100_ABUSING_SWAP, sram_size=32 * 1024,
            sid_base=0x01C23800, watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1689, name="A64", spl_addr=0x10000, scratch_addr=0x11000,
            thunk_addr=0x31200, thunk_size=0x200,
            swap_buffers=A64_SWAP, sram_size=140 * 1024,
            sid_base=0x01C14000, sid_offset=0x200, rvbar_reg=0x017000A0,
            needs_smc_workaround_if_zero_word_at_addr=0x40004,
            watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1639, name="A80", spl_addr=0x10000, scratch_addr=0x11000,
            thunk_addr=0x23400, thunk_size=0x200,
            swap_buffers=A80_SWAP, sram_size=40 * 1024,
            sid_base=0x01C0E000, sid_offset=0x200, watchdog=WD_A80),
    SocInfo(soc_id=0x1663, name="F1C100s", scratch_addr=0x1000,
            thunk_addr=0xB400, thunk_size=0x200,
            swap_buffers=F1C100S_SWAP, sram_size=32 * 1024,
            watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1673, name="A83T", scratch_addr=0x1000,
            mmu_tt_addr=0x44000, thunk_addr=0x46E00, thunk_size=0x200,
            swap_buffers=AR100_ABUSING_SWAP, sram_size=32 * 1024,
            sid_base=0x01C14000, sid_offset=0x200, watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1680, name="H3", scratch_addr=0x1000,
            mmu_tt_addr=0x8000, thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SWAP, sram_size=108 * 1024,
            sid_base=0x01C14000, sid_offset=0x200, sid_fix=True,
            needs_smc_workaround_if_zero_word_at_addr=0x40004,
            watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1681, name="V3s", scratch_addr=0x1000,
            mmu_tt_addr=0x8000, thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SWAP, sram_size=60 * 1024,
            sid_base=0x01C23800, watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1718, name="H5", spl_addr=0x10000, scratch_addr=0x11000,
            thunk_addr=0x31200, thunk_size=0x200,
            swap_buffers=A64_SWAP, sram_size=140 * 1024,
            sid_base=0x01C14000, sid_offset=0x200, rvbar_reg=0x017000A0,
            needs_smc_workaround_if_zero_word_at_addr=0x40004,
            watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1701, name="R40", scratch_addr=0x1000,
            thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SWAP, sram_size=48 * 1024,
            sid_base=0x01C1B000, sid_offset=0x200, watchdog=WD_A10_COMPAT),
    SocInfo(soc_id=0x1719, name="A63", spl_addr=0x20000, scratch_addr=0x21000,
            thunk_addr=0x42200, thunk_size=0x200,
            swap_buffers=H6_SWAP, sram_size=144 * 1024,
            sid_base=0x03006000, sid_offset=0x200, rvbar_reg=0x09010040,
            watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1728, name="H6", spl_addr=0x20000, scratch_addr=0x21000,
            thunk_addr=0x42200, thunk_size=0x200,
            swap_buffers=H6_SWAP, sram_size=144 * 1024,
            sid_base=0x03006000, sid_offset=0x200, rvbar_reg=0x09010040,
            needs_smc_workaround_if_zero_word_at_addr=0x100004,
            watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1816, name="V536", spl_addr=0x20000, scratch_addr=0x21000,
            thunk_addr=0x2A200, thunk_size=0x200,
            swap_buffers=V831_SWAP, sram_size=228 * 1024,
            sid_base=0x03006000, sid_offset=0x200, watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1817, name="V831", spl_addr=0x20000, scratch_addr=0x21000,
            thunk_addr=0x2A200, thunk_size=0x200,
            swap_buffers=V831_SWAP, sram_size=228 * 1024,
            sid_base=0x03006000, sid_offset=0x200, watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1823, name="H616", spl_addr=0x20000, scratch_addr=0x21000,
            thunk_addr=0x53A00, thunk_size=0x200,
            swap_buffers=H616_SWAP, sram_size=207 * 1024,
            sid_base=0x03006000, sid_offset=0x200, rvbar_reg=0x09010040,
            watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1851, name="R329", spl_addr=0x100000,
            scratch_addr=0x101000, mmu_tt_addr=0x130000,
            thunk_addr=0x13BA00, thunk_size=0x200,
            swap_buffers=R329_SWAP, sram_size=1856 * 1024,
            sid_base=0x03006000, sid_offset=0x200, rvbar_reg=0x08100040,
            watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1886, name="V853", spl_addr=0x20000, scratch_addr=0x21000,
            thunk_addr=0x3A200, thunk_size=0x200,
            swap_buffers=V831_SWAP, sram_size=132 * 1024,
            sid_base=0x03006000, sid_offset=0x200, icache_fix=True,
            watchdog=WD_V853_COMPAT),
    SocInfo(soc_id=0x1859, name="R528", spl_addr=0x20000, scratch_addr=0x21000,
            thunk_addr=0x3A200, thunk_size=0x200,
            swap_buffers=V831_SWAP, sram_size=160 * 1024,
            sid_base=0x03006000, sid_offset=0x200, icache_fix=True,
            watchdog=WD_V853_COMPAT),
    SocInfo(soc_id=0x1721, name="V5", spl_addr=0x20000, scratch_addr=0x21000,
            thunk_addr=0x42200, thunk_size=0x200,
            swap_buffers=H6_SWAP, sram_size=136 * 1024,
            sid_base=0x03006000, sid_offset=0x200, watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1855, name="A133", spl_addr=0x20000, scratch_addr=0x21000,
            thunk_addr=0x42200, thunk_size=0x200,
            swap_buffers=A133_SWAP, sram_size=144 * 1024,
            sid_base=0x03006000, sid_offset=0x200, rvbar_reg=0x08100040,
            watchdog=WD_H6_COMPAT),
)

# Assumes a BROM like A10/A13/A20/A31 but no SRAM beyond 0x8000, and IRQ
# stack usage below 0x400 bytes.
GENERIC_SOC_INFO = SocInfo(scratch_addr=0x1000, thunk_addr=0x5680,
                           thunk_size=0x180, swap_buffers=GENERIC_SWAP)


def _lookup(soc_id: int) -> Optional[SocInfo]:
    return next((soc for soc in SOC_INFO_TABLE if soc.soc_id == soc_id), None)


def get_soc_info_from_id(soc_id: int) -> SocInfo:
    """Return the record for ``soc_id``, or the generic one with a warning."""
    soc = _lookup(soc_id)
    if soc is None:
        sys.stdout.write("Warning: no 'soc_sram_info' data for your SoC "
                         f"(id={soc_id:04X})\n")
        return GENERIC_SOC_INFO
    return soc


def get_soc_info_from_version(version: AwFelVersion) -> SocInfo:
    """Return the record for the SoC that sent this FEL version reply."""
    return get_soc_info_from_id(version.soc_id)


def get_soc_name_from_id(soc_id: int) -> str:
    """Human-readable SoC name, or the hexadecimal id for unknown SoCs."""
    soc = _lookup(soc_id)
    if soc is not None and soc.name is not None:
        return soc.name[:SOC_NAME_MAX]
    return f"0x{soc_id:04X}"[:SOC_NAME_MAX - 1]