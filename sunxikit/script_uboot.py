"""Generate a U-Boot DRAM parameter source file from a script tree."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, TextIO

from .script import Entry, Script, Section, ValueType

logger = logging.getLogger(__name__)

HEADER = ("/* this file is generated, don't edit it yourself */\n\n"
          "#include <common.h>\n"
          "#include <asm/arch/dram.h>\n\n")

DRAM_INIT = ("\nunsigned long sunxi_dram_init(void)\n"
             "{\n\treturn dramc_init(&dram_para);\n}\n")


class UbootError(ValueError):
    """Raised when the script lacks what the U-Boot output needs."""


@dataclass(frozen=True)
class _Member:
    name: str
    translation: Optional[str] = None
    hexa: bool = False

    @property
    def key(self) -> str:
        return self.translation if self.translation else self.name[5:]


DRAM_MEMBERS = (
    _Member("dram_clock"),
    _Member("dram_clk", "clock"),
    _Member("dram_type"),
    _Member("dram_rank_num"),
    _Member("dram_density"),
    _Member("dram_chip_density", "density"),
    _Member("dram_io_width"),
    _Member("dram_bus_width"),
    _Member("dram_cas"),
    _Member("dram_zq"),
    _Member("dram_odt_en"),
    _Member("dram_size"),
    _Member("dram_tpr0", hexa=True),
    _Member("dram_tpr1", hexa=True),
    _Member("dram_tpr2", hexa=True),
    _Member("dram_tpr3", hexa=True),
    _Member("dram_tpr4", hexa=True),
    _Member("dram_tpr5", hexa=True),
    _Member("dram_emr1", hexa=True),
    _Member("dram_emr2", hexa=True),
    _Member("dram_emr3", hexa=True),
)


def _hex(value: int) -> str:
    return "0" if value == 0 else f"{value:#x}"


def _format_member(key: str, hexa: bool, entry: Entry) -> Optional[str]:
    if entry.type == ValueType.SINGLE_WORD:
        value = entry.value & 0xFFFFFFFF
        return f"\t.{key} = {_hex(value) if hexa else value},\n"
    if entry.type == ValueType.NULL:
        return f"\t/* {key} is NULL */\n"
    if entry.type == ValueType.GPIO:
        if entry.is_power:
            head = f"GPIO_AXP_CFG({entry.port_num}"
        else:
            head = f"GPIO_CFG({entry.port}, {entry.port_num}"
        args = "".join(", 0xff" if v == -1 else f", {v & 0xFFFFFFFF}"
                       for v in entry.data)
        return f"\t.{key} = {head}{args}),\n"
    return None


def _write_dram_struct(out: TextIO, section: Section) -> bool:
    ok = True
    out.write("static struct dram_para dram_para = {\n")
    for member in DRAM_MEMBERS:
        entry = section.find_entry(member.name)
        if entry is None:
            continue
        text = _format_member(member.key, member.hexa, entry)
        if text is None:
            logger.error("dram_para: %s: invalid field", entry.name)
            ok = False
        else:
            out.write(text)
    out.write("};\n")
    out.write(DRAM_INIT)
    return ok


def generate_uboot(out: TextIO, script: Script) -> bool:
    """Write the DRAM setup source to ``out``.

    Returns False when some field had to be skipped; raises UbootError when
    the ``dram_para`` section is missing.
    """
    section = script.find_section("dram_para")
    if section is None:
        raise UbootError("dram_para: critical section missing")
    out.write(HEADER)
    return _write_dram_struct(out, section)