import io
import logging

import pytest

from sunxikit.script import Script
from sunxikit.script_uboot import UbootError, generate_uboot


def _render(script):
    out = io.StringIO()
    ok = generate_uboot(out, script)
    return ok, out.getvalue()


def _dram_script():
    script = Script()
    dram = script.add_section("dram_para")
    dram.add_single("dram_type", 3)
    dram.add_single("dram_clk", 408)
    dram.add_single("dram_tpr0", 0x30926692)
    dram.add_single("dram_tpr1", 0)
    dram.add_single("dram_zq", 0x7F)
    dram.add_single("unrelated", 5)
    return script


def test_missing_section_raises():
    script = Script()
    script.add_section("target")
    with pytest.raises(UbootError, match="dram_para"):
        generate_uboot(io.StringIO(), script)


def test_output_frame():
    ok, text = _render(_dram_script())
    assert ok is True
    assert text.startswith("/* this file is generated, don't edit it yourself */\n")
    assert "#include <asm/arch/dram.h>\n" in text
    assert "static struct dram_para dram_para = {\n" in text
    assert text.endswith("{\n\treturn dramc_init(&dram_para);\n}\n")


def test_member_formatting():
    _, text = _render(_dram_script())
    assert "\t.clock = 408,\n" in text
    assert "\t.type = 3,\n" in text
    assert "\t.tpr0 = 0x30926692,\n" in text
    assert "\t.tpr1 = 0,\n" in text
    assert "\t.zq = 127,\n" in text
    assert "unrelated" not in text


def test_members_follow_table_order():
    _, text = _render(_dram_script())
    assert text.index(".clock") < text.index(".type") < text.index(".zq")


def test_gpio_and_null_members():
    script = Script()
    dram = script.add_section("dram_para")
    dram.add_gpio("dram_cas", 1, 2, (1, -1, 0, -1))
    dram.add_gpio("dram_size", 0xFFFF, 4, (-1, -1, -1, 1))
    dram.add_null("dram_odt_en")
    _, text = _render(script)
    assert "\t.cas = GPIO_CFG(1, 2, 1, 0xff, 0, 0xff),\n" in text
    assert "\t.size = GPIO_AXP_CFG(4, 0xff, 0xff, 0xff, 1),\n" in text
    assert "\t/* odt_en is NULL */\n" in text


def test_string_field_is_reported(caplog):
    script = Script()
    dram = script.add_section("dram_para")
    dram.add_string("dram_type", "ddr3")
    dram.add_single("dram_clock", 480)
    with caplog.at_level(logging.ERROR):
        ok, text = _render(script)
    assert ok is False
    assert "dram_para: dram_type: invalid field" in caplog.text
    assert "\t.clock = 480,\n" in text
    assert "ddr3" not in text