import pytest

from sunxikit.script import (
    GpioEntry,
    NullEntry,
    Script,
    SingleEntry,
    StringEntry,
    ValueType,
)


def test_entry_type_numbers_match_binary_format():
    section = Script().add_section("x")
    assert section.add_single("a", 1).type == 1
    assert section.add_string("b", "text").type == 2
    assert section.add_gpio("c", 1, 2, [0, 0, 0, 0]).type == 4
    assert section.add_null("d").type == 5


def test_sections_keep_insertion_order():
    script = Script()
    names = ["product", "dram_para", "uart_para"]
    for name in names:
        script.add_section(name)
    assert [s.name for s in script] == names
    assert len(script) == 3


def test_section_name_truncated_to_31_chars():
    script = Script()
    long_name = "s" * 40
    section = script.add_section(long_name)
    assert section.name == long_name[:31]
    assert len(section.name) == 31
    assert script.find_section(long_name) is None
    assert script.find_section(long_name[:31]) is section


def test_empty_section_name_rejected():
    with pytest.raises(ValueError):
        Script().add_section("")


def test_find_section_returns_first_match_or_none():
    script = Script()
    first = script.add_section("a")
    script.add_section("a")
    assert script.find_section("a") is first
    assert script.find_section("b") is None


def test_entries_have_types_and_values():
    section = Script().add_section("dram_para")
    null = section.add_null("empty")
    single = section.add_single("dram_clk", 480)
    text = section.add_string("machine", "cubie")
    gpio = section.add_gpio("led", 8, 20, [1, -1, -1, 0])
    assert isinstance(null, NullEntry) and null.type is ValueType.NULL
    assert isinstance(single, SingleEntry) and single.value == 480
    assert isinstance(text, StringEntry) and text.value == "cubie"
    assert isinstance(gpio, GpioEntry)
    assert gpio.data == (1, -1, -1, 0)
    assert (gpio.port, gpio.port_num) == (8, 20)
    assert [e.name for e in section] == ["empty", "dram_clk", "machine", "led"]


def test_single_value_wraps_to_uint32():
    section = Script().add_section("x")
    assert section.add_single("neg", -1).value == 0xFFFFFFFF
    assert section.add_single("big", 0x1_0000_0005).value == 5


def test_entry_name_truncated():
    section = Script().add_section("x")
    entry = section.add_single("k" * 50, 1)
    assert entry.name == "k" * 31


@pytest.mark.parametrize("method,args", [
    ("add_null", ()),
    ("add_single", (1,)),
    ("add_gpio", (1, 2, [0, 0, 0, 0])),
])
def test_empty_entry_name_rejected(method, args):
    section = Script().add_section("x")
    with pytest.raises(ValueError):
        getattr(section, method)("", *args)
    assert len(section) == 0


def test_gpio_data_must_have_four_values():
    section = Script().add_section("x")
    with pytest.raises(ValueError):
        section.add_gpio("pin", 1, 2, [0, 0, 0])
    assert section.find_entry("pin") is None


def test_gpio_power_port():
    section = Script().add_section("x")
    assert section.add_gpio("p", 0xFFFF, 3, [-1] * 4).is_power
    assert not section.add_gpio("q", 2, 3, [-1] * 4).is_power


def test_find_and_remove_entry():
    section = Script().add_section("x")
    a = section.add_single("a", 1)
    b = section.add_single("b", 2)
    assert section.find_entry("b") is b
    section.remove_entry(b)
    assert section.find_entry("b") is None
    assert section.entries == [a]
    with pytest.raises(ValueError):
        section.remove_entry(b)


def test_remove_entry_uses_identity():
    section = Script().add_section("x")
    first = section.add_single("a", 1)
    second = section.add_single("a", 1)
    section.remove_entry(second)
    assert len(section) == 1
    assert section.entries[0] is first


def test_remove_section():
    script = Script()
    keep = script.add_section("keep")
    drop = script.add_section("drop")
    script.remove_section(drop)
    assert script.sections == [keep]
    with pytest.raises(ValueError):
        script.remove_section(drop)