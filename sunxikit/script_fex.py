"""Read and write the plain-text .fex form of a sunxi script."""

from __future__ import annotations

import logging
import string
from typing import Iterable, List, Optional, TextIO, Tuple, Union

from .script import GPIO_BANK_MAX, POWER_PORT, Entry, Script, Section, ValueType

logger = logging.getLogger(__name__)

INT32_MAX = 0x7FFFFFFF
UINT32_MAX = 0xFFFFFFFF
_LLONG_MIN = -(1 << 63)
_LLONG_MAX = (1 << 63) - 1

_BLANK = " \t"
_SPACE = " \t\n\v\f\r"
_ALNUM = string.ascii_letters + string.digits
_KEY_CHARS = _ALNUM + "_-"
_SECTION_CHARS = _ALNUM + "_-/"
_DIGITS = {8: "01234567", 10: string.digits, 16: string.hexdigits}

HEXA_ENTRIES = (
    "dram_baseaddr", "dram_zq", "dram_tpr", "dram_emr",
    "g2d_size",
    "rtp_press_threshold", "rtp_sensitive_level",
    "ctp_twi_addr", "csi_twi_addr", "csi_twi_addr_b", "tkey_twi_addr",
    "lcd_gamma_tbl_",
    "gsensor_twi_addr",
)


class FexParseError(ValueError):
    """Raised when .fex text cannot be parsed."""

    def __init__(self, message: str, filename: Optional[str] = None,
                 line: Optional[int] = None,
                 column: Optional[int] = None) -> None:
        super().__init__(message)
        self.filename = filename
        self.line = line
        self.column = column


# ---------------------------------------------------------------------------
# generator
# ---------------------------------------------------------------------------

def _is_hexa(name: str) -> bool:
    """True when the name, trailing digits ignored, prefixes a hex entry name."""
    stem = name.rstrip(string.digits)
    return any(item.startswith(stem) for item in HEXA_ENTRIES)


def _signed32(value: int) -> int:
    value &= UINT32_MAX
    return value - (1 << 32) if value > INT32_MAX else value


def _format_entry(entry: Entry) -> str:
    if entry.type == ValueType.SINGLE_WORD:
        if _is_hexa(entry.name):
            text = f"0x{entry.value & UINT32_MAX:x}"
        else:
            text = str(_signed32(entry.value))
        return f"{entry.name} = {text}\n"
    if entry.type == ValueType.STRING:
        return f'{entry.name} = "{entry.value}"\n'
    if entry.type == ValueType.GPIO:
        if entry.port == POWER_PORT:
            head = f"{entry.name} = port:power{entry.port_num}"
        else:
            bank = chr(ord("A") - 1 + entry.port)
            head = f"{entry.name} = port:P{bank}{entry.port_num:02d}"
        tail = "".join("<default>" if v == -1 else f"<{v}>" for v in entry.data)
        return head + tail + "\n"
    if entry.type == ValueType.NULL:
        return f"{entry.name} =\n"
    raise ValueError(f"{entry.name}: cannot write value type {entry.type!r}")


def generate_fex(out: TextIO, script: Script) -> None:
    """Write ``script`` to ``out`` as .fex text."""
    for section in script:
        out.write(f"[{section.name}]\n")
        for entry in section:
            out.write(_format_entry(entry))
        out.write("\n")


# ---------------------------------------------------------------------------
# parser
# ---------------------------------------------------------------------------

def _skip(text: str, pos: int, chars: str) -> int:
    while pos < len(text) and text[pos] in chars:
        pos += 1
    return pos


def _strtol(text: str, pos: int, base: int) -> Tuple[int, int]:
    """Parse an integer like C strtol; base 0 picks hex/octal/decimal.

    Returns ``(value, end)``; ``end == pos`` when nothing was parsed.
    """
    n = len(text)
    i = _skip(text, pos, _SPACE)
    negative = False
    if i < n and text[i] in "+-":
        negative = text[i] == "-"
        i += 1
    digits_start = i
    if base in (0, 16) and text.startswith(("0x", "0X"), i) \
            and i + 2 < n and text[i + 2] in _DIGITS[16]:
        base, digits_start = 16, i + 2
    elif base == 0:
        base = 8 if i < n and text[i] == "0" else 10
    end = _skip(text, digits_start, _DIGITS[base])
    if end == digits_start:
        return 0, pos
    value = int(text[digits_start:end], base)
    if negative:
        value = -value
    return max(_LLONG_MIN, min(_LLONG_MAX, value)), end


class _LineParser:
    """Parses one significant line into the script."""

    def __init__(self, text: str, filename: str, number: int) -> None:
        self.text = text
        self.filename = filename
        self.number = number

    def error(self, message: str, column: Optional[int] = None) -> FexParseError:
        return FexParseError(f"{self.filename}:{self.number}: {message}",
                             self.filename, self.number, column)

    def invalid_char(self, pos: int) -> FexParseError:
        return self.error(f"invalid character at {pos + 1}.", pos + 1)

    def parse_error(self, pos: int) -> FexParseError:
        return self.error(f"parse error at {pos + 1}.", pos + 1)

    def section_name(self, start: int) -> str:
        text = self.text
        pos = _skip(text, start + 1, _SECTION_CHARS)
        if pos < len(text) and text[pos] == "]" and pos + 1 == len(text):
            name = text[start + 1:pos]
            if not name:
                raise self.error("empty section name.", start + 2)
            return name
        if pos < len(text):
            raise self.invalid_char(pos)
        raise self.error("incomplete section declaration.")

    def entry(self, section: Section, start: int) -> None:
        text = self.text
        mark = _skip(text, start, _KEY_CHARS)
        pos = _skip(text, mark, _BLANK)
        if pos >= len(text) or text[pos] != "=":
            raise self.invalid_char(pos)
        key = text[start:mark]
        pos = _skip(text, pos + 1, _BLANK)
        value = text[pos:]
        try:
            self._value(section, key, pos, value)
        except ValueError as exc:
            if isinstance(exc, FexParseError):
                raise
            raise self.parse_error(pos) from exc

    def _value(self, section: Section, key: str, pos: int, value: str) -> None:
        if not value:
            section.add_null(key)
        elif len(value) >= 2 and value[0] == '"' and value[-1] == '"':
            section.add_string(key, value[1:-1])
        elif value.startswith("port:"):
            port, port_num, data = self._gpio(pos + 5)
            section.add_gpio(key, port, port_num, data)
        elif value[0] in string.digits or (
                value[0] == "-" and len(value) > 1 and value[1] in string.digits):
            number, end = _strtol(self.text, pos, 0)
            if end != len(self.text):
                raise self.invalid_char(end)
            if number > UINT32_MAX:
                raise self.error(f"value out of range {number}.")
            section.add_single(key, number)
        else:
            logger.warning("Warning: %s:%d: unquoted value '%s', assuming string",
                           self.filename, self.number, value)
            section.add_string(key, value)

    def _gpio(self, pos: int) -> Tuple[int, int, List[int]]:
        text = self.text
        last_bank = chr(ord("A") + GPIO_BANK_MAX)
        if text.startswith("P", pos):
            bank = text[pos + 1:pos + 2]
            if not bank or bank < "A" or bank > last_bank:
                raise self.parse_error(pos)
            port = ord(bank) - ord("A") + 1
            pos += 2
        elif text.startswith("power", pos):
            port = POWER_PORT
            pos += 5
        else:
            raise self.parse_error(pos)

        port_num, end = _strtol(text, pos, 10)
        if end == pos:
            raise self.invalid_char(pos)
        if port_num < 0 or port_num > 255:
            raise self.error(f"port out of range at {pos + 1} ({port_num}).",
                             pos + 1)

        data = [-1, -1, -1, -1]
        pos = end
        for index in range(4):
            if pos >= len(text):
                break
            if text.startswith("<default>", pos):
                pos += 9
                continue
            if text[pos] == "<":
                pos += 1
                number, end = _strtol(text, pos, 10)
                if end == pos:
                    pass
                elif number < 0 or number > INT32_MAX:
                    raise self.error(
                        f"value out of range at {pos + 1} ({number}).", pos + 1)
                elif end >= len(text) or text[end] != ">":
                    pos = end
                else:
                    pos = end + 1
                    data[index] = number
                    continue
            break
        if pos < len(text):
            raise self.invalid_char(pos)
        return port, port_num, data


def _clean_line(raw: str) -> str:
    if raw.endswith("\r\n"):
        raw = raw[:-2]
    elif raw.endswith("\n"):
        raw = raw[:-1]
    text = raw.rstrip(_BLANK)
    start = len(text) - len(text.lstrip(_BLANK))
    if len(text) > start and text.endswith(";"):
        text = text[:-1]
    return text


def parse_fex(lines: Union[str, Iterable[str]],
              filename: str = "<fex>") -> Script:
    """Parse .fex text (a string or an iterable of lines) into a script tree."""
    if isinstance(lines, str):
        lines = lines.splitlines(keepends=True)
    script = Script()
    last_section: Optional[Section] = None

    for number, raw in enumerate(lines, 1):
        text = _clean_line(raw)
        start = _skip(text, 0, _BLANK)
        if start >= len(text) or text[start] in ";#":
            continue
        parser = _LineParser(text, filename, number)
        if text[start] == ":":
            logger.warning("Warning: %s:%d: invalid line, suspecting "
                           "typo/malformed comment.", filename, number)
            continue
        if text[start] == "[":
            last_section = script.add_section(parser.section_name(start))
            continue
        if last_section is None:
            raise parser.error("data must follow a section.")
        parser.entry(last_section, start)
    return script