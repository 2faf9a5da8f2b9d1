"""Compile a script tree to the binary script.bin format and decompile it back."""

from __future__ import annotations

import logging
import struct

from .script import GPIO_BANK_MAX, POWER_PORT, Entry, Script, Section, ValueType

logger = logging.getLogger(__name__)

_HEAD = struct.Struct("<IIII")  # sections, filesize, version[0], version[1]
_SECTION = struct.Struct("<32sii")  # name, length, offset (in words)
_ENTRY = struct.Struct("<32sii")  # name, offset (in words), pattern
_GPIO = struct.Struct("<6i")  # port, port_num, mul_sel, pull, drv_level, data
_WORD = struct.Struct("<I")

VERSION = (1, 2)
VERSION_LIMIT = 0x10
SECTION_LIMIT = 0x100


class BinFormatError(ValueError):
    """Raised when binary script data cannot be produced or understood."""


def _encode(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _name_bytes(name: str) -> bytes:
    return _encode(name)[:31]


def _words(size: int) -> int:
    return (size + _WORD.size - 1) // _WORD.size


def _payload(entry: Entry) -> bytes:
    """The raw value of an entry, before padding to whole words."""
    if entry.type == ValueType.SINGLE_WORD:
        return _WORD.pack(entry.value & 0xFFFFFFFF)
    if entry.type == ValueType.NULL:
        return bytes(_WORD.size)
    if entry.type == ValueType.STRING:
        return _encode(entry.value)
    if entry.type == ValueType.GPIO:
        try:
            return _GPIO.pack(entry.port, entry.port_num, *entry.data)
        except struct.error as exc:
            raise BinFormatError(f"{entry.name}: GPIO value out of range") from exc
    raise BinFormatError(f"{entry.name}: cannot encode value type {entry.type!r}")


def _payload_size(entry: Entry) -> int:
    if entry.type in (ValueType.SINGLE_WORD, ValueType.NULL):
        return _WORD.size
    if entry.type == ValueType.GPIO:
        return _GPIO.size
    return len(_payload(entry))


def script_bin_size(script: Script) -> int:
    """Size in bytes of the binary form of ``script``."""
    sections = len(script)
    entries = sum(len(section) for section in script)
    words = sum(_words(_payload_size(entry))
                for section in script for entry in section)
    size = (_HEAD.size + sections * _SECTION.size
            + entries * _ENTRY.size + words * _WORD.size)
    logger.debug("sections:%d entries:%d data:%d/%d -> %d",
                 sections, entries, words, words * _WORD.size, size)
    return size


def generate_bin(script: Script) -> bytes:
    """Compile ``script`` to its binary form."""
    size = script_bin_size(script)
    buf = bytearray(size)
    section_count = len(script)
    entry_count = sum(len(section) for section in script)

    _HEAD.pack_into(buf, 0, section_count, size, *VERSION)
    entry_off = _HEAD.size + section_count * _SECTION.size
    data_off = entry_off + entry_count * _ENTRY.size

    for index, section in enumerate(script):
        _SECTION.pack_into(buf, _HEAD.size + index * _SECTION.size,
                           _name_bytes(section.name), len(section),
                           entry_off >> 2)
        for entry in section:
            payload = _payload(entry)
            padded = _words(len(payload)) * _WORD.size
            buf[data_off:data_off + len(payload)] = payload
            pattern = (int(entry.type) << 16) | (padded >> 2)
            _ENTRY.pack_into(buf, entry_off, _name_bytes(entry.name),
                             data_off >> 2, pattern)
            entry_off += _ENTRY.size
            data_off += padded
    return bytes(buf)


def _unpack(layout: struct.Struct, data: bytes, offset: int, what: str) -> tuple:
    if offset < 0 or offset + layout.size > len(data):
        raise BinFormatError(f"Malformed data: {what} at offset {offset} "
                             f"lies outside the data ({len(data)} bytes)")
    return layout.unpack_from(data, offset)


def _cstring(raw: bytes) -> bytes:
    end = raw.find(b"\0")
    return raw if end < 0 else raw[:end]


def _valid_key(name: str) -> bool:
    return all(ch.isalnum() or ch in "_-" for ch in name)


def _decompile_entry(data: bytes, filename: str, section: Section,
                     offset: int) -> None:
    raw_name, data_words, pattern = _unpack(_ENTRY, data, offset, "entry")
    name = _decode(_cstring(raw_name))
    data_off = data_words << 2
    kind = (pattern >> 16) & 0xFFFF
    words = pattern & 0xFFFF
    where = f"{filename}: {section.name}.{name}"

    if not _valid_key(name):
        logger.warning("Warning: Malformed entry key \"%s\"", name)

    if kind == ValueType.SINGLE_WORD:
        if words != 1:
            logger.error("%s: invalid length %d (assuming %d)", where, words, 1)
        (value,) = _unpack(_WORD, data, data_off, f"value of {name}")
        section.add_single(name, value)
    elif kind == ValueType.STRING:
        if data_off < 0 or data_off > len(data):
            raise BinFormatError(f"{where}: string outside the data")
        raw = data[data_off:data_off + (words << 2)]
        section.add_string(name, _decode(_cstring(raw)))
    elif kind == ValueType.GPIO:
        port, port_num, *values = _unpack(_GPIO, data, data_off, f"value of {name}")
        if words != 6:
            logger.error("%s: invalid length %d (assuming %d)", where, words, 6)
        elif port == POWER_PORT:
            pass
        elif port < 1 or port > GPIO_BANK_MAX:
            bank = chr(ord("A") + port - 1) if 1 <= port <= 26 else ""
            label = f"{bank} " if bank else ""
            raise BinFormatError(f"{where}: unknown GPIO port bank {label}({port})")
        section.add_gpio(name, port, port_num, values)
    elif kind == ValueType.NULL:
        if not name:
            logger.error("%s: empty entry in section: %s", filename, section.name)
        else:
            section.add_null(name)
    else:
        raise BinFormatError(f"{where}: unknown type {kind}")


def _decompile_section(data: bytes, filename: str, index: int,
                       script: Script) -> None:
    raw_name, length, offset = _unpack(
        _SECTION, data, _HEAD.size + index * _SECTION.size, "section header")
    if offset < 0 or offset > len(data) // 4:
        raise BinFormatError(f"Malformed data: invalid section offset: {offset}")
    room = len(data) - 4 * offset
    if length < 0 or length > room // _ENTRY.size:
        raise BinFormatError(f"Malformed data: invalid section length: {length}")

    name = _decode(_cstring(raw_name))
    try:
        section = script.add_section(name)
    except ValueError as exc:
        raise BinFormatError(f"Malformed data: section {index} has no name") from exc

    for number in range(length):
        try:
            _decompile_entry(data, filename, section,
                             (offset << 2) + number * _ENTRY.size)
        except BinFormatError:
            raise
        except ValueError as exc:
            raise BinFormatError(f"{filename}: {section.name}: {exc}") from exc


def decompile_bin(data: bytes, filename: str = "<bin>") -> Script:
    """Decode binary script data into a script tree."""
    data = bytes(data)
    sections, filesize, major, minor = _unpack(_HEAD, data, 0, "header")
    if major > VERSION_LIMIT or minor > VERSION_LIMIT:
        raise BinFormatError(f"Malformed data: version {major}.{minor}.")
    if sections > SECTION_LIMIT:
        raise BinFormatError(f"Malformed data: too many sections ({sections}).")

    logger.info("%s: version: %d.%d", filename, major, minor)
    logger.info("%s: size: %d (%d sections), header value: %d",
                filename, len(data), sections, filesize)

    script = Script()
    for index in range(sections):
        _decompile_section(data, filename, index, script)
    return script