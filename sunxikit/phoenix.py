"""Read the partition table of a Phoenix card image and extract partitions."""

from __future__ import annotations

import contextlib
import getopt
import io
import os
import re
import struct
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, List

SIGNATURE = b"PHOENIX_CARD_IMG"
TABLE_OFFSET = 0x1C00
TABLE_SIZE = 0x400
BLOCK_SIZE = 0x200
MAX_PARTS = 62
PART_SIG = 0x00646461  # "add\0"

_HEAD = struct.Struct("<16sIHH8s")
_ENTRY = struct.Struct("<IIII")

_USAGE = """\
Usage: {prog} [options] [phoenix_image]
\t-v\tverbose
\t-q\tquiet
\t-p N\tpart number
\t-o X\tdestination directory, file or pattern (%d for part number)
\t-s\tsave all parts
"""


@dataclass
class PhoenixEntry:
    """One partition: start in 512-byte blocks, size in bytes."""

    start: int
    size: int
    unknown: int = 0
    sig: int = PART_SIG


@dataclass
class PhoenixTable:
    """The partition table found at 0x1C00 in a Phoenix image."""

    unknown1: int
    parts: int
    unknown2: int
    pad: bytes
    entries: List[PhoenixEntry] = field(default_factory=list)

    @property
    def partitions(self) -> List[PhoenixEntry]:
        """The entries that the table declares as used."""
        return self.entries[:self.parts]


def parse_table(data: bytes) -> PhoenixTable:
    """Decode a 1 KiB partition table; raises ValueError if it is not one."""
    raw = bytes(data[:TABLE_SIZE]).ljust(TABLE_SIZE, b"\0")
    signature, unknown1, parts, unknown2, pad = _HEAD.unpack_from(raw, 0)
    if signature != SIGNATURE:
        raise ValueError("Not a phoenix image")
    entries = [PhoenixEntry(*_ENTRY.unpack_from(raw, _HEAD.size + i * _ENTRY.size))
               for i in range(MAX_PARTS)]
    return PhoenixTable(unknown1, parts, unknown2, pad, entries)


def read_table(stream: BinaryIO) -> PhoenixTable:
    """Skip 0x1C00 bytes from the current position and decode the table there."""
    try:
        stream.seek(TABLE_OFFSET, io.SEEK_CUR)
    except OSError:
        stream.read(TABLE_OFFSET)
    return parse_table(stream.read(TABLE_SIZE))


def _output_name(dest: str, part: int) -> str:
    try:
        return dest % part
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid destination pattern: {dest!r}") from exc


def save_part(table: PhoenixTable, part: int, dest: str,
              stream: BinaryIO) -> str:
    """Copy one partition to the file named by ``dest % part`` ("-" is stdout).

    Returns the name written to.
    """
    if part < 0 or part > table.parts or part >= len(table.entries):
        raise ValueError("Part index out of range")
    entry = table.entries[part]
    name = _output_name(dest, part)
    stream.seek(entry.start * BLOCK_SIZE)
    data = stream.read(entry.size)
    if len(data) != entry.size:
        raise EOFError(f"part {part}: short read ({len(data)} of {entry.size} bytes)")
    if name == "-":
        sys.stdout.flush()
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        with open(name, "wb") as out:
            out.write(data)
    return name


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?[0-9]+)", text)
    return int(match.group(1)) if match else 0


def _usage() -> None:
    sys.stdout.write("phoenix-info\n\n" + _USAGE.format(prog="phoenix-info"))


def _describe_header(table: PhoenixTable) -> str:
    return (f"????  : {table.unknown1:08x}\n"
            f"Parts : {table.parts}\n"
            f"????  : {table.unknown2:08x}\n"
            f"pad   : {table.pad.hex()}\n\n")


def _describe_part(index: int, entry: PhoenixEntry, verbose: int) -> str:
    offset = (entry.start * BLOCK_SIZE) & 0xFFFFFFFF
    text = (f"part {index}:\n"
            f"\tstart: 0x{offset:08x} ({entry.start} / 0x{entry.start:08x})\n"
            f"\tsize : {entry.size}\n"
            f"\t?????: {entry.unknown:08x}\n")
    if verbose > 1 or entry.sig != PART_SIG:
        text += f"\tsig??: {entry.sig:08x}\n"
    return text + "\n"


def main(argv=None) -> int:
    """Command-line entry point; returns the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        opts, rest = getopt.gnu_getopt(args, "vqso:p:?")
    except getopt.GetoptError as exc:
        sys.stderr.write(f"{exc}\n")
        _usage()
        return 1

    verbose = 1
    save = False
    part = -1
    dest = "%d.img"
    for opt, value in opts:
        if opt == "-v":
            verbose += 1
        elif opt == "-q":
            verbose = max(verbose - 1, 0)
        elif opt == "-o":
            dest = value
            save = True
        elif opt == "-p":
            part = _atoi(value)
            save = True
        elif opt == "-s":
            save = True
        else:
            _usage()
            return 1

    if save and "%" not in dest:
        target = dest or "./"
        if target.endswith("/") or part == 0:
            target = os.path.join(target, "%d.img")
        dest = target

    if len(rest) > 1:
        _usage()
        return 1

    try:
        source = open(rest[0], "rb") if rest else contextlib.nullcontext(sys.stdin.buffer)
    except OSError as exc:
        sys.stderr.write(f"ERROR: {exc}\n")
        return 1

    with source as stream:
        try:
            table = read_table(stream)
        except ValueError as exc:
            sys.stderr.write(f"ERROR: {exc}\n")
            return 1

        out = sys.stdout
        if verbose > 1:
            out.write(_describe_header(table))
        for index, entry in enumerate(table.partitions):
            selected = part in (-1, index)
            if verbose and selected:
                out.write(_describe_part(index, entry, verbose))
            if save and selected:
                try:
                    save_part(table, index, dest, stream)
                except (OSError, ValueError, EOFError) as exc:
                    sys.stderr.write(f"ERROR: {exc}\n")
        out.flush()
    return 0