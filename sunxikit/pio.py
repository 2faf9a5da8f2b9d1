"""Inspect and change the register state of the Allwinner PIO (GPIO) controller."""

from __future__ import annotations

import getopt
import mmap
import os
import re
import sys
from dataclasses import dataclass
from typing import Iterator, Optional, TextIO, Tuple

PIO_BASE = 0x01C20800
REG_SIZE = 0x228
PORT_SIZE = 0x24
NR_PORTS = 9
PINS_PER_PORT = 32

_CFG_OFF = 0x00
_DATA_OFF = 0x10
_DLEVEL_OFF = 0x14
_PULL_OFF = 0x1C

_LONG_MIN = -(1 << 63)
_LONG_MAX = (1 << 63) - 1

_STRTOL = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")
_ATOI = re.compile(r"\s*([+-]?[0-9]+)")

_USAGE = """\
usage: {prog} -m|-i input [-o output] pin..
 -m\t\t\t\tmmap - read pin state from system
 -i\t\t\t\tread pin state from file
 -o\t\t\t\tsave pin state data to file
 print\t\t\t\tShow all pins
 Pxx\t\t\t\tShow pin
 Pxx<mode><pull><drive><data>\tConfigure pin
 Pxx=data,drive\t\t\tConfigure GPIO output
 Pxx*count\t\t\tOscillate GPIO output (mmap mode only)
 Pxx?pull\t\t\tConfigure GPIO input
 clean\t\t\t\tClean input pins

\tmode 0-7, 0=input, 1=output, 2-7 I/O function
\tpull 0=none, 1=up, 2=down
\tdrive 0-3, I/O drive level
"""


@dataclass
class PinState:
    """Settings of one pin; a negative field means "unknown" or "leave as is"."""

    mul_sel: int = -1
    pull: int = -1
    drv_level: int = -1
    data: int = -1


def _check(port: int, pin: int) -> None:
    if not 0 <= port < NR_PORTS:
        raise ValueError(f"port {port} out of range (0-{NR_PORTS - 1})")
    if not 0 <= pin < PINS_PER_PORT:
        raise ValueError(f"pin {pin} out of range (0-{PINS_PER_PORT - 1})")


class PioRegisters:
    """A view on the PIO register block held in a writable buffer."""

    def __init__(self, buffer=None) -> None:
        if buffer is None:
            buffer = bytearray(REG_SIZE)
        view = memoryview(buffer).cast("B")
        if view.readonly:
            raise TypeError("PIO register buffer must be writable")
        if len(view) < REG_SIZE:
            raise ValueError(f"PIO register buffer needs {REG_SIZE} bytes, "
                             f"got {len(view)}")
        self._buf = view

    @property
    def data(self) -> bytes:
        """A copy of the register block."""
        return bytes(self._buf[:REG_SIZE])

    def _read(self, offset: int) -> int:
        return int.from_bytes(self._buf[offset:offset + 4], "little")

    def _write(self, offset: int, value: int) -> None:
        self._buf[offset:offset + 4] = (value & 0xFFFFFFFF).to_bytes(4, "little")

    def _update(self, offset: int, mask: int, shift: int, value: int) -> None:
        current = self._read(offset) & ~(mask << shift)
        self._write(offset, current | ((value & mask) << shift))

    @staticmethod
    def _offsets(port: int, pin: int) -> Tuple[int, int, int, int]:
        base = port * PORT_SIZE
        cfg = base + _CFG_OFF + ((pin >> 3) << 2)
        dlevel = base + _DLEVEL_OFF + ((pin >> 4) << 2)
        pull = base + _PULL_OFF + ((pin >> 4) << 2)
        return cfg, pull, dlevel, base + _DATA_OFF

    def get(self, port: int, pin: int) -> PinState:
        """Read the settings of one pin; data is -1 for non-GPIO functions."""
        _check(port, pin)
        cfg, pull, dlevel, data = self._offsets(port, pin)
        func_shift = (pin & 0x07) << 2
        pull_shift = (pin & 0x0F) << 1
        state = PinState(
            mul_sel=(self._read(cfg) >> func_shift) & 0x07,
            pull=(self._read(pull) >> pull_shift) & 0x03,
            drv_level=(self._read(dlevel) >> pull_shift) & 0x03,
        )
        state.data = -1 if state.mul_sel > 1 else (self._read(data) >> pin) & 0x01
        return state

    def set(self, port: int, pin: int, state: PinState) -> None:
        """Write the non-negative fields of ``state`` to one pin."""
        _check(port, pin)
        cfg, pull, dlevel, data = self._offsets(port, pin)
        func_shift = (pin & 0x07) << 2
        pull_shift = (pin & 0x0F) << 1
        if state.mul_sel >= 0:
            self._update(cfg, 0x07, func_shift, state.mul_sel)
        if state.pull >= 0:
            self._update(pull, 0x03, pull_shift, state.pull)
        if state.drv_level >= 0:
            self._update(dlevel, 0x03, pull_shift, state.drv_level)
        if state.data >= 0:
            value = self._read(data)
            if state.data:
                value |= 1 << pin
            else:
                value &= ~(1 << pin)
            self._write(data, value)

    def pins(self) -> Iterator[Tuple[int, int, PinState]]:
        """Yield ``(port, pin, state)`` for every pin of every port."""
        for port in range(NR_PORTS):
            for pin in range(PINS_PER_PORT):
                yield port, pin, self.get(port, pin)

    def clean(self) -> None:
        """Clear the data bit of every pin configured as input."""
        for port, pin, state in self.pins():
            if state.mul_sel == 0:
                state.data = 0
                self.set(port, pin, state)

    def _oscillate(self, port: int, pin: int, count: int) -> None:
        state = self.get(port, pin)
        state.mul_sel = 1
        self.set(port, pin, state)
        offset = self._offsets(port, pin)[3]
        value = self._read(offset)
        for _ in range(count):
            value ^= 1 << pin
            self._write(offset, value)


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def _strtol(text: str) -> Optional[int]:
    """Parse a leading integer (decimal, 0x hex or 0 octal), None if there is none."""
    match = _STRTOL.match(text)
    if not match:
        return None
    digits = match.group(2)
    if digits[:2].lower() == "0x":
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    if match.group(1) == "-":
        value = -value
    if not _LONG_MIN <= value <= _LONG_MAX:
        return None
    return value


def parse_pin(name: str) -> Tuple[int, int]:
    """Split a pin name such as ``PB5`` (the P is optional) into port and pin."""
    text = name[1:] if name.startswith("P") else name
    if not text:
        raise ValueError(f"invalid pin name: {name!r}")
    port = ord(text[0]) - ord("A")
    pin = _atoi(text[1:])
    _check(port, pin)
    return port, pin


def format_pin(port: int, pin: int, state: PinState) -> str:
    """Render a pin as ``Pxn<mode><pull><drive>[<data>]``."""
    text = (f"P{chr(ord('A') + port)}{pin}"
            f"<{state.mul_sel:x}><{state.pull:x}><{state.drv_level:x}>")
    if state.data >= 0:
        text += f"<{state.data:x}>"
    return text


def _assign(state: PinState, field_name: str, text: str) -> None:
    value = _strtol(text)
    if value is not None:
        setattr(state, field_name, value)


def _apply_spec(state: PinState, spec: str) -> None:
    if "=" in spec:
        state.mul_sel = 1
        rest = spec.split("=", 1)[1]
        _assign(state, "data", rest)
        if "," in rest:
            _assign(state, "drv_level", rest.split(",", 1)[1])
    elif "?" in spec:
        state.mul_sel = 0
        state.data = 0
        state.drv_level = 0
        _assign(state, "pull", spec.split("?", 1)[1])
    elif "<" in spec:
        fields = ("mul_sel", "pull", "drv_level", "data")
        for field_name, text in zip(fields, spec.split("<")[1:]):
            _assign(state, field_name, text)


def run_command(regs: PioRegisters, command: str,
                out: Optional[TextIO] = None) -> None:
    """Carry out one command (``Pxx...``, ``print`` or ``clean``)."""
    out = out if out is not None else sys.stdout
    if command.startswith("P"):
        port, pin = parse_pin(command)
        if any(mark in command for mark in "<=?"):
            state = regs.get(port, pin)
            _apply_spec(state, command)
            regs.set(port, pin, state)
        elif "*" in command:
            count = _strtol(command.split("*", 1)[1]) or 0
            regs._oscillate(port, pin, count)
        else:
            out.write(format_pin(port, pin, regs.get(port, pin)) + "\n")
    elif command == "print":
        for port, pin, state in regs.pins():
            out.write(format_pin(port, pin, state) + "\n")
    elif command == "clean":
        regs.clean()
    else:
        raise ValueError(f"unknown command: {command!r}")


def _usage() -> None:
    sys.stderr.write("sunxi-pio\n\n" + _USAGE.format(prog="sunxi-pio"))


def _map_registers() -> memoryview:
    pagesize = mmap.PAGESIZE
    address = PIO_BASE & ~(pagesize - 1)
    offset = PIO_BASE & (pagesize - 1)
    length = (0x800 + pagesize - 1) & ~(pagesize - 1)
    fd = os.open("/dev/mem", os.O_RDWR)
    try:
        mapped = mmap.mmap(fd, length, access=mmap.ACCESS_WRITE, offset=address)
    finally:
        os.close(fd)
    return memoryview(mapped)[offset:offset + REG_SIZE]


def _read_input(name: str, regs: PioRegisters) -> None:
    if name == "-":
        data = sys.stdin.buffer.read(REG_SIZE)
    else:
        with open(name, "rb") as stream:
            data = stream.read(REG_SIZE)
    if len(data) != REG_SIZE:
        raise OSError(f"short read ({len(data)} of {REG_SIZE} bytes)")
    regs._buf[:REG_SIZE] = data


def _write_output(name: str, regs: PioRegisters) -> None:
    if name == "-":
        sys.stdout.flush()
        sys.stdout.buffer.write(regs.data)
        sys.stdout.buffer.flush()
    else:
        with open(name, "wb") as stream:
            stream.write(regs.data)


def main(argv=None) -> int:
    """Command-line entry point; returns the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        opts, commands = getopt.gnu_getopt(args, "i:o:m")
    except getopt.GetoptError as exc:
        sys.stderr.write(f"{exc}\n")
        _usage()
        return 0

    in_name: Optional[str] = None
    out_name: Optional[str] = None
    use_mmap = False
    for opt, value in opts:
        if opt == "-m":
            use_mmap = True
        elif opt == "-i":
            in_name = value
        elif opt == "-o":
            out_name = value

    if not in_name and not use_mmap:
        _usage()
        return 1

    buffer = None
    if use_mmap:
        try:
            buffer = _map_registers()
        except OSError as exc:
            sys.stderr.write(f"mmap PIO: {exc}\n")
            return 1
    regs = PioRegisters(buffer)

    if in_name:
        try:
            _read_input(in_name, regs)
        except OSError as exc:
            sys.stderr.write(f"read input: {exc}\n")
            return 1

    for command in commands:
        try:
            run_command(regs, command, sys.stdout)
        except ValueError as exc:
            sys.stderr.write(f"{exc}\n")
            _usage()
            return 1

    if out_name:
        try:
            _write_output(out_name, regs)
        except OSError as exc:
            sys.stderr.write(f"write output: {exc}\n")
            return 1
    return 0