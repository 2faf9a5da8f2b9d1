"""In-memory tree of a sunxi script: ordered sections holding typed entries."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import ClassVar, Iterator, Optional, Sequence

NAME_MAX = 31
GPIO_BANK_MAX = 14
POWER_PORT = 0xFFFF


class ValueType(enum.IntEnum):
    """Kinds of values an entry can hold, numbered as in the binary format."""

    SINGLE_WORD = 1
    STRING = 2
    MULTI_WORD = 3
    GPIO = 4
    NULL = 5


def _truncate(name: str) -> str:
    return name[:NAME_MAX]


@dataclass
class Entry:
    """Common part of every entry: its (truncated) key name."""

    name: str
    type: ClassVar[ValueType]

    def __post_init__(self) -> None:
        self.name = _truncate(self.name)


@dataclass
class NullEntry(Entry):
    """An entry with no value."""

    type: ClassVar[ValueType] = ValueType.NULL


@dataclass
class SingleEntry(Entry):
    """An entry holding one unsigned 32-bit word."""

    value: int = 0
    type: ClassVar[ValueType] = ValueType.SINGLE_WORD

    def __post_init__(self) -> None:
        super().__post_init__()
        self.value = int(self.value) & 0xFFFFFFFF


@dataclass
class StringEntry(Entry):
    """An entry holding a string."""

    value: str = ""
    type: ClassVar[ValueType] = ValueType.STRING


@dataclass
class GpioEntry(Entry):
    """An entry describing a GPIO pin and its four settings (-1 means default)."""

    port: int = 0
    port_num: int = 0
    data: tuple = (-1, -1, -1, -1)
    type: ClassVar[ValueType] = ValueType.GPIO

    def __post_init__(self) -> None:
        super().__post_init__()
        data = tuple(int(v) for v in self.data)
        if len(data) != 4:
            raise ValueError(f"GPIO entry needs 4 data values, got {len(data)}")
        self.data = data

    @property
    def is_power(self) -> bool:
        """True for ``port:powerN`` pins."""
        return self.port == POWER_PORT


def _require_name(name: str) -> None:
    if not name:
        raise ValueError("entry name must not be empty")


@dataclass
class Section:
    """A named section holding entries in insertion order."""

    name: str
    entries: list = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("section name must not be empty")
        self.name = _truncate(self.name)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def _append(self, entry: Entry) -> Entry:
        self.entries.append(entry)
        return entry

    def add_null(self, name: str) -> NullEntry:
        """Append an empty entry."""
        _require_name(name)
        return self._append(NullEntry(name))

    def add_single(self, name: str, value: int) -> SingleEntry:
        """Append a 32-bit word entry; the value is taken modulo 2**32."""
        _require_name(name)
        return self._append(SingleEntry(name, value))

    def add_string(self, name: str, value: str) -> StringEntry:
        """Append a string entry."""
        return self._append(StringEntry(name, value))

    def add_gpio(self, name: str, port: int, port_num: int,
                 data: Sequence[int]) -> GpioEntry:
        """Append a GPIO entry."""
        _require_name(name)
        return self._append(GpioEntry(name, port, port_num, tuple(data)))

    def find_entry(self, name: str) -> Optional[Entry]:
        """Return the first entry with exactly this name, or None."""
        return next((e for e in self.entries if e.name == name), None)

    def remove_entry(self, entry: Entry) -> None:
        """Remove this very entry from the section."""
        for index, candidate in enumerate(self.entries):
            if candidate is entry:
                del self.entries[index]
                return
        raise ValueError(f"entry {entry.name!r} is not in section {self.name!r}")


@dataclass
class Script:
    """The whole script: sections in order."""

    sections: list = field(default_factory=list)

    def __iter__(self) -> Iterator[Section]:
        return iter(self.sections)

    def __len__(self) -> int:
        return len(self.sections)

    def add_section(self, name: str) -> Section:
        """Append a new, empty section."""
        section = Section(name)
        self.sections.append(section)
        return section

    def find_section(self, name: str) -> Optional[Section]:
        """Return the first section with exactly this name, or None."""
        return next((s for s in self.sections if s.name == name), None)

    def remove_section(self, section: Section) -> None:
        """Remove this very section from the script."""
        for index, candidate in enumerate(self.sections):
            if candidate is section:
                del self.sections[index]
                return
        raise ValueError(f"section {section.name!r} is not in the script")