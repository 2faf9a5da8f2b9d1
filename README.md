# sunxikit

Tools for working with boards built around Allwinner ("sunxi") SoCs:

- read and write FEX board configuration text and the binary `script.bin`
  form the boot loader and kernel use,
- turn the `[dram_para]` section of a script into a U-Boot DRAM
  parameter source file,
- inspect and change dumps of the PIO (GPIO) register block,
- list and extract the partitions of a Phoenix card image,
- look up per-SoC memory layout data by SoC id,
- show transfer progress as a bar or as `dialog --gauge` input.

It needs nothing beyond the Python standard library, version 3.10 or later.

## Installing

```
pip install .
```

With the test requirements:

```
pip install ".[test]"
pytest
```

## Scripts: FEX and script.bin

A script is a list of sections, each a list of named entries. An entry holds
nothing, a 32-bit number, a string, or a GPIO pin description. Section and
entry names longer than 31 characters are cut to 31.

```python
from sunxikit.script import Script
from sunxikit.script_fex import parse_fex, generate_fex
from sunxikit.script_bin import generate_bin, decompile_bin

with open("board.fex") as f:
    script = parse_fex(f, "board.fex")

with open("script.bin", "wb") as f:
    f.write(generate_bin(script))

with open("script.bin", "rb") as f:
    again = decompile_bin(f.read(), "script.bin")

with open("board-again.fex", "w") as f:
    generate_fex(f, again)
```

`parse_fex` takes a string or any iterable of lines and raises
`FexParseError` on malformed input; the error carries `filename`, `line` and
`column`. `decompile_bin` raises `BinFormatError` on a damaged binary.
`script_bin_size` gives the size the binary form of a script will have.
Warnings (such as unquoted values taken as strings) go to the `logging`
module.

Scripts can also be built in code:

```python
script = Script()
section = script.add_section("uart_para")
section.add_single("uart_used", 1)
section.add_string("uart_name", "ttyS0")
section.add_gpio("uart_tx", 2, 22, [2, 1, -1, -1])   # port:PB22<2><1><default><default>
section.add_null("uart_rts")
```

`Script.find_section` and `Section.find_entry` look things up by name;
`Script.remove_section` and `Section.remove_entry` take them out again.

## U-Boot DRAM parameters

```python
from sunxikit.script_uboot import generate_uboot

with open("dram.c", "w") as out:
    ok = generate_uboot(out, script)
```

A script without a `[dram_para]` section raises `UbootError`. The function
returns `False` when a field of an unusable type had to be skipped.

## PIO register dumps

`sunxikit-pio` reads a dump of the PIO register block (`-i`, or `-m` to map
the live registers through `/dev/mem`), runs commands on it and can write
the result back out (`-o`).

```
sunxikit-pio -i pio.bin print
sunxikit-pio -i pio.bin PB22
sunxikit-pio -i pio.bin -o new.bin 'PB22<2><1><1>'
sunxikit-pio -i pio.bin -o new.bin PH7=1,2
sunxikit-pio -i pio.bin -o new.bin 'PH8?1'
sunxikit-pio -i pio.bin -o new.bin clean
```

Pin commands:

| Command                         | Effect                                   |
|---------------------------------|------------------------------------------|
| `print`                         | show all pins                            |
| `Pxx`                           | show one pin                             |
| `Pxx<mode><pull><drive><data>`  | configure a pin                          |
| `Pxx=data,drive`                | make a pin a GPIO output                 |
| `Pxx?pull`                      | make a pin a GPIO input                  |
| `Pxx*count`                     | toggle a GPIO output `count` times       |
| `clean`                         | clear the data bit of every input pin    |

Mode is 0–7 (0 input, 1 output, 2–7 I/O functions), pull is 0 none, 1 up,
2 down, drive is 0–3. Use `-` as the input or output name for standard
input or output.

From Python, `PioRegisters` wraps the register bytes; `get`, `set`, `clean`
and `pins` work on `PinState` values, and `parse_pin`, `format_pin` and
`run_command` do what the command line does.

## Phoenix card images

```
sunxikit-phoenix-info image.img          # list partitions
sunxikit-phoenix-info -v image.img       # more detail
sunxikit-phoenix-info -q -s image.img    # save every partition, quietly
sunxikit-phoenix-info -p 2 image.img     # save partition 2 as 2.img
sunxikit-phoenix-info -s -o out/ image.img
```

`-o` takes a directory ending in `/` or a pattern with `%d` for the
partition number. Without an image name the image is read from standard
input. In Python, `read_table` or `parse_table` give a `PhoenixTable` of
`PhoenixEntry` records, and `save_part` copies one partition out.

## SoC information

```python
from sunxikit.soc_info import get_soc_info_from_id, get_soc_name_from_id

info = get_soc_info_from_id(0x1651)
print(info.name, hex(info.thunk_addr), info.swap_buffers)
print(get_soc_name_from_id(0x1234))   # "0x1234" for unknown ids
```

Unknown ids get a generic `SocInfo` record, and a warning is printed.
`AwFelVersion.from_bytes` decodes the version block a device reports, and
`get_soc_info_from_version` looks up its SoC.

## Progress display

```python
from sunxikit.progress import Progress

progress = Progress()
progress.start(progress.bar, total_bytes)
for chunk in chunks:
    send(chunk)
    progress.update(len(chunk))
```

`gauge` and `gauge_xxx` print percentages suitable for piping into
`dialog --gauge`. The helpers `kilo`, `kibi`, `rate`, `estimate` and
`format_eta` are available on their own.

## What it does not do

- There is no command for converting between FEX and `script.bin`; the
  conversion is available only through the Python functions above.
- It does not talk to devices over USB. The SoC data and the FEL version
  decoder are there for programs that do, but no such transfer is included.
- It does not read or change NAND partition tables.