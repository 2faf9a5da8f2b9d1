import io
import struct

import pytest

from sunxikit.phoenix import (
    PART_SIG,
    SIGNATURE,
    TABLE_OFFSET,
    PhoenixEntry,
    main,
    parse_table,
    read_table,
    save_part,
)

PAYLOADS = [(16, b"first-partition" * 7), (20, bytes(range(256)) * 3)]


def make_table(parts, signature=SIGNATURE, sig=PART_SIG):
    raw = struct.pack("<16sIHH8s", signature, 0x00200100, len(parts), 1,
                      bytes(range(8)))
    for start, payload in parts:
        raw += struct.pack("<4I", start, len(payload), 7, sig)
    return raw.ljust(0x400, b"\0")


def make_image(parts=PAYLOADS, **kwargs):
    image = bytearray(TABLE_OFFSET) + make_table(parts, **kwargs)
    for start, payload in parts:
        offset = start * 0x200
        if len(image) < offset + len(payload):
            image.extend(bytes(offset + len(payload) - len(image)))
        image[offset:offset + len(payload)] = payload
    return bytes(image)


def test_parse_table_fields():
    table = parse_table(make_table(PAYLOADS))
    assert table.unknown1 == 0x00200100
    assert table.parts == 2
    assert table.unknown2 == 1
    assert table.pad == bytes(range(8))
    assert table.partitions == [
        PhoenixEntry(16, len(PAYLOADS[0][1]), 7, PART_SIG),
        PhoenixEntry(20, len(PAYLOADS[1][1]), 7, PART_SIG),
    ]


def test_parse_table_rejects_wrong_signature():
    with pytest.raises(ValueError):
        parse_table(make_table(PAYLOADS, signature=b"NOT_A_PHOENIX_IM"))


def test_parse_table_rejects_short_data():
    with pytest.raises(ValueError):
        parse_table(b"PHOENIX")


def test_read_table_from_stream():
    table = read_table(io.BytesIO(make_image()))
    assert table.parts == 2
    assert table.partitions[1].start == 20


class _Pipe(io.BytesIO):
    def seek(self, *args):
        raise io.UnsupportedOperation("not seekable")


def test_read_table_without_seek():
    table = read_table(_Pipe(make_image()))
    assert [e.size for e in table.partitions] == [len(p) for _, p in PAYLOADS]


def test_save_part(tmp_path):
    stream = io.BytesIO(make_image())
    table = read_table(stream)
    name = save_part(table, 1, str(tmp_path / "part%d.bin"), stream)
    assert name == str(tmp_path / "part1.bin")
    assert (tmp_path / "part1.bin").read_bytes() == PAYLOADS[1][1]


def test_save_part_out_of_range(tmp_path):
    stream = io.BytesIO(make_image())
    table = read_table(stream)
    with pytest.raises(ValueError):
        save_part(table, 5, str(tmp_path / "%d.img"), stream)


def test_save_part_truncated_image(tmp_path):
    image = make_image()[:-10]
    stream = io.BytesIO(image)
    table = read_table(stream)
    with pytest.raises(EOFError):
        save_part(table, 1, str(tmp_path / "%d.img"), stream)


def test_main_lists_parts(tmp_path, capsys):
    path = tmp_path / "card.img"
    path.write_bytes(make_image())
    assert main([str(path)]) == 0
    out = capsys.readouterr().out
    assert "part 0:\n" in out
    assert "part 1:\n" in out
    assert f"\tsize : {len(PAYLOADS[0][1])}\n" in out
    assert "sig??" not in out


def test_main_verbose_shows_header_and_sig(tmp_path, capsys):
    path = tmp_path / "card.img"
    path.write_bytes(make_image())
    assert main(["-v", str(path)]) == 0
    out = capsys.readouterr().out
    assert "????  : 00200100\n" in out
    assert "Parts : 2\n" in out
    assert f"\tsig??: {PART_SIG:08x}\n" in out


def test_main_unusual_sig_is_shown(tmp_path, capsys):
    path = tmp_path / "card.img"
    path.write_bytes(make_image(sig=0x12345678))
    assert main([str(path)]) == 0
    assert "\tsig??: 12345678\n" in capsys.readouterr().out


def test_main_saves_all_parts_to_directory(tmp_path):
    path = tmp_path / "card.img"
    path.write_bytes(make_image())
    outdir = tmp_path / "out"
    outdir.mkdir()
    assert main(["-q", "-o", str(outdir) + "/", str(path)]) == 0
    assert (outdir / "0.img").read_bytes() == PAYLOADS[0][1]
    assert (outdir / "1.img").read_bytes() == PAYLOADS[1][1]


def test_main_saves_one_part_with_pattern(tmp_path):
    path = tmp_path / "card.img"
    path.write_bytes(make_image())
    assert main(["-q", "-p", "1", "-o", str(tmp_path / "p%d.bin"), str(path)]) == 0
    assert (tmp_path / "p1.bin").read_bytes() == PAYLOADS[1][1]
    assert not (tmp_path / "p0.bin").exists()


def test_main_rejects_non_phoenix(tmp_path):
    path = tmp_path / "junk.img"
    path.write_bytes(bytes(0x2000))
    assert main([str(path)]) == 1


def test_main_rejects_extra_arguments(tmp_path):
    assert main([str(tmp_path / "a"), str(tmp_path / "b")]) == 1


def test_main_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.img")]) == 1