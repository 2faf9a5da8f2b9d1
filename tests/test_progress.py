import io
import math

import pytest

from sunxikit.progress import (
    BAR_WIDTH,
    Progress,
    estimate,
    format_eta,
    kibi,
    kilo,
    rate,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _mmss_to_seconds(text):
    minutes, seconds = text.split(":")
    return int(minutes) * 60 + int(seconds)


def test_kilo_and_kibi_scale():
    assert kilo(1000) == 1.0
    assert kibi(1024) == 1.0
    assert kibi(2048) < kilo(2048)


def test_rate_and_estimate_zero_guards():
    assert rate(500, 0) == 0.0
    assert rate(500, -1.0) == 0.0
    assert estimate(500, 0) == 0.0


def test_rate_estimate_invariant():
    speed = rate(4096, 8.0)
    assert math.isclose(speed * 8.0, 4096)
    assert math.isclose(estimate(4096, speed), 8.0)


@pytest.mark.parametrize("seconds", [0, 1, 59, 60, 61, 125, 3599, 5999])
def test_format_eta_round_trip(seconds):
    text = format_eta(seconds)
    assert len(text) == 5
    assert _mmss_to_seconds(text) == seconds


def test_format_eta_rounds_to_nearest_second():
    assert _mmss_to_seconds(format_eta(9.6)) == _mmss_to_seconds(format_eta(10))
    assert _mmss_to_seconds(format_eta(9.4)) == _mmss_to_seconds(format_eta(9))


@pytest.mark.parametrize("value", [6000, 1e9, -5, float("inf"), float("nan")])
def test_format_eta_out_of_range(value):
    assert format_eta(value) == "--:--"


def test_update_accumulates_and_calls_back():
    calls = []
    progress = Progress(clock=FakeClock())
    progress.start(lambda total, done: calls.append((total, done)), 300)
    progress.update(100)
    progress.update(50)
    assert progress.done == 150
    assert calls == [(300, 100), (300, 150)]


def test_update_without_callback():
    progress = Progress(clock=FakeClock())
    progress.start(None, 10)
    progress.update(4)
    assert progress.done == 4


def test_elapsed_before_and_after_start():
    clock = FakeClock()
    progress = Progress(clock=clock)
    assert progress.elapsed() == 0.0
    progress.start(None, 1)
    clock.now += 2.5
    assert progress.elapsed() == 2.5


def test_bar_complete_has_full_width_and_newline():
    clock = FakeClock()
    out = io.StringIO()
    progress = Progress(out=out, clock=clock)
    progress.start(progress.bar, 2000)
    clock.now += 1.0
    progress.update(2000)
    text = out.getvalue()
    assert text.startswith("\r100% [")
    assert text.count("=") == BAR_WIDTH
    assert text.endswith(" kB/s\n")
    assert " kB, " in text


def test_bar_partial_shows_eta():
    clock = FakeClock()
    out = io.StringIO()
    progress = Progress(out=out, clock=clock)
    progress.start(None, 4000)
    clock.now += 1.0
    progress.bar(4000, 1000)
    text = out.getvalue()
    assert "ETA " in text
    assert not text.endswith("\n")
    inner = text[text.index("[") + 1:text.index("]")]
    assert len(inner) == BAR_WIDTH
    assert inner.count("=") == BAR_WIDTH // 4
    eta = text.split("ETA ")[1].strip()
    assert _mmss_to_seconds(eta) == 3


def test_gauge_prints_percentage_lines():
    out = io.StringIO()
    progress = Progress(out=out, clock=FakeClock())
    progress.gauge(0, 5)
    assert out.getvalue() == ""
    progress.gauge(8, 8)
    assert out.getvalue() == "100\n"


def test_gauge_xxx_partial_and_done():
    clock = FakeClock()
    out = io.StringIO()
    progress = Progress(out=out, clock=clock)
    progress.start(None, 200)
    clock.now += 1.0
    progress.gauge_xxx(200, 100)
    lines = out.getvalue().splitlines()
    assert lines[0] == "XXX" and lines[-1] == "XXX"
    assert lines[2].startswith("100 of 200, ")
    out.truncate(0)
    out.seek(0)
    progress.gauge_xxx(200, 200)
    lines = out.getvalue().splitlines()
    assert lines[1] == "100"
    assert lines[2].startswith("Done: ")


def test_gauge_xxx_ignores_zero_total():
    out = io.StringIO()
    Progress(out=out, clock=FakeClock()).gauge_xxx(0, 0)
    assert out.getvalue() == ""