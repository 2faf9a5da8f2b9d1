"""Transfer progress tracking and display callbacks."""

from __future__ import annotations

import math
import sys
import time
from typing import Callable, Optional, TextIO

ProgressCallback = Callable[[int, int], None]

BAR_WIDTH = 48


def kilo(value: float) -> float:
    """Scale by the SI prefix k (1000)."""
    return value / 1000.0


def kibi(value: float) -> float:
    """Scale by the binary prefix Ki (1024)."""
    return value / 1024.0


def rate(transferred: float, elapsed: float) -> float:
    """Transfer rate in bytes per second, 0 when no time has passed."""
    if elapsed > 0:
        return transferred / elapsed
    return 0.0


def estimate(remaining: float, rate: float) -> float:
    """Seconds left at the given rate, 0 when the rate is unknown."""
    if rate > 0:
        return remaining / rate
    return 0.0


def format_eta(remaining: float) -> str:
    """Format seconds as MM:SS, or ``--:--`` when out of range."""
    if not math.isfinite(remaining):
        return "--:--"
    seconds = int(remaining + 0.5)
    if 0 <= seconds < 6000:
        return f"{seconds // 60:02d}:{seconds % 60:02d}"
    return "--:--"


class Progress:
    """Progress state: accumulates bytes done and notifies a callback."""

    def __init__(self, out: Optional[TextIO] = None,
                 clock: Callable[[], float] = time.time) -> None:
        self._out = out
        self._clock = clock
        self.callback: Optional[ProgressCallback] = None
        self.total = 0
        self.done = 0
        self.start_time = 0.0

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def start(self, callback: Optional[ProgressCallback],
              expected_total: int) -> None:
        """Reset the counters and the start time."""
        self.callback = callback
        self.total = expected_total
        self.done = 0
        self.start_time = self._clock()

    def update(self, bytes_done: int) -> None:
        """Add transferred bytes and pass the totals to the callback."""
        self.done += bytes_done
        if self.callback is not None:
            self.callback(self.total, self.done)

    def elapsed(self) -> float:
        """Seconds since start(), or 0 if never started."""
        if self.start_time != 0.0:
            return self._clock() - self.start_time
        return 0.0

    def bar(self, total: int, done: int) -> None:
        """Draw a one-line progress bar, ending with a newline when complete."""
        ratio = done / total if total > 0 else 0.0
        pos = int(BAR_WIDTH * ratio)
        speed = rate(done, self.elapsed())
        eta = estimate(max(total - done, 0), speed)
        text = f"\r{ratio * 100:3.0f}% [" + "=" * pos + " " * (BAR_WIDTH - pos)
        if done < total:
            text += f"]{kilo(speed):6.1f} kB/s, ETA {format_eta(eta)} "
        else:
            text += f"] {kilo(done):5.0f} kB, {kilo(speed):6.1f} kB/s\n"
        out = self.out
        out.write(text)
        out.flush()

    def gauge(self, total: int, done: int) -> None:
        """Print the percentage on its own line, for a dialog gauge."""
        if total > 0:
            out = self.out
            out.write(f"{done / total * 100:.0f}\n")
            out.flush()

    def gauge_xxx(self, total: int, done: int) -> None:
        """Print percentage and caption between XXX markers, for a dialog gauge."""
        if total <= 0:
            return
        speed = rate(done, self.elapsed())
        eta = estimate(max(total - done, 0), speed)
        lines = ["XXX", f"{done / total * 100:.0f}"]
        if done < total:
            lines.append(f"{done} of {total}, {kilo(speed):.1f} kB/s, "
                         f"ETA {format_eta(eta)}")
        else:
            lines.append(f"Done: {kilo(done):.1f} kB, at {kilo(speed):.1f} kB/s")
        lines.append("XXX")
        out = self.out
        out.write("\n".join(lines) + "\n")
        out.flush()