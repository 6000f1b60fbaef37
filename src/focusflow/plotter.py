from __future__ import annotations

from typing import List, Optional, Tuple

import matplotlib.pyplot as plt

from .clock import day_key, shift_day
from .ledger import TimeLedger
from .progression import SubjectSummary

FOCUS_COLOR = "#2ecc71"
BREAK_COLOR = "#4dabf7"


def focus_history_series(
    ledger: TimeLedger, days: int = 14, today: Optional[str] = None
) -> Tuple[List[str], List[float], List[float]]:
    """Return (day keys, focus minutes, break minutes) for the last ``days`` days, oldest first."""
    today = today or day_key()
    keys = [shift_day(today, -offset) for offset in range(max(1, days) - 1, -1, -1)]
    focus: List[float] = []
    breaks: List[float] = []
    for key in keys:
        entry = ledger.get(key)
        focus.append(entry.focus_seconds / 60 if entry else 0.0)
        breaks.append(entry.break_seconds / 60 if entry else 0.0)
    return keys, focus, breaks


def _show() -> None:
    # Non-blocking show when the backend supports it
    try:
        plt.show(block=False)  # type: ignore[call-arg]
    except TypeError:
        plt.show()  # type: ignore[call-arg]


def show_focus_history(ledger: TimeLedger, days: int = 14, today: Optional[str] = None, block: bool = True):
    """Show a stacked bar chart of focus and break minutes per day."""
    keys, focus, breaks = focus_history_series(ledger, days, today)
    labels = [k[5:] for k in keys]  # MM-DD

    fig, ax = plt.subplots()  # type: ignore[call-arg]
    ax.bar(labels, focus, color=FOCUS_COLOR, label="Focus")
    ax.bar(labels, breaks, bottom=focus, color=BREAK_COLOR, label="Break")
    ax.set_ylabel("Minutes")  # type: ignore[call-arg]
    ax.set_title(f"FocusFlow - last {len(keys)} days")  # type: ignore[call-arg]
    ax.legend()
    fig.autofmt_xdate()
    if block:
        plt.show()  # type: ignore[call-arg]
    else:
        _show()
    return fig


def show_subject_breakdown(summaries: List[SubjectSummary], block: bool = True):
    """Show a pie chart of lifetime minutes per subject."""
    items = [s for s in summaries if s.lifetime_minutes > 0]
    fig, ax = plt.subplots()  # type: ignore[call-arg]
    if items:
        ax.pie(
            [s.lifetime_minutes for s in items],
            labels=[s.name for s in items],
            colors=[s.color for s in items],
            autopct=lambda p: f"{p:.1f}%",
            startangle=140,
            textprops={"color": "black"},
        )  # type: ignore[call-arg]
    else:
        # Avoid an empty pie; leave a note instead
        ax.text(0.5, 0.5, "No focus time yet", ha="center", va="center")
    ax.axis("equal")  # Equal aspect ratio ensures that pie is drawn as a circle.
    ax.set_title("FocusFlow - subject breakdown")  # type: ignore[call-arg]
    if block:
        plt.show()  # type: ignore[call-arg]
    else:
        _show()
    return fig
