"""
CLI Bridge: Progress classifier.
Pure pattern matching over a single output line. Rate limiting of the derived
events belongs to the relay, not here.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple


@dataclass(frozen=True)
class ProgressSignal:
    percent: Optional[float]
    message: str
    stage: str = ""


# Tried in order; the first one that yields a usable number wins
NUMERIC_PATTERNS: List[Pattern] = [
    re.compile(r"(\d+)%\s*[/\\]\s*(\d+)"),      # 45% / 100
    re.compile(r"(\d+)\s*of\s*(\d+)", re.I),    # 12 of 40
    re.compile(r"progress[:\s]+(\d+)%", re.I),  # Progress: 72%
    re.compile(r"(\d+)/(\d+)"),                 # 3/10
    re.compile(r"\[(\d+)%\]"),                  # [50%]
]

STAGE_PATTERNS: List[Tuple[Pattern, str]] = [
    (re.compile(r"backing up", re.I), "Backing up data..."),
    (re.compile(r"restoring", re.I), "Restoring data..."),
    (re.compile(r"syncing", re.I), "Synchronizing..."),
    (re.compile(r"processing", re.I), "Processing..."),
    (re.compile(r"validating", re.I), "Validating..."),
    (re.compile(r"fetching", re.I), "Fetching data..."),
    (re.compile(r"uploading", re.I), "Uploading..."),
    (re.compile(r"downloading", re.I), "Downloading..."),
]


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def _numeric_percent(line: str) -> Optional[float]:
    for pattern in NUMERIC_PATTERNS:
        match = pattern.search(line)
        if not match:
            continue
        groups = [g for g in match.groups() if g is not None]
        if len(groups) == 2:
            current, total = int(groups[0]), int(groups[1])
            if total > 0:
                return _clamp(round(current * 100 / total, 2))
        elif len(groups) == 1:
            return _clamp(float(groups[0]))
    return None


def classify(line: str) -> Optional[ProgressSignal]:
    """Derive a progress signal from one line of CLI output, or None."""
    percent = _numeric_percent(line)
    if percent is not None:
        return ProgressSignal(percent=percent, message=line)

    for pattern, stage in STAGE_PATTERNS:
        if pattern.search(line):
            return ProgressSignal(percent=None, message=line, stage=stage)
    return None
