"""Instruction directive parsing.

Micro-step instructions carry machine-readable directives inline:

    Cook for 3 minutes [ACTION: SET_TIMER | TIME: 3m | LABEL: "BROWN"] [HEAT: 🔥🔥🔥 (Searing!)]

parse_instruction() takes at most one timer and one heat directive, each from
the first well-formed token of its kind, and returns the cleaned display text
alongside them. Every well-formed token is removed from the text, so parsing
the cleaned text again finds nothing. A timer token of zero minutes is not a
timer: it stays in the text, and when it comes first the instruction has no
timer even if a later token names one. Malformed tokens are left in the text
untouched.
"""

from __future__ import annotations

import re

from kitchen_quest.models import HeatDirective, ParsedInstruction, TimerDirective

FLAME = "🔥"
HEAT_NOT_APPLICABLE = "N/A"

_TIMER_RE = re.compile(
    r'\[ACTION:\s*SET_TIMER\s*\|\s*TIME:\s*(\d+)\s*m\s*\|\s*LABEL:\s*"([^"]+)"\s*\]',
    re.IGNORECASE,
)
_HEAT_RE = re.compile(
    r"\[HEAT:\s*((?:" + FLAME + r"\s*){1,3}|N/A)\s*(?:\(([^)]+)\))?\s*\]",
    re.IGNORECASE,
)

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"\s*([.,!?;])\s*")
_PUNCT_END_RE = re.compile(r"\s*([.,!?;])\Z")
_LEADING_QUOTES_RE = re.compile(r"^[\s\"'“”]+")
_TRAILING_QUOTES_RE = re.compile(r"[\s\"'“”]+\Z")
_LEADING_PERIOD_RE = re.compile(r"^[.,]\s*")


def _keep_zero_minute(match: re.Match) -> str:
    return match.group(0) if int(match.group(1)) <= 0 else ""


def _extract_timer(text: str) -> tuple[str, TimerDirective | None]:
    match = _TIMER_RE.search(text)
    if not match:
        return text, None
    minutes = int(match.group(1))
    timer = None
    if minutes > 0:
        timer = TimerDirective(minutes=minutes, label=match.group(2).strip())
    return _TIMER_RE.sub(_keep_zero_minute, text), timer


def _extract_heat(text: str) -> tuple[str, HeatDirective | None]:
    match = _HEAT_RE.search(text)
    if not match:
        return text, None
    flames = match.group(1).strip()
    if flames.upper() == HEAT_NOT_APPLICABLE:
        heat = HeatDirective(flames=HEAT_NOT_APPLICABLE, label="")
    else:
        heat = HeatDirective(
            flames=_WHITESPACE_RE.sub("", flames),
            label=(match.group(2) or "").strip(),
        )
    return _HEAT_RE.sub("", text), heat


def _tidy_once(text: str) -> str:
    text = _WHITESPACE_RE.sub(" ", text)
    text = _PUNCT_RE.sub(r"\1 ", text)
    text = _PUNCT_END_RE.sub(r"\1", text)
    text = _LEADING_QUOTES_RE.sub("", text)
    text = _TRAILING_QUOTES_RE.sub("", text)
    text = _LEADING_PERIOD_RE.sub("", text)
    return text.strip()


def tidy_instruction(text: str) -> str:
    """Normalise spacing, punctuation and stray quotes left after token removal.

    A single pass can expose a new leading comma or quote (e.g. ``"., go"``),
    so passes repeat until the text is stable. That keeps parse_instruction
    idempotent on its own output.
    """
    while True:
        tidied = _tidy_once(text)
        if tidied == text:
            return tidied
        text = tidied


def parse_instruction(raw_instruction: str | None) -> ParsedInstruction:
    """Split a raw instruction into display text plus timer/heat directives."""
    text = raw_instruction or ""
    text, timer = _extract_timer(text)
    text, heat = _extract_heat(text)
    return ParsedInstruction(
        clean_instruction=tidy_instruction(text),
        timer=timer,
        heat=heat,
    )


def format_heat(heat: HeatDirective | None) -> str | None:
    """Display string for a heat directive, or None when there is nothing to show."""
    if heat is None or heat.flames == HEAT_NOT_APPLICABLE:
        return None
    if heat.label:
        return f"{heat.flames} ({heat.label})"
    return heat.flames


def format_countdown(seconds: int) -> str:
    """Render remaining seconds as MM:SS."""
    minutes, secs = divmod(max(seconds, 0), 60)
    return f"{minutes:02d}:{secs:02d}"
