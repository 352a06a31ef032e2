"""
Free-text earnings parser.

Parses earnings pasted from the node dashboard, e.g.:

    0x01...a278
    + $0.07
    completed / 06 Dec 2025

Lines are grouped into records by a small state machine: a line carrying
a node identifier starts a new group. Each group is then searched for a
node id, an amount, a date and a status keyword.
"""

import re
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional

import structlog

from node_ledger.models.earning import EarningStatus
from node_ledger.models.ingest import ParseResult, UnparsedGroup
from node_ledger.parsing.dates import find_date


logger = structlog.get_logger(__name__)


# Abbreviated address as shown by the dashboard: 0x01...a278
ABBREVIATED_NODE_ID_RE = re.compile(r"0x[0-9a-fA-F]{2,}\.{2,}[0-9a-fA-F]{2,}")
# Full address, as found in exports of the license inventory.
FULL_NODE_ID_RE = re.compile(r"0x[0-9a-fA-F]{40,64}(?![0-9a-fA-F])")

AMOUNT_RE = re.compile(r"\+?\s*\$\s*(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+\.?\d*)")

# Checked in order; "completed" wins over "error" on the same line.
_STATUS_KEYWORDS: list[tuple[tuple[str, ...], EarningStatus]] = [
    (("completed", "complete"), EarningStatus.COMPLETED),
    (("pending",), EarningStatus.PENDING),
    (("failed", "error"), EarningStatus.FAILED),
    (("processing",), EarningStatus.PROCESSING),
]


def extract_node_id(line: str) -> Optional[str]:
    match = ABBREVIATED_NODE_ID_RE.search(line)
    if match:
        return match.group(0)
    match = FULL_NODE_ID_RE.search(line)
    return match.group(0) if match else None


def extract_amount(line: str) -> Optional[float]:
    match = AMOUNT_RE.search(line)
    if not match:
        return None
    return float(match.group(1).replace(",", ""))


def extract_status(line: str) -> Optional[EarningStatus]:
    """Status keyword in a line (case-insensitive), or None."""
    lowered = line.lower()
    for keywords, status in _STATUS_KEYWORDS:
        if any(k in lowered for k in keywords):
            return status
    return None


def has_node_id(line: str) -> bool:
    return extract_node_id(line) is not None


class GroupingState(str, Enum):
    COLLECTING = "collecting"
    FLUSH_AND_RESTART = "flush_and_restart"


class LineGrouper:
    """
    Two-state line grouper.

    COLLECTING: the line is appended to the current group.
    FLUSH_AND_RESTART: the line is a record boundary and the current group
    is non-empty, so the group is emitted and a new one starts with the
    line. The grouper then returns to COLLECTING.
    """

    def __init__(self, is_boundary: Callable[[str], bool] = has_node_id):
        self._is_boundary = is_boundary
        self._current: list[str] = []
        self.state = GroupingState.COLLECTING

    def _next_state(self, line: str) -> GroupingState:
        if self._current and self._is_boundary(line):
            return GroupingState.FLUSH_AND_RESTART
        return GroupingState.COLLECTING

    def feed(self, line: str) -> Optional[list[str]]:
        """Consume one line; returns a completed group when one is flushed."""
        self.state = self._next_state(line)

        if self.state == GroupingState.FLUSH_AND_RESTART:
            flushed = self._current
            self._current = [line]
            self.state = GroupingState.COLLECTING
            return flushed

        self._current.append(line)
        return None

    def finish(self) -> Optional[list[str]]:
        """Flush the last group at end of input."""
        if not self._current:
            return None
        flushed, self._current = self._current, []
        return flushed


def group_lines(
    lines: Iterable[str],
    is_boundary: Callable[[str], bool] = has_node_id,
) -> Iterator[list[str]]:
    grouper = LineGrouper(is_boundary)
    for line in lines:
        group = grouper.feed(line)
        if group:
            yield group
    last = grouper.finish()
    if last:
        yield last


def parse_group(lines: list[str]) -> tuple[Optional[dict], list[str]]:
    """
    Extract one candidate record from a group of lines.

    Returns (record, missing_fields). The record is None when any of
    node id, amount or date could not be found.
    """
    node_id = None
    amount = None
    date = None
    status = EarningStatus.COMPLETED

    for line in lines:
        if node_id is None:
            node_id = extract_node_id(line)
        if amount is None:
            amount = extract_amount(line)
        if date is None:
            date = find_date(line)
        # A non-completed keyword anywhere in the group wins.
        found = extract_status(line)
        if found is not None and found != EarningStatus.COMPLETED:
            status = found

    missing = [
        name for name, value in (("nodeId", node_id), ("amount", amount), ("date", date))
        if value is None
    ]
    if missing:
        return None, missing

    return {
        "nodeId": node_id,
        "amount": amount,
        "date": date,
        "status": status.value,
    }, []


def parse_earnings_text(
    text: Optional[str],
    is_boundary: Callable[[str], bool] = has_node_id,
) -> ParseResult:
    """
    Parse pasted earnings text into candidate records.

    Groups that lack a node id, amount or date are reported in `unparsed`
    with their raw text; they never abort the rest of the parse.
    """
    if not isinstance(text, str) or not text.strip():
        return ParseResult(success=False, error="No text provided")

    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]

    records = []
    unparsed = []
    for group in group_lines(lines, is_boundary):
        record, missing = parse_group(group)
        if record is None:
            unparsed.append(UnparsedGroup(text="\n".join(group), missing=missing))
        else:
            records.append(record)

    logger.info(
        "text_parsed",
        line_count=len(lines),
        parsed_count=len(records),
        error_count=len(unparsed),
    )

    return ParseResult(
        success=len(records) > 0,
        records=records,
        unparsed=unparsed,
        error=None if records else "No earnings could be parsed from the text",
    )


def example_format() -> str:
    """Paste-format help shown to the operator."""
    return """Example format:

0x01...a278
+ $0.07
completed / 06 Dec 2025

0x01...a278
+ $0.09
completed / 05 Dec 2025

0x02...b123
+ $0.15
completed / 07 Dec 2025

Each entry should include:
- Node ID (e.g., 0x01...a278)
- Amount (e.g., + $0.07)
- Date and status (e.g., completed / 06 Dec 2025)

Dates may also be written as Dec 06, 2025, 2025-12-06 or 12/06/2025.
Entries can be separated by blank lines or consecutive."""
