"""Queue number formatting and parsing.

Queue numbers are ``{PREFIX}-{NNN}``: 1-5 uppercase letters, a dash and the
sequence value zero-padded to three digits (``A-007``).
"""

import re
from dataclasses import dataclass

from queuedesk.services.queue.exceptions import InvalidQueueNumber

QUEUE_NUMBER_RE = re.compile(r"^([A-Z]{1,5})-(\d{3})$")
PREFIX_RE = re.compile(r"^[A-Z]{1,5}$")

MIN_NUMBER = 1
MAX_NUMBER = 999


@dataclass(frozen=True, slots=True)
class QueueNumber:
    """Parsed queue number."""

    prefix: str
    number: int

    def __str__(self) -> str:
        return format_queue_number(self.prefix, self.number)


def format_queue_number(prefix: str, number: int) -> str:
    """Format a sequence value with the branch prefix: ("A", 7) -> "A-007".

    Raises:
        ValueError: prefix is not 1-5 uppercase letters or number is outside 1..999
    """
    if not PREFIX_RE.match(prefix):
        raise ValueError(f"Invalid queue prefix: {prefix!r}")
    if not MIN_NUMBER <= number <= MAX_NUMBER:
        raise ValueError(f"Queue number {number} outside {MIN_NUMBER}..{MAX_NUMBER}")
    return f"{prefix}-{number:03d}"


def parse_queue_number(queue_no: str) -> QueueNumber:
    """Parse "A-007" into QueueNumber(prefix="A", number=7)."""
    match = QUEUE_NUMBER_RE.match(queue_no)
    if not match:
        raise InvalidQueueNumber(queue_no)
    number = int(match.group(2))
    if number < MIN_NUMBER:
        raise InvalidQueueNumber(queue_no)
    return QueueNumber(prefix=match.group(1), number=number)


def normalize_queue_number(raw: str, prefix: str) -> str:
    """Normalize staff input to canonical form.

    Accepts "A-007", " a-007 " and the bare "007" shorthand (prefixed with
    the branch prefix).
    """
    value = raw.strip().upper()
    if value.isdigit() and len(value) == 3:
        value = f"{prefix}-{value}"
    return str(parse_queue_number(value))
