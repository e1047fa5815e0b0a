import pytest

from queuedesk.services.queue.exceptions import InvalidQueueNumber
from queuedesk.services.queue.queue_number import (
    QueueNumber,
    format_queue_number,
    normalize_queue_number,
    parse_queue_number,
)


@pytest.mark.parametrize(
    ("prefix", "number", "expected"),
    [
        ("A", 1, "A-001"),
        ("A", 7, "A-007"),
        ("B", 42, "B-042"),
        ("VIP", 999, "VIP-999"),
        ("ABCDE", 100, "ABCDE-100"),
    ],
)
def test_format_queue_number(prefix, number, expected):
    assert format_queue_number(prefix, number) == expected


@pytest.mark.parametrize(("prefix", "number"), [("A", 0), ("A", 1000), ("a", 1), ("", 1), ("ABCDEF", 1), ("A1", 1)])
def test_format_queue_number_rejects_out_of_range(prefix, number):
    with pytest.raises(ValueError):
        format_queue_number(prefix, number)


def test_parse_queue_number():
    assert parse_queue_number("A-007") == QueueNumber(prefix="A", number=7)
    assert parse_queue_number("VIP-999") == QueueNumber(prefix="VIP", number=999)


def test_parse_inverts_format_at_the_edges():
    for number in (1, 9, 10, 99, 100, 999):
        queue_no = format_queue_number("AB", number)
        assert str(parse_queue_number(queue_no)) == queue_no


@pytest.mark.parametrize("raw", ["A-7", "A-0007", "a-007", "A007", "ABCDEF-001", "A-000", "", "1-001"])
def test_parse_queue_number_rejects_malformed(raw):
    with pytest.raises(InvalidQueueNumber):
        parse_queue_number(raw)


@pytest.mark.parametrize(("raw", "expected"), [("A-007", "A-007"), (" a-007 ", "A-007"), ("007", "A-007")])
def test_normalize_queue_number(raw, expected):
    assert normalize_queue_number(raw, "A") == expected


def test_normalize_keeps_foreign_prefix():
    # Resolving it is the caller's business; it just won't be found in branch A
    assert normalize_queue_number("B-001", "A") == "B-001"


@pytest.mark.parametrize("raw", ["7", "0007", "A-", "garbage"])
def test_normalize_queue_number_rejects_malformed(raw):
    with pytest.raises(InvalidQueueNumber):
        normalize_queue_number(raw, "A")
