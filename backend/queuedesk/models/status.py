"""Ticket status definitions with flag-based metadata and the transition table.

Statuses are declared with combinable flags so that queries can ask for
"every status that occupies the serving slot" or "every final status" instead of
hard-coding member lists:

    class TicketStatus(StatusEnum):
        WAITING = Status("WAITING", Flags.QUEUED, display="Waiting")
        SERVING = Status("SERVING", Flags.OCCUPIES_SLOT, display="Now serving")
        DONE = Status("DONE", Flags.FINAL, display="Done")
"""

from dataclasses import dataclass
from enum import IntFlag, StrEnum, auto
from typing import Any


class Flags(IntFlag):
    """Ticket status metadata flags.

    Flags:
        QUEUED        - Ticket is waiting in line and can be called
        OCCUPIES_SLOT - Ticket holds the serving slot of its scope
        FINAL         - Terminal state, no outgoing transitions
    """

    NONE = 0
    QUEUED = auto()
    OCCUPIES_SLOT = auto()
    FINAL = auto()


@dataclass(frozen=True)
class FlagRule:
    """Rule for validating flag combinations.

    Attributes:
        when: All these bits must be present to trigger the rule
        required: These bits must also be present (when rule triggers)
        forbidden: These bits must be absent (when rule triggers)
    """

    when: Flags
    required: Flags = Flags.NONE
    forbidden: Flags = Flags.NONE

    def __post_init__(self) -> None:
        if self.when == Flags.NONE:
            raise ValueError("when may not be empty")
        if self.required & self.forbidden:
            raise ValueError("required and forbidden overlap")


FLAG_RULES: set[FlagRule] = {
    # A final ticket neither waits nor holds the slot
    FlagRule(
        when=Flags.FINAL,
        forbidden=Flags.QUEUED | Flags.OCCUPIES_SLOT,
    ),
    # A ticket in the slot is no longer in line
    FlagRule(
        when=Flags.OCCUPIES_SLOT,
        forbidden=Flags.QUEUED,
    ),
}


def validate_flags(value: Flags) -> None:
    """Validate flag combination against rules."""
    for rule in FLAG_RULES:
        if (value & rule.when) != rule.when:
            continue

        missing = rule.required & ~value
        present_forbidden = value & rule.forbidden

        if missing or present_forbidden:
            parts: list[str] = []
            if missing:
                missing_name = missing.name or str(missing)
                parts.append(f"{missing_name.replace('|', ' and ')} must be present")
            if present_forbidden:
                forbidden_name = present_forbidden.name or str(present_forbidden)
                parts.append(f"{forbidden_name.replace('|', ' and ')} cannot be present")

            when_name = rule.when.name or str(rule.when)
            when_txt = when_name.replace("|", " and ")
            raise ValueError(f"When {when_txt}: " + " and ".join(parts))


@dataclass(frozen=True, slots=True)
class Status:
    """Status definition with value, flags, and display name."""

    value: str
    flags: Flags = Flags.NONE
    display: str = ""

    def __post_init__(self) -> None:
        validate_flags(self.flags)

    @property
    def is_queued(self) -> bool:
        return bool(self.flags & Flags.QUEUED)

    @property
    def occupies_slot(self) -> bool:
        return bool(self.flags & Flags.OCCUPIES_SLOT)

    @property
    def is_final(self) -> bool:
        return bool(self.flags & Flags.FINAL)


# Registry to store Status metadata for each enum class
_status_registries: dict[type, dict[str, Status]] = {}


class StatusEnum(StrEnum):
    """Base class for status enums with metadata support.

    The enum value is the string stored in the database, metadata is accessible via .meta
    """

    def __new__(cls, status: Status | str) -> "StatusEnum":
        if isinstance(status, Status):
            value = status.value
            _status_registries.setdefault(cls, {})[value] = status
        else:
            value = status

        obj = str.__new__(cls, value)
        obj._value_ = value
        return obj

    @property
    def meta(self) -> Status:
        """Get metadata for this status."""
        registry = _status_registries.get(type(self), {})
        return registry.get(self._value_, Status(self._value_))

    @classmethod
    def queued_states(cls) -> "frozenset[Any]":
        """States of tickets still waiting in line (QUEUED flag)."""
        return frozenset(s for s in cls if s.meta.is_queued)

    @classmethod
    def slot_states(cls) -> "frozenset[Any]":
        """States holding the serving slot (OCCUPIES_SLOT flag)."""
        return frozenset(s for s in cls if s.meta.occupies_slot)

    @classmethod
    def active_states(cls) -> "frozenset[Any]":
        """Every non-final state."""
        return frozenset(s for s in cls if not s.meta.is_final)

    @classmethod
    def final_states(cls) -> "frozenset[Any]":
        """Terminal states (FINAL flag)."""
        return frozenset(s for s in cls if s.meta.is_final)


class TicketStatus(StatusEnum):
    """Lifecycle of a queue ticket.

    Status flow:
        WAITING -> SERVING -> DONE
        WAITING -> NOSHOW
        SERVING -> NOSHOW
    """

    WAITING = Status("WAITING", Flags.QUEUED, display="Waiting")
    SERVING = Status("SERVING", Flags.OCCUPIES_SLOT, display="Now serving")
    DONE = Status("DONE", Flags.FINAL, display="Done")
    NOSHOW = Status("NOSHOW", Flags.FINAL, display="No-show")


# Allowed transitions; anything not listed here is rejected
TICKET_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.WAITING: frozenset({TicketStatus.SERVING, TicketStatus.NOSHOW}),
    TicketStatus.SERVING: frozenset({TicketStatus.DONE, TicketStatus.NOSHOW}),
    TicketStatus.DONE: frozenset(),
    TicketStatus.NOSHOW: frozenset(),
}


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    """Return True if a ticket in `current` may move to `target`."""
    return target in TICKET_TRANSITIONS.get(current, frozenset())


def allowed_sources(target: TicketStatus) -> frozenset[TicketStatus]:
    """Statuses from which `target` can be reached."""
    return frozenset(source for source, targets in TICKET_TRANSITIONS.items() if target in targets)
