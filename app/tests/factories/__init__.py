"""Test data factories for deterministic test data generation."""

from tests.factories.notifications import (
    FakeClock,
    ScriptedAdapter,
    make_dead_letter_entry,
    make_event,
    make_log_entry,
    make_payload,
    make_recipient,
)

__all__ = [
    "FakeClock",
    "ScriptedAdapter",
    "make_dead_letter_entry",
    "make_event",
    "make_log_entry",
    "make_payload",
    "make_recipient",
]
