"""Tests for domain enumerations."""

from __future__ import annotations

from freelance_marketplace.domain.enums import (
    EffectName,
    EffectStatus,
    JobEvent,
    JobStatus,
    SettlementChannel,
)
from freelance_marketplace.domain.state_machine import JobStateMachine


class TestJobStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {"open", "in_progress", "submitted", "completed", "cancelled"}
        actual = {s.value for s in JobStatus}
        assert actual == expected

    def test_status_is_str_enum(self) -> None:
        assert isinstance(JobStatus.OPEN, str)
        assert JobStatus.IN_PROGRESS == "in_progress"

    def test_statuses_match_state_machine(self) -> None:
        assert {s.value for s in JobStatus} == {s.value for s in JobStateMachine("open").states}


class TestJobEvent:
    def test_events_are_state_machine_events(self) -> None:
        sm = JobStateMachine("open")
        for event in JobEvent:
            assert callable(getattr(sm, event.value))


class TestEffects:
    def test_claim_effects(self) -> None:
        assert [e.value for e in EffectName] == [
            "payment_reservation",
            "escrow",
            "notification",
            "conversation",
        ]

    def test_effect_status_values(self) -> None:
        assert EffectStatus.APPLIED == "applied"
        assert EffectStatus.SKIPPED == "skipped"
        assert EffectStatus.FAILED == "failed"


class TestSettlementChannel:
    def test_channels(self) -> None:
        assert SettlementChannel("network") is SettlementChannel.NETWORK
        assert SettlementChannel("escrow") is SettlementChannel.ESCROW
