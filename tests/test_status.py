"""
Tests for thread status aggregation.
"""

import pytest

from brenner_artifact.models.thread import AgentRole, ThreadPhase
from brenner_artifact.settings import reset_settings
from brenner_artifact.threads.status import (
    delta_messages_for_current_round,
    format_thread_status_summary,
    messages_in_current_round,
    pending_roles,
    status,
    thread_needs_attention,
)

from factories import at, make_message

AGENTS = ["gpt", "opus", "gemini"]


def kickoff(**fields):
    return make_message(
        1,
        "KICKOFF: RS-20251230 cell fate",
        sender="human",
        thread_id="RS-20251230",
        to=AGENTS,
        **fields,
    )


def delta(message_id, tag, sender=None):
    return make_message(message_id, f"DELTA[{tag}]: contribution", sender=sender or tag)


def compiled(message_id, version=None):
    subject = f"COMPILED: v{version} artifact" if version is not None else "COMPILED: artifact"
    return make_message(message_id, subject, sender="compiler")


@pytest.fixture
def full_round():
    return [kickoff(), delta(2, "gpt"), delta(3, "opus"), delta(4, "gemini")]


class TestPhases:
    def test_empty_thread(self):
        result = status([])
        assert result.phase == ThreadPhase.NOT_STARTED
        assert result.round == 0
        assert result.latest_artifact is None
        assert not result.is_complete

    def test_kickoff_only(self):
        result = status([kickoff()])
        assert result.phase == ThreadPhase.AWAITING_RESPONSES
        assert result.kickoff_id == 1
        assert result.thread_id == "RS-20251230"

    def test_some_roles_in(self):
        result = status([kickoff(), delta(2, "gpt")])
        assert result.phase == ThreadPhase.PARTIALLY_COMPLETE
        role = result.roles[AgentRole.HYPOTHESIS_GENERATOR]
        assert role.completed
        assert role.contributors == ["gpt"]
        assert role.latest_delta_id == 2
        assert role.last_updated == at(2)
        assert not result.roles[AgentRole.TEST_DESIGNER].completed

    def test_all_roles_in(self, full_round):
        result = status(full_round)
        assert result.phase == ThreadPhase.AWAITING_COMPILATION
        assert result.is_complete
        assert result.deltas_in_current_round == 3
        assert pending_roles(result) == []

    def test_deltas_without_kickoff(self):
        assert status([delta(2, "gpt")]).phase == ThreadPhase.PARTIALLY_COMPLETE

    def test_compiled(self, full_round):
        result = status([*full_round, compiled(5, version=1)])
        assert result.round == 1
        assert result.phase == ThreadPhase.COMPILED
        assert result.deltas_in_current_round == 0
        assert not result.roles[AgentRole.TEST_DESIGNER].completed
        assert not thread_needs_attention(result)

    def test_new_deltas_after_compile(self, full_round):
        result = status([*full_round, compiled(5, version=1), delta(6, "opus")])
        assert result.phase == ThreadPhase.AWAITING_COMPILATION
        assert result.roles[AgentRole.TEST_DESIGNER].completed
        assert pending_roles(result) == [AgentRole.HYPOTHESIS_GENERATOR, AgentRole.ADVERSARIAL_CRITIC]

    def test_critique_after_compile(self, full_round):
        critique = make_message(6, "CRITIQUE: H2 ignores mosaics", sender="gemini")
        result = status([*full_round, compiled(5, version=1), critique, delta(7, "gpt")])
        assert result.phase == ThreadPhase.IN_CRITIQUE
        assert result.critiques_in_current_round == 1

    def test_unknown_tag_counts_as_delta_only(self):
        result = status([kickoff(), delta(2, "mistral")])
        assert result.deltas_in_current_round == 1
        assert result.phase == ThreadPhase.AWAITING_RESPONSES

    def test_expected_roles_override(self):
        result = status([kickoff(), delta(2, "gpt")], expected_roles=["hypothesis_generator"])
        assert result.phase == ThreadPhase.AWAITING_COMPILATION
        assert result.is_complete

    def test_expected_roles_from_environment(self, monkeypatch):
        monkeypatch.setenv("BRENNER_EXPECTED_ROLES", '["test_designer"]')
        reset_settings()
        assert status([kickoff(), delta(2, "opus")]).is_complete


class TestRoundsAndArtifacts:
    def test_round_counts_compiles(self, full_round):
        messages = [*full_round, compiled(5, 1), delta(6, "gpt"), compiled(7, 2)]
        result = status(messages)
        assert result.round == 2
        assert result.latest_artifact.version == 2
        assert result.latest_artifact.message_id == 7

    def test_latest_artifact_pointer(self, full_round):
        result = status([*full_round, compiled(5, version=3)])
        artifact = result.latest_artifact
        assert artifact.version == 3
        assert artifact.compiled_at == at(5)
        assert artifact.compiled_by == "compiler"
        assert artifact.contributors == AGENTS

    def test_version_falls_back_to_round(self, full_round):
        result = status([*full_round, compiled(5)])
        assert result.latest_artifact.version == 1

    def test_input_order_does_not_matter(self, full_round):
        messages = [*full_round, compiled(5, 1), delta(6, "opus")]
        assert status(list(reversed(messages))) == status(messages)

    def test_current_round_helpers(self, full_round):
        critique = make_message(6, "CRITIQUE: scale", sender="gemini")
        messages = [*full_round, compiled(5, 1), critique, delta(7, "gpt")]
        assert [m.id for m in messages_in_current_round(messages)] == [6, 7]
        assert [m.id for m in delta_messages_for_current_round(messages)] == [7]

    def test_stats(self, full_round):
        ack = make_message(6, "ACK: thanks", sender="gpt")
        result = status([*full_round, compiled(5, 1), ack])
        assert result.stats.total_messages == 6
        assert result.stats.total_deltas == 3
        assert result.stats.total_acks == 1
        assert result.stats.participants == ["human", *AGENTS, "compiler"]


class TestAcknowledgements:
    def test_pending_acks(self):
        messages = [
            kickoff(ack_required=True),
            make_message(2, "ACK: on it", sender="gpt", reply_to=1),
        ]
        acks = status(messages).acks
        assert acks.message_id == 1
        assert acks.pending_count == 2
        assert acks.awaiting_from == ["opus", "gemini"]
        assert acks.acknowledged_by == ["gpt"]

    def test_ack_sender_match_is_case_insensitive(self):
        messages = [kickoff(ack_required=True), make_message(2, "ACK: ok", sender="OPUS")]
        assert status(messages).acks.awaiting_from == ["gpt", "gemini"]

    def test_ack_to_another_message_does_not_count(self):
        messages = [kickoff(ack_required=True), make_message(2, "ACK: ok", sender="gpt", reply_to=99)]
        assert status(messages).acks.pending_count == 3

    def test_ack_before_request_does_not_count(self):
        messages = [
            make_message(1, "ACK: early", sender="gpt"),
            make_message(2, "INFO: please confirm", sender="human", to=AGENTS, ack_required=True),
        ]
        assert status(messages).acks.pending_count == 3

    def test_sender_never_awaits_own_ack(self):
        request = make_message(1, "INFO: sync", sender="gpt", to=["gpt", "opus"], ack_required=True)
        assert status([request]).acks.awaiting_from == ["opus"]

    def test_cc_recipients_are_included(self):
        request = make_message(1, "INFO: sync", sender="human", to=["gpt"], cc=["opus"], ack_required=True)
        assert status([request]).acks.awaiting_from == ["gpt", "opus"]

    def test_implicit_ack(self):
        messages = [kickoff(ack_required=True), delta(2, "gemini")]
        assert status(messages).acks.pending_count == 3
        assert status(messages, implicit_ack=True).acks.awaiting_from == ["gpt", "opus"]

    def test_latest_request_wins(self):
        messages = [
            kickoff(ack_required=True),
            make_message(2, "INFO: second request", sender="human", to=["opus"], ack_required=True),
        ]
        acks = status(messages).acks
        assert acks.message_id == 2
        assert acks.awaiting_from == ["opus"]

    def test_pending_acks_need_attention(self, full_round):
        messages = [*full_round, make_message(5, "COMPILED: v1 artifact", sender="compiler", to=AGENTS, ack_required=True)]
        result = status(messages)
        assert result.phase == ThreadPhase.COMPILED
        assert thread_needs_attention(result)
        assert "3 pending acks" in result.summary


def test_summary_text(full_round):
    result = status([*full_round, compiled(5, 1)])
    text = format_thread_status_summary(result)
    assert "Thread: RS-20251230" in text
    assert "Round: 1" in text
    assert "Phase: compiled" in text
    assert "Compiled artifact: v1" in text
    assert "  [ ] hypothesis_generator" in text
    assert result.summary == "0/3 roles | Phase: compiled"
