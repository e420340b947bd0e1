"""
Tests for the delta merge engine.
"""

import pytest

from brenner_artifact.errors.types import ErrorType, UnsortedDeltasError
from brenner_artifact.identity import next_entry_id, section_id_prefix, target_matches_section
from brenner_artifact.merge.engine import (
    MergeConfig,
    check_baseline,
    create_empty_artifact,
    merge,
    sort_deltas,
)
from brenner_artifact.models.artifact import Entry
from brenner_artifact.models.delta import Delta
from brenner_artifact.models.results import OutcomeStatus
from brenner_artifact.models.sections import DeltaOperation, DeltaSection
from brenner_artifact.settings import reset_settings

from factories import (
    BASE_TIME,
    add,
    at,
    delete,
    edit,
    empty_artifact,
    kill,
    sequence,
    stamped,
)

H = "hypothesis_slate"


def _hypothesis(n: int, **extra):
    return add(H, name=f"Hypothesis {n}", claim=f"Claim {n}", mechanism=f"Mechanism {n}", **extra)


def _ids(artifact, section):
    return [e.id for e in artifact.entries(DeltaSection(section))]


class TestBasicMerge:
    def test_research_thread_edit_on_empty_baseline(self):
        rt = edit("research_thread", None, statement="S")

        result = merge(create_empty_artifact("T", BASE_TIME), [stamped(rt, 1)])

        assert result.ok
        assert result.applied_count == 1
        assert result.skipped_count == 0
        entries = result.artifact.entries(DeltaSection.RESEARCH_THREAD)
        assert len(entries) == 1
        assert entries[0].id == "RT"
        assert entries[0].content["statement"] == "S"

    def test_edit_of_missing_target_is_skipped(self):
        baseline = merge(empty_artifact(), sequence(_hypothesis(1))).artifact
        missing = edit(H, "H9", claim="Changed")

        result = merge(baseline, [stamped(missing, 10)])

        assert result.ok
        assert result.applied_count == 0
        assert result.skipped_count == 1
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.error_type == ErrorType.TARGET_NOT_FOUND
        assert warning.target_id == "H9"
        assert "H9" in warning.message
        assert result.outcomes[0].status == OutcomeStatus.SKIPPED

    def test_counts_cover_every_delta(self):
        items = sequence(
            _hypothesis(1),
            edit(H, "H7", claim="x"),
            kill(H, "H1"),
            delete(H, "H4"),
        )
        result = merge(empty_artifact(), items)
        assert result.applied_count + result.skipped_count == len(items)
        assert result.applied_count == 2

    def test_empty_batch(self):
        baseline = empty_artifact()
        result = merge(baseline, [])
        assert result.ok
        assert result.applied_count == 0
        assert result.artifact.metadata.version == baseline.metadata.version + 1
        assert result.artifact.metadata.status == "draft"


class TestOrdering:
    def test_unsorted_batch_raises(self):
        items = [stamped(_hypothesis(1), 5), stamped(_hypothesis(2), 2)]
        with pytest.raises(UnsortedDeltasError) as exc_info:
            merge(empty_artifact(), items)
        assert exc_info.value.index == 1

    def test_message_id_breaks_timestamp_ties(self):
        items = [
            stamped(_hypothesis(1), 1, message_id=7),
            stamped(_hypothesis(2), 1, message_id=3),
        ]
        with pytest.raises(UnsortedDeltasError):
            merge(empty_artifact(), items)

        result = merge(empty_artifact(), sort_deltas(items))
        hypotheses = result.artifact.entries(DeltaSection.HYPOTHESIS_SLATE)
        assert [h.content["name"] for h in hypotheses] == ["Hypothesis 2", "Hypothesis 1"]

    def test_unsorted_error_is_a_value_error(self):
        assert issubclass(UnsortedDeltasError, ValueError)


class TestBaselineCorruption:
    def test_duplicate_ids(self):
        baseline = empty_artifact()
        baseline.sections[DeltaSection.HYPOTHESIS_SLATE].extend([Entry(id="H1"), Entry(id="H1")])

        result = merge(baseline, sequence(_hypothesis(2)))

        assert not result.ok
        assert result.artifact is None
        assert result.applied_count == 0
        assert result.errors[0].error_type == ErrorType.BASELINE_CORRUPTION
        assert "H1" in result.errors[0].message

    def test_misfiled_id(self):
        baseline = empty_artifact()
        baseline.sections[DeltaSection.HYPOTHESIS_SLATE].append(Entry(id="T1"))
        errors = check_baseline(baseline)
        assert len(errors) == 1
        assert errors[0].target_id == "T1"

    def test_two_research_thread_entries(self):
        baseline = empty_artifact()
        baseline.sections[DeltaSection.RESEARCH_THREAD].extend([Entry(id="RT"), Entry(id="RT2")])
        assert not merge(baseline, []).ok

    def test_clean_baseline(self):
        baseline = merge(empty_artifact(), sequence(_hypothesis(1), _hypothesis(2))).artifact
        assert check_baseline(baseline) == []


class TestCreate:
    def test_ids_are_minted_in_order(self):
        result = merge(empty_artifact(), sequence(_hypothesis(1), _hypothesis(2), _hypothesis(3)))
        assert _ids(result.artifact, H) == ["H1", "H2", "H3"]
        assert [o.entry_id for o in result.outcomes] == ["H1", "H2", "H3"]

    def test_each_section_has_its_own_prefix(self):
        items = sequence(
            _hypothesis(1),
            add("predictions_table", condition="C", predictions={"H1": "yes"}),
            add("anomaly_register", name="N", observation="O", conflicts_with=["H1"]),
        )
        artifact = merge(empty_artifact(), items).artifact
        assert _ids(artifact, "predictions_table") == ["P1"]
        assert _ids(artifact, "anomaly_register") == ["X1"]

    def test_ids_are_never_reused(self):
        first = merge(empty_artifact(), sequence(_hypothesis(1), _hypothesis(2), delete(H, "H2")))
        assert _ids(first.artifact, H) == ["H1"]

        second = merge(first.artifact, [stamped(_hypothesis(3), 30)])
        assert _ids(second.artifact, H) == ["H1", "H3"]
        assert second.artifact.metadata.id_counters["H"] == 3

    def test_id_helpers(self):
        assert section_id_prefix(DeltaSection.ANOMALY_REGISTER) == "X"
        assert section_id_prefix(DeltaSection.RESEARCH_THREAD) == "RT"
        assert next_entry_id(DeltaSection.DISCRIMINATIVE_TESTS, ["T1", "H7", "T4"]) == "T5"
        assert next_entry_id(DeltaSection.DISCRIMINATIVE_TESTS, ["T1"], counter=6) == "T7"
        assert target_matches_section("A2", DeltaSection.ASSUMPTION_LEDGER)
        assert not target_matches_section("A2", DeltaSection.ADVERSARIAL_CRITIQUE)

    def test_provenance_is_recorded(self):
        delta = add(H, name="N", claim="C", mechanism="M")
        delta = delta.model_copy(update={"rationale": "From the morning session"})
        entry = merge(empty_artifact(), [stamped(delta, 4, agent="gpt", message_id=41)]).artifact.find(
            DeltaSection.HYPOTHESIS_SLATE, "H1"
        )
        assert entry.provenance.agent == "gpt"
        assert entry.provenance.timestamp == at(4)
        assert entry.provenance.message_id == 41
        assert entry.provenance.rationale == "From the morning session"
        assert entry.revision == 0

    def test_section_limit(self):
        config = MergeConfig(section_limits={DeltaSection.HYPOTHESIS_SLATE: 2})
        result = merge(
            empty_artifact(),
            sequence(_hypothesis(1), _hypothesis(2), _hypothesis(3)),
            config=config,
        )
        assert result.applied_count == 2
        assert result.warnings[-1].error_type == ErrorType.SECTION_LIMIT_EXCEEDED

    def test_killed_entries_free_their_slot(self):
        config = MergeConfig(section_limits={DeltaSection.HYPOTHESIS_SLATE: 2})
        items = sequence(_hypothesis(1), _hypothesis(2), kill(H, "H1"), _hypothesis(3))
        result = merge(empty_artifact(), items, config=config)
        assert result.skipped_count == 0
        assert _ids(result.artifact, H) == ["H1", "H2", "H3"]

    def test_default_limit_comes_from_settings(self, monkeypatch):
        monkeypatch.setenv("BRENNER_HYPOTHESIS_LIMIT", "1")
        reset_settings()
        result = merge(empty_artifact(), sequence(_hypothesis(1), _hypothesis(2)))
        assert result.skipped_count == 1

    def test_research_thread_is_a_singleton(self):
        items = sequence(
            edit("research_thread", None, statement="First"),
            edit("research_thread", None, statement="Refined", context="Added later"),
            edit("research_thread", "RT", why_it_matters="Settles the slate"),
        )
        artifact = merge(empty_artifact(), items).artifact
        entries = artifact.entries(DeltaSection.RESEARCH_THREAD)
        assert len(entries) == 1
        assert entries[0].content == {
            "statement": "Refined",
            "context": "Added later",
            "why_it_matters": "Settles the slate",
        }
        assert entries[0].revision == 2


class TestEdit:
    def test_edit_updates_only_named_fields(self):
        items = sequence(
            _hypothesis(1),
            edit(H, "H1", rationale="Sharper", claim="Sharper claim"),
        )
        entry = merge(empty_artifact(), items).artifact.find(DeltaSection.HYPOTHESIS_SLATE, "H1")
        assert entry.content == {"name": "Hypothesis 1", "claim": "Sharper claim", "mechanism": "Mechanism 1"}
        assert entry.revision == 1
        assert entry.provenance.rationale == "Sharper"

    def test_new_fields_land_in_schema_order(self):
        items = sequence(
            add("assumption_ledger", name="N", statement="S", load="L", test="T"),
            edit("assumption_ledger", "A1", calculation="x", scale_check=True, status="verified"),
        )
        entry = merge(empty_artifact(), items).artifact.find(DeltaSection.ASSUMPTION_LEDGER, "A1")
        assert list(entry.content) == ["name", "statement", "load", "test", "status", "scale_check", "calculation"]

    def test_list_fields_union_merge(self):
        items = sequence(
            add("anomaly_register", name="N", observation="O", conflicts_with=["H1"]),
            edit("anomaly_register", "X1", conflicts_with=["H2", "H1"]),
        )
        entry = merge(empty_artifact(), items).artifact.find(DeltaSection.ANOMALY_REGISTER, "X1")
        assert entry.content["conflicts_with"] == ["H1", "H2"]

    def test_replace_overrides_union(self):
        items = sequence(
            add("anomaly_register", name="N", observation="O", conflicts_with=["H1"]),
            edit("anomaly_register", "X1", conflicts_with=["H2"], replace=True),
        )
        entry = merge(empty_artifact(), items).artifact.find(DeltaSection.ANOMALY_REGISTER, "X1")
        assert entry.content["conflicts_with"] == ["H2"]

    def test_anchors_union_merge(self):
        items = sequence(_hypothesis(1, anchors=["§42"]), edit(H, "H1", anchors=["§43", "§42"]))
        entry = merge(empty_artifact(), items).artifact.find(DeltaSection.HYPOTHESIS_SLATE, "H1")
        assert entry.anchors == ["§42", "§43"]

    def test_edit_of_killed_entry_is_skipped(self):
        items = sequence(_hypothesis(1), kill(H, "H1"), edit(H, "H1", claim="Revived"))
        result = merge(empty_artifact(), items)
        assert result.skipped_count == 1
        assert result.warnings[-1].error_type == ErrorType.TARGET_KILLED
        assert result.artifact.find(DeltaSection.HYPOTHESIS_SLATE, "H1").content["claim"] == "Claim 1"

    def test_edit_in_wrong_section_is_not_found(self):
        items = sequence(_hypothesis(1), edit("predictions_table", "H1", condition="C"))
        result = merge(empty_artifact(), items)
        assert result.warnings[0].error_type == ErrorType.TARGET_NOT_FOUND


class TestFieldConflicts:
    def test_different_agents_different_values(self):
        items = [
            stamped(_hypothesis(1), 1, agent="gpt"),
            stamped(edit(H, "H1", claim="Opus claim"), 2, agent="opus"),
        ]
        result = merge(empty_artifact(), items)
        assert result.applied_count == 2
        conflict = result.warnings[0]
        assert conflict.error_type == ErrorType.FIELD_CONFLICT
        assert conflict.details["field"] == "claim"
        assert conflict.details["previous_agent"] == "gpt"
        assert result.artifact.find(DeltaSection.HYPOTHESIS_SLATE, "H1").content["claim"] == "Opus claim"

    def test_same_agent_is_not_a_conflict(self):
        items = [
            stamped(_hypothesis(1), 1, agent="gpt"),
            stamped(edit(H, "H1", claim="Revised"), 2, agent="gpt"),
        ]
        assert merge(empty_artifact(), items).warnings == []

    def test_same_value_is_not_a_conflict(self):
        items = [
            stamped(_hypothesis(1), 1, agent="gpt"),
            stamped(edit(H, "H1", claim="Claim 1"), 2, agent="opus"),
        ]
        assert merge(empty_artifact(), items).warnings == []

    def test_detection_can_be_disabled(self):
        items = [
            stamped(_hypothesis(1), 1, agent="gpt"),
            stamped(edit(H, "H1", claim="Opus claim"), 2, agent="opus"),
        ]
        result = merge(empty_artifact(), items, config=MergeConfig(detect_field_conflicts=False))
        assert result.warnings == []


class TestKillAndDelete:
    def test_kill_keeps_entry(self):
        items = [stamped(_hypothesis(1), 1), stamped(kill(H, "H1", reason="T1 came back negative"), 2, agent="gemini")]
        entry = merge(empty_artifact(), items).artifact.find(DeltaSection.HYPOTHESIS_SLATE, "H1")
        assert entry.killed
        assert entry.killed_by == "gemini"
        assert entry.killed_at == at(2)
        assert entry.kill_reason == "T1 came back negative"
        assert entry.content["claim"] == "Claim 1"

    def test_kill_is_idempotent(self):
        items = sequence(_hypothesis(1), kill(H, "H1", reason="first"), kill(H, "H1", reason="second"))
        result = merge(empty_artifact(), items)
        assert result.applied_count == 3
        assert result.outcomes[2].reason == "H1 already killed"
        assert result.artifact.find(DeltaSection.HYPOTHESIS_SLATE, "H1").kill_reason == "first"

    def test_kill_of_missing_target(self):
        result = merge(empty_artifact(), sequence(kill(H, "H3")))
        assert result.skipped_count == 1
        assert result.warnings[0].error_type == ErrorType.TARGET_NOT_FOUND

    def test_killing_last_third_alternative_warns(self):
        items = sequence(
            _hypothesis(1),
            _hypothesis(2),
            _hypothesis(3, third_alternative=True),
            kill(H, "H1"),
            kill(H, "H3"),
        )
        result = merge(empty_artifact(), items)
        assert [w.error_type for w in result.warnings] == [ErrorType.NO_THIRD_ALTERNATIVE]
        assert result.warnings[0].target_id == "H3"

    def test_killing_last_scale_check_warns(self):
        items = sequence(
            add("assumption_ledger", name="Scale", statement="S", load="L", test="T", scale_check=True),
            kill("assumption_ledger", "A1"),
        )
        result = merge(empty_artifact(), items)
        assert result.warnings[0].error_type == ErrorType.NO_SCALE_CHECK

    def test_delete_removes_entry(self):
        items = sequence(_hypothesis(1), _hypothesis(2), delete(H, "H1"))
        artifact = merge(empty_artifact(), items).artifact
        assert _ids(artifact, H) == ["H2"]

    def test_add_with_target_is_skipped(self):
        baseline = merge(empty_artifact(), sequence(_hypothesis(1))).artifact
        stray = Delta(
            operation=DeltaOperation.ADD,
            section=DeltaSection.HYPOTHESIS_SLATE,
            target_id="H1",
            payload={"claim": "x"},
        )

        result = merge(baseline, [stamped(stray, 10)])

        assert result.applied_count == 0
        assert result.skipped_count == 1
        assert result.warnings[0].error_type == ErrorType.SCHEMA_VIOLATION
        entry = result.artifact.find(DeltaSection.HYPOTHESIS_SLATE, "H1")
        assert not entry.killed
        assert entry.content["claim"] == "Claim 1"

    @pytest.mark.parametrize("operation", [DeltaOperation.KILL, DeltaOperation.DELETE])
    def test_untargeted_kill_or_delete_is_skipped(self, operation):
        baseline = merge(empty_artifact(), sequence(_hypothesis(1))).artifact
        stray = Delta(operation=operation, section=DeltaSection.HYPOTHESIS_SLATE, payload={"reason": "x"})

        result = merge(baseline, [stamped(stray, 10)])

        assert result.skipped_count == 1
        assert result.warnings[0].error_type == ErrorType.SCHEMA_VIOLATION
        assert _ids(result.artifact, H) == ["H1"]


class TestMetadataAndPurity:
    def test_metadata_updates(self):
        items = [
            stamped(_hypothesis(1), 1, agent="gpt"),
            stamped(_hypothesis(2), 2, agent="opus"),
            stamped(_hypothesis(3), 3, agent="gpt"),
            stamped(edit(H, "H9", claim="x"), 4, agent="gemini"),
        ]
        baseline = empty_artifact()
        metadata = merge(baseline, items).artifact.metadata

        assert metadata.version == baseline.metadata.version + 1
        assert metadata.status == "active"
        assert metadata.updated_at == at(3)
        assert metadata.created_at == BASE_TIME
        assert [c.agent for c in metadata.contributors] == ["gpt", "opus"]
        assert metadata.contributors[0].contributed_at == at(3)

    def test_baseline_is_not_mutated(self):
        baseline = merge(empty_artifact(), sequence(_hypothesis(1), _hypothesis(2))).artifact
        before = baseline.to_json()

        merge(baseline, [stamped(edit(H, "H1", claim="Changed"), 20), stamped(kill(H, "H2"), 21)])

        assert baseline.to_json() == before

    def test_merge_is_deterministic(self):
        items = sequence(
            edit("research_thread", None, statement="S"),
            _hypothesis(1),
            _hypothesis(2),
            edit(H, "H2", claim="Changed"),
            kill(H, "H1"),
        )
        first = merge(empty_artifact(), items)
        second = merge(empty_artifact(), items)
        assert first.artifact.to_json() == second.artifact.to_json()
        assert first.outcomes == second.outcomes
