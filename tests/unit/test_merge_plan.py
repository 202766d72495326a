"""
Unit tests for merge planning (no database)
"""

import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace
from pydantic import ValidationError
from consolidation.merge import plan_merge, select_latest, group_by_document, MergeResult
from models.base import Operation
from schemas.events import StagedEvent

T0 = datetime(2024, 1, 15, 10, 0, 0)


def event(document_id, seconds, operation, event_id=None, payload=None):
    return StagedEvent(
        event_id=event_id or f"{document_id}-{seconds}",
        document_id=document_id,
        timestamp=T0 + timedelta(seconds=seconds),
        operation=operation,
        payload=payload
    )


def existing(seconds):
    return SimpleNamespace(timestamp=T0 + timedelta(seconds=seconds))


class TestSelectLatest:

    def test_picks_greatest_timestamp_regardless_of_order(self):
        events = [
            event("d1", 20, Operation.UPDATE),
            event("d1", 30, Operation.UPDATE),
            event("d1", 10, Operation.CREATE),
        ]
        assert select_latest(events).timestamp == T0 + timedelta(seconds=30)

    def test_tie_broken_by_highest_event_id(self):
        events = [
            event("d1", 10, Operation.UPDATE, event_id="evt-b", payload={"v": "b"}),
            event("d1", 10, Operation.DELETE, event_id="evt-a"),
            event("d1", 10, Operation.UPDATE, event_id="evt-c", payload={"v": "c"}),
        ]
        assert select_latest(events).event_id == "evt-c"
        assert select_latest(list(reversed(events))).event_id == "evt-c"

    def test_group_by_document(self):
        groups = group_by_document([
            event("d1", 1, Operation.CREATE),
            event("d2", 2, Operation.CREATE),
            event("d1", 3, Operation.UPDATE),
        ])
        assert {k: len(v) for k, v in groups.items()} == {"d1": 2, "d2": 1}


class TestPlanMerge:

    def test_last_write_wins_within_pass(self):
        plan = plan_merge(
            [
                event("d1", 10, Operation.UPDATE, payload={"v": "A"}),
                event("d1", 20, Operation.UPDATE, payload={"v": "B"}),
            ],
            {}
        )

        assert len(plan.inserts) == 1
        assert plan.inserts[0].payload == {"v": "B"}
        assert plan.inserts[0].timestamp == T0 + timedelta(seconds=20)
        assert plan.consumed_event_ids == {"d1-10", "d1-20"}
        assert plan.rows_affected == 1

    def test_delete_of_older_record(self):
        plan = plan_merge([event("d1", 10, Operation.DELETE)], {"d1": existing(5)})

        assert plan.deletes == ["d1"]
        assert plan.rows_affected == 1

    def test_update_of_older_record(self):
        plan = plan_merge([event("d1", 10, Operation.UPDATE)], {"d1": existing(5)})

        assert [e.document_id for e in plan.updates] == ["d1"]
        assert plan.inserts == []

    def test_stale_event_ignored_but_consumed(self):
        plan = plan_merge([event("d1", 10, Operation.UPDATE)], {"d1": existing(20)})

        assert plan.rows_affected == 0
        assert plan.skipped == 1
        assert plan.consumed_event_ids == {"d1-10"}

    def test_equal_timestamp_is_stale(self):
        plan = plan_merge([event("d1", 20, Operation.DELETE)], {"d1": existing(20)})

        assert plan.deletes == []
        assert plan.skipped == 1

    def test_delete_without_record_is_noop(self):
        plan = plan_merge([event("d1", 10, Operation.DELETE)], {})

        assert plan.rows_affected == 0
        assert plan.consumed_event_ids == {"d1-10"}

    def test_create_never_overwrites_existing_record(self):
        plan = plan_merge([event("d1", 10, Operation.CREATE)], {"d1": existing(5)})

        assert plan.rows_affected == 0
        assert plan.skipped == 1

    def test_create_then_delete_in_same_pass_collapses(self):
        plan = plan_merge(
            [
                event("d1", 1, Operation.CREATE),
                event("d2", 2, Operation.UPDATE),
                event("d1", 3, Operation.DELETE),
            ],
            {}
        )

        assert [e.document_id for e in plan.inserts] == ["d2"]
        assert plan.deletes == []
        assert plan.rows_affected == 1
        assert len(plan.consumed_event_ids) == 3

    def test_empty_staging(self):
        plan = plan_merge([], {"d1": existing(5)})

        assert plan.rows_affected == 0
        assert plan.consumed_event_ids == set()

    def test_result_counts_mirror_plan(self):
        plan = plan_merge(
            [
                event("new", 1, Operation.CREATE),
                event("upd", 10, Operation.UPDATE),
                event("del", 10, Operation.DELETE),
                event("old", 1, Operation.UPDATE),
            ],
            {"upd": existing(5), "del": existing(5), "old": existing(5)}
        )
        result = MergeResult.from_plan(plan)

        assert result.to_dict() == {
            "events_consumed": 4,
            "rows_inserted": 1,
            "rows_updated": 1,
            "rows_deleted": 1,
            "entities_skipped": 1,
            "rows_affected": 3,
        }


class TestStagedEvent:

    def test_timestamp_normalized_to_naive_utc(self):
        staged = StagedEvent(
            event_id="e1",
            document_id="d1",
            timestamp="2024-01-15T10:00:00Z",
            operation="UPDATE",
            payload={"plan": "pro"}
        )

        assert staged.timestamp == T0
        assert staged.timestamp.tzinfo is None

    @pytest.mark.parametrize("payload", ["hello", "123", "{not json", '{"plan": "pro"}', 42, None])
    def test_payload_passed_through_unchanged(self, payload):
        staged = StagedEvent(event_id="e1", document_id="d1", timestamp=T0, operation="UPDATE", payload=payload)

        assert staged.payload == payload
        assert type(staged.payload) is type(payload)

    def test_identifiers_kept_as_stored(self):
        staged = StagedEvent(event_id=" e1 ", document_id=" d1", timestamp=T0, operation="CREATE")

        assert staged.event_id == " e1 "
        assert staged.document_id == " d1"

    def test_unknown_operation_rejected(self):
        with pytest.raises(ValidationError):
            StagedEvent(event_id="e1", document_id="d1", timestamp=T0, operation="UPSERT")

    def test_blank_document_id_rejected(self):
        with pytest.raises(ValidationError):
            StagedEvent(event_id="e1", document_id="   ", timestamp=T0, operation="CREATE")
