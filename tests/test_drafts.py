"""Draft snapshot encoding and DraftStore tests."""

import json
from datetime import datetime, timezone

import pytest

from questionnaire_flow.drafts import DraftStore, build_snapshot, decode_snapshot, encode_snapshot
from questionnaire_flow.errors import PersistenceError
from questionnaire_flow.flow import FlowManager
from questionnaire_flow.memory import InMemoryKeyValueStore

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class TestSnapshot:

    def test_answers_in_schedule_order(self, branchy):
        """Answers are written in schedule order, not in the order they were given."""
        flow = FlowManager(branchy)
        flow.answer_question("extras", ["y"])
        flow.answer_question("location", "home")
        flow.answer_question("home_gear", ["mat"])

        snap = build_snapshot(flow.state, NOW)
        assert [a.question_id for a in snap.answers] == ["location", "extras", "home_gear"]
        assert snap.total_answered == 3
        assert snap.last_updated == NOW

    def test_json_uses_camel_case(self, linear):
        flow = FlowManager(linear)
        flow.answer_question("q1", "a")
        doc = json.loads(encode_snapshot(build_snapshot(flow.state, NOW)))

        assert set(doc) == {"answers", "totalAnswered", "lastUpdated"}
        assert doc["answers"] == [{"questionId": "q1", "value": ["a"]}]
        assert doc["totalAnswered"] == 1

    def test_decode_round_trip(self, linear):
        flow = FlowManager(linear)
        flow.answer_question("q2", "b")
        snap = build_snapshot(flow.state, NOW)
        assert decode_snapshot(encode_snapshot(snap)) == snap

    @pytest.mark.parametrize(
        "raw",
        [b"not json", b"{}", b'{"answers": "x", "totalAnswered": 0, "lastUpdated": "2026-01-01T00:00:00Z"}'],
    )
    def test_corrupt_draft_raises_persistence_error(self, raw):
        with pytest.raises(PersistenceError, match="Corrupt questionnaire draft"):
            decode_snapshot(raw)


class TestDraftStore:

    @pytest.mark.asyncio
    async def test_save_load_clear(self, linear):
        kv = InMemoryKeyValueStore()
        drafts = DraftStore(kv, key="draft:u1")
        flow = FlowManager(linear)
        flow.answer_question("q1", "a")

        assert await drafts.load() is None, "No draft before the first save"
        await drafts.save(build_snapshot(flow.state, NOW))
        assert "draft:u1" in kv.data

        loaded = await drafts.load()
        assert [a.question_id for a in loaded.answers] == ["q1"]

        await drafts.clear()
        assert await drafts.load() is None

    @pytest.mark.asyncio
    async def test_other_keys_untouched(self, linear):
        kv = InMemoryKeyValueStore({"theme": b"dark"})
        drafts = DraftStore(kv, key="draft")
        await drafts.save(build_snapshot(FlowManager(linear).state, NOW))
        await drafts.clear()
        assert kv.data == {"theme": b"dark"}, "Only the draft key may be written or removed"
