"""Tests for reqtrack.pm.requirements module."""

import json
from datetime import datetime

import pytest

from reqtrack.lib.subtask_templates import SubtaskSpec
from reqtrack.lib.types import DelayStatus, Phase, RequirementStatus, SubtaskStatus
from reqtrack.pm.requirements import (
    InvalidInput,
    RequirementNotFound,
    SubtaskNotFound,
    add_subtask,
    create_requirement,
    delete_requirement,
    delete_requirements,
    filter_requirements,
    generate_requirement_id,
    get_requirements_dir,
    list_requirements,
    load_requirement,
    mark_released,
    remove_subtask,
    review_requirement,
    search_requirements,
    set_subtask_status,
    sort_requirements,
    update_requirement,
    update_subtask,
)
from reqtrack.workflow.schedule import SubtaskIntegrityError
from reqtrack.workflow.state_machine import InvalidTransition

NOW = datetime(2024, 4, 10, 12, 0, 0)

SHORT_TEMPLATE = [
    SubtaskSpec("原型设计", Phase.PROTOTYPE),
    SubtaskSpec("视觉设计", Phase.UI),
    SubtaskSpec("前端开发", Phase.DEVELOPMENT),
    SubtaskSpec("测试", Phase.TESTING),
]


@pytest.fixture
def req(data_dir):
    return create_requirement(data_dir, {"title": "登录优化", "priority": "高"}, template=SHORT_TEMPLATE)


class TestCreateRequirement:
    """Tests for create_requirement()."""

    def test_default_template(self, data_dir):
        req = create_requirement(data_dir, {"title": "新需求"})
        assert req.id == "REQ-0001"
        assert [s.name for s in req.subtasks] == [
            "原型设计", "视觉设计", "前端开发", "后端开发", "测试", "产品验收", "需求提出者验收",
        ]
        assert req.status == RequirementStatus.PENDING_PROTOTYPE
        assert all(s.phase is not None for s in req.subtasks)

    def test_writes_json_and_markdown(self, data_dir, req):
        reqs_dir = get_requirements_dir(data_dir)
        data = json.loads((reqs_dir / f"{req.id}.json").read_text(encoding="utf-8"))
        assert data["title"] == "登录优化"
        assert data["subtasks"][0]["phase"] == "prototype"
        md = (reqs_dir / f"{req.id}.md").read_text(encoding="utf-8")
        assert md.startswith(f"# {req.id}: 登录优化")

    def test_ids_increment(self, data_dir, req):
        assert generate_requirement_id(data_dir) == "REQ-0002"

    def test_empty_template(self, data_dir):
        req = create_requirement(data_dir, {"title": "空"}, template=[])
        assert req.subtasks == []
        assert req.status == RequirementStatus.PENDING_PROTOTYPE

    def test_template_without_phase_is_classified(self, data_dir):
        req = create_requirement(data_dir, {"title": "x"}, template=[SubtaskSpec("后端开发")])
        assert req.subtasks[0].phase == Phase.DEVELOPMENT

    def test_invalid_priority(self, data_dir):
        with pytest.raises(InvalidInput, match="非法的优先级"):
            create_requirement(data_dir, {"title": "x", "priority": "超高"})

    def test_empty_title(self, data_dir):
        with pytest.raises(InvalidInput):
            create_requirement(data_dir, {"title": ""})

    def test_description_sanitized(self, data_dir):
        req = create_requirement(data_dir, {"title": "x", "description": "a<script>x()</script>b"}, template=[])
        assert req.description == "ab"


class TestLoadAndList:
    def test_roundtrip(self, data_dir, req):
        loaded = load_requirement(data_dir, req.id)
        assert loaded == req

    def test_missing(self, data_dir):
        assert load_requirement(data_dir, "REQ-9999") is None

    def test_bad_id_not_looked_up(self, data_dir):
        assert load_requirement(data_dir, "../secrets") is None

    def test_corrupt_file_skipped_with_warning(self, data_dir, req, caplog):
        (get_requirements_dir(data_dir) / "REQ-0099.json").write_text("{not json")
        reqs = list_requirements(data_dir)
        assert [r.id for r in reqs] == [req.id]
        assert "REQ-0099" in caplog.text

    def test_record_without_phase(self, data_dir):
        reqs_dir = get_requirements_dir(data_dir)
        reqs_dir.mkdir(parents=True)
        record = {
            "id": "REQ-0007", "title": "旧数据", "version": "", "status": "pending_prototype",
            "created": "2024-01-01T00:00:00", "updated": "2024-01-01T00:00:00",
            "subtasks": [{"id": "s1", "name": "前端开发", "status": "in_progress"}],
        }
        # Written before subtasks carried a phase
        (reqs_dir / "REQ-0007.json").write_text(json.dumps(record, ensure_ascii=False), encoding="utf-8")
        loaded = load_requirement(data_dir, "REQ-0007")
        assert loaded.subtasks[0].phase is None
        assert loaded.subtasks[0].status == SubtaskStatus.IN_PROGRESS


class TestSubtaskMutations:
    """Every subtask mutation re-derives the requirement status."""

    def test_start_prototype(self, data_dir, req):
        sid = req.subtasks[0].id
        set_subtask_status(data_dir, req.id, sid, SubtaskStatus.IN_PROGRESS, now=NOW)
        assert load_requirement(data_dir, req.id).status == RequirementStatus.PROTOTYPE_IN_PROGRESS

    def test_walk_through_pipeline(self, data_dir, req):
        proto, ui, dev, test = (s.id for s in req.subtasks)
        set_subtask_status(data_dir, req.id, proto, SubtaskStatus.COMPLETED, now=NOW)
        assert load_requirement(data_dir, req.id).status == RequirementStatus.PENDING_UI_DESIGN

        set_subtask_status(data_dir, req.id, ui, SubtaskStatus.COMPLETED, now=NOW)
        assert load_requirement(data_dir, req.id).status == RequirementStatus.PENDING_DEVELOPMENT

        set_subtask_status(data_dir, req.id, dev, SubtaskStatus.IN_PROGRESS, now=NOW)
        assert load_requirement(data_dir, req.id).status == RequirementStatus.DEVELOPMENT_IN_PROGRESS

        set_subtask_status(data_dir, req.id, dev, SubtaskStatus.COMPLETED, now=NOW)
        assert load_requirement(data_dir, req.id).status == RequirementStatus.PENDING_TESTING

        set_subtask_status(data_dir, req.id, test, SubtaskStatus.COMPLETED, now=NOW)
        assert load_requirement(data_dir, req.id).status == RequirementStatus.COMPLETED

    def test_complete_stamps_actual_end_and_delay(self, data_dir, req):
        sid = req.subtasks[0].id
        update_subtask(data_dir, req.id, sid, {
            "estimated_start": "2024-04-01T09:00:00",
            "estimated_end": "2024-04-05T18:00:00",
        }, now=NOW)
        subtask = set_subtask_status(data_dir, req.id, sid, SubtaskStatus.COMPLETED,
                                     actual_end="2024-04-05T10:00:00", now=NOW)
        assert subtask.actual_end == "2024-04-05T10:00:00"
        assert subtask.estimated_duration_hours == 105
        assert subtask.delay_status == DelayStatus.EARLY

    def test_invalid_transition(self, data_dir, req):
        sid = req.subtasks[0].id
        with pytest.raises(InvalidTransition):
            set_subtask_status(data_dir, req.id, sid, SubtaskStatus.PAUSED)

    def test_clearing_actual_end_of_completed_subtask_is_refused(self, data_dir, req):
        sid = req.subtasks[0].id
        update_subtask(data_dir, req.id, sid, {"estimated_end": "2024-04-05T18:00:00"}, now=NOW)
        set_subtask_status(data_dir, req.id, sid, SubtaskStatus.COMPLETED, now=NOW)
        with pytest.raises(SubtaskIntegrityError):
            update_subtask(data_dir, req.id, sid, {"actual_end": ""}, now=NOW)
        # Nothing written
        assert load_requirement(data_dir, req.id).subtasks[0].actual_end == "2024-04-10T12:00:00"

    def test_legacy_mode_allows_it(self, data_dir, req):
        sid = req.subtasks[0].id
        update_subtask(data_dir, req.id, sid, {"estimated_end": "2024-04-05T18:00:00"}, now=NOW)
        set_subtask_status(data_dir, req.id, sid, SubtaskStatus.COMPLETED, now=NOW)
        subtask = update_subtask(data_dir, req.id, sid, {"actual_end": ""}, now=NOW, mode="legacy")
        assert subtask.delay_status == DelayStatus.LATE

    def test_invalid_date(self, data_dir, req):
        with pytest.raises(InvalidInput):
            update_subtask(data_dir, req.id, req.subtasks[0].id, {"estimated_end": "next week"})

    def test_unknown_field(self, data_dir, req):
        with pytest.raises(InvalidInput):
            update_subtask(data_dir, req.id, req.subtasks[0].id, {"delay_status": "late"})

    def test_add_subtask(self, data_dir, req):
        subtask = add_subtask(data_dir, req.id, "产品验收")
        assert subtask.id == f"{req.id}-subtask-5"
        assert subtask.phase == Phase.ACCEPTANCE
        assert len(load_requirement(data_dir, req.id).subtasks) == 5

    def test_remove_subtask(self, data_dir, req):
        proto, ui, dev, test = (s.id for s in req.subtasks)
        set_subtask_status(data_dir, req.id, dev, SubtaskStatus.COMPLETED, now=NOW)
        updated = remove_subtask(data_dir, req.id, proto)
        assert [s.id for s in updated.subtasks] == [ui, dev, test]
        assert updated.status == RequirementStatus.PENDING_TESTING

    def test_unknown_ids(self, data_dir, req):
        with pytest.raises(RequirementNotFound):
            add_subtask(data_dir, "REQ-0404", "测试")
        with pytest.raises(SubtaskNotFound):
            remove_subtask(data_dir, req.id, "nope")


class TestReleaseAndReview:
    def test_release_requires_completed(self, data_dir, req):
        assert mark_released(data_dir, req.id) is None

    def test_release_then_mutation_clears_it(self, data_dir, req):
        for s in req.subtasks:
            set_subtask_status(data_dir, req.id, s.id, SubtaskStatus.COMPLETED, now=NOW)
        released = mark_released(data_dir, req.id)
        assert released.status == RequirementStatus.RELEASED
        assert released.released_at

        set_subtask_status(data_dir, req.id, req.subtasks[3].id, SubtaskStatus.IN_PROGRESS, now=NOW)
        reloaded = load_requirement(data_dir, req.id)
        assert reloaded.status == RequirementStatus.TESTING_IN_PROGRESS
        assert reloaded.released_at is None

    def test_review(self, data_dir, req):
        reviewed = review_requirement(data_dir, req.id, "approved", "<script>x</script>同意")
        assert reviewed.review_status == "approved"
        assert reviewed.review_opinion == "同意"

    def test_review_bad_status(self, data_dir, req):
        with pytest.raises(InvalidInput):
            review_requirement(data_dir, req.id, "done")


class TestUpdateRequirement:
    def test_update_fields(self, data_dir, req):
        updated = update_requirement(data_dir, req.id, {
            "title": "登录优化 v2", "priority": "", "tags": ["登录", "体验"], "is_operational": "yes",
        })
        assert updated.title == "登录优化 v2"
        assert updated.priority == ""
        assert updated.tags == ["登录", "体验"]
        assert updated.is_operational == "yes"

    def test_status_not_editable(self, data_dir, req):
        with pytest.raises(InvalidInput):
            update_requirement(data_dir, req.id, {"status": "completed"})

    def test_missing(self, data_dir):
        with pytest.raises(RequirementNotFound):
            update_requirement(data_dir, "REQ-0404", {"title": "x"})


class TestDelete:
    def test_delete_one(self, data_dir, req):
        assert delete_requirement(data_dir, req.id) is True
        assert load_requirement(data_dir, req.id) is None
        assert not (get_requirements_dir(data_dir) / f"{req.id}.md").exists()
        assert delete_requirement(data_dir, req.id) is False

    def test_batch(self, data_dir, req):
        other = create_requirement(data_dir, {"title": "另一个"}, template=[])
        deleted = delete_requirements(data_dir, [req.id, other.id, "REQ-0404"])
        assert deleted == [req.id, other.id]
        assert list_requirements(data_dir) == []

    def test_batch_limit(self, data_dir):
        with pytest.raises(InvalidInput, match="批量操作最多支持 1 个需求"):
            delete_requirements(data_dir, ["REQ-0001", "REQ-0002"], max_count=1)


class TestQueries:
    """search / filter / sort over loaded requirements."""

    @pytest.fixture
    def reqs(self, data_dir):
        create_requirement(data_dir, {"title": "登录优化", "priority": "低", "version": "iOS 2.1.0"}, template=[])
        create_requirement(data_dir, {"title": "支付改版", "priority": "紧急", "tags": ["支付"]}, template=[])
        create_requirement(data_dir, {"title": "消息推送", "priority": "中"}, template=[])
        return list_requirements(data_dir)

    def test_search(self, reqs):
        assert [r.title for r in search_requirements(reqs, "支付")] == ["支付改版"]
        assert len(search_requirements(reqs, "")) == 3

    def test_search_rejects_sql(self, reqs):
        with pytest.raises(InvalidInput):
            search_requirements(reqs, "DROP TABLE")

    def test_filter(self, reqs):
        assert [r.title for r in filter_requirements(reqs, "version", "starts_with", "iOS")] == ["登录优化"]
        assert len(filter_requirements(reqs, "version", "is_empty")) == 2
        assert len(filter_requirements(reqs, "priority", "not_equals", "低")) == 2

    def test_filter_bad_column(self, reqs):
        with pytest.raises(InvalidInput):
            filter_requirements(reqs, "secret", "equals", "x")

    def test_sort_priority_rank(self, reqs):
        ordered = sort_requirements(reqs, "priority", "desc")
        assert [r.priority for r in ordered] == ["紧急", "中", "低"]

    def test_sort_bad_direction(self, reqs):
        with pytest.raises(InvalidInput):
            sort_requirements(reqs, "title", "sideways")


class TestLegacyStatusLabels:
    """Records written with display labels instead of status values still load."""

    def _write_record(self, data_dir, status):
        reqs_dir = get_requirements_dir(data_dir)
        reqs_dir.mkdir(parents=True)
        record = {
            "id": "REQ-0008", "title": "旧状态", "version": "", "status": "prototype_in_progress",
            "created": "2024-01-01T00:00:00", "updated": "2024-01-01T00:00:00",
            "subtasks": [{"id": "REQ-0008-subtask-1", "name": "原型设计", "status": status}],
        }
        (reqs_dir / "REQ-0008.json").write_text(json.dumps(record, ensure_ascii=False), encoding="utf-8")

    def test_load(self, data_dir):
        self._write_record(data_dir, "进行中")
        loaded = load_requirement(data_dir, "REQ-0008")
        assert loaded.subtasks[0].status == SubtaskStatus.IN_PROGRESS

    def test_list(self, data_dir):
        self._write_record(data_dir, "已完成")
        reqs = list_requirements(data_dir)
        assert [r.subtasks[0].status for r in reqs] == [SubtaskStatus.COMPLETED]

    def test_unknown_label_still_rejected(self, data_dir, caplog):
        self._write_record(data_dir, "搁置")
        assert load_requirement(data_dir, "REQ-0008") is None
        assert "REQ-0008" in caplog.text

    def test_saved_back_as_values(self, data_dir):
        self._write_record(data_dir, "未开始")
        update_requirement(data_dir, "REQ-0008", {"title": "旧状态 v2"})
        raw = json.loads((get_requirements_dir(data_dir) / "REQ-0008.json").read_text(encoding="utf-8"))
        assert raw["subtasks"][0]["status"] == "not_started"


class TestSiblingDelayRefresh:
    """Editing one subtask refreshes the delay status of the open ones."""

    def test_overdue_sibling_turns_late(self, data_dir, req):
        proto, ui = req.subtasks[0].id, req.subtasks[1].id
        update_subtask(data_dir, req.id, proto, {"estimated_end": "2024-04-05T18:00:00"},
                       now=datetime(2024, 4, 1, 9, 0))
        set_subtask_status(data_dir, req.id, proto, SubtaskStatus.IN_PROGRESS, now=datetime(2024, 4, 1, 9, 0))
        assert load_requirement(data_dir, req.id).subtasks[0].delay_status == DelayStatus.UNKNOWN

        update_subtask(data_dir, req.id, ui, {"name": "视觉设计稿"}, now=datetime(2024, 5, 1, 9, 0))
        reloaded = load_requirement(data_dir, req.id)
        assert reloaded.subtasks[0].delay_status == DelayStatus.LATE
        assert sum(1 for s in reloaded.subtasks if s.delay_status == DelayStatus.LATE) == 1

    def test_completed_sibling_untouched(self, data_dir, req):
        proto, ui = req.subtasks[0].id, req.subtasks[1].id
        update_subtask(data_dir, req.id, proto, {"estimated_end": "2024-04-05T18:00:00"}, now=NOW)
        set_subtask_status(data_dir, req.id, proto, SubtaskStatus.COMPLETED,
                           actual_end="2024-04-04T10:00:00", now=NOW)

        update_subtask(data_dir, req.id, ui, {"name": "视觉设计稿"}, now=datetime(2024, 5, 1, 9, 0))
        assert load_requirement(data_dir, req.id).subtasks[0].delay_status == DelayStatus.EARLY

    def test_remove_refreshes_open_siblings(self, data_dir, req):
        proto, ui = req.subtasks[0].id, req.subtasks[1].id
        update_subtask(data_dir, req.id, proto, {"estimated_end": "2024-04-05T18:00:00"}, now=NOW)
        set_subtask_status(data_dir, req.id, proto, SubtaskStatus.IN_PROGRESS, now=datetime(2024, 4, 1, 9, 0))

        updated = remove_subtask(data_dir, req.id, ui, now=datetime(2024, 5, 1, 9, 0))
        assert updated.subtasks[0].delay_status == DelayStatus.LATE


class TestUpdateSubtaskInput:
    def test_bad_phase(self, data_dir, req):
        with pytest.raises(InvalidInput, match="无效的阶段: design"):
            update_subtask(data_dir, req.id, req.subtasks[0].id, {"phase": "design"})

    def test_bad_status(self, data_dir, req):
        with pytest.raises(InvalidInput, match="无效的状态: done"):
            update_subtask(data_dir, req.id, req.subtasks[0].id, {"status": "done"})

    def test_status_label_accepted(self, data_dir, req):
        subtask = update_subtask(data_dir, req.id, req.subtasks[0].id, {"status": "进行中"}, now=NOW)
        assert subtask.status == SubtaskStatus.IN_PROGRESS
