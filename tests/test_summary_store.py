"""JSON payroll summary documents."""
import pytest

from payrun.domain.exceptions import NotFoundError, SummaryWriteError
from payrun.infra.storage.summaries import SummaryStore, summary_id_for


def _summary(job_id: int, processed_at: str, created_ms: int = 1_704_110_400_000) -> dict:
    return {
        "id": summary_id_for(job_id, created_ms),
        "job_id": job_id,
        "pay_period": {"start_date": "2024-01-01", "end_date": "2024-01-31"},
        "processed_at": processed_at,
        "total_employees": 1,
        "total_gross": 100,
        "total_deductions": 17,
        "total_net": 83,
        "currency": "USD",
        "filters": {},
        "options": {},
        "payroll_items": [{"employee_id": 1}],
    }


def test_write_uses_period_and_job_in_filename(tmp_path):
    store = SummaryStore(tmp_path)
    path = store.write(_summary(5, "2024-02-01T10:00:00"))

    assert path.name == "payroll_summary_2024-01-01_2024-01-31_5_1704110400000.json"


def test_rewriting_same_job_keeps_one_file(tmp_path):
    store = SummaryStore(tmp_path)
    store.write(_summary(5, "2024-02-01T10:00:00"))
    store.write(_summary(5, "2024-02-01T10:05:00"))

    assert len(list(tmp_path.iterdir())) == 1
    assert store.get("payroll_5_1704110400000")["processed_at"] == "2024-02-01T10:05:00"


def test_list_recent_is_newest_first_without_items(tmp_path):
    store = SummaryStore(tmp_path)
    store.write(_summary(1, "2024-02-01T10:00:00"))
    store.write(_summary(2, "2024-03-01T10:00:00"))

    listed = store.list_recent()

    assert [s["job_id"] for s in listed] == [2, 1]
    assert "payroll_items" not in listed[0]


def test_list_recent_respects_limit(tmp_path):
    store = SummaryStore(tmp_path)
    for job_id in range(1, 6):
        store.write(_summary(job_id, f"2024-02-0{job_id}T10:00:00"))

    assert [s["job_id"] for s in store.list_recent(limit=2)] == [5, 4]


def test_unreadable_summary_is_skipped(tmp_path):
    store = SummaryStore(tmp_path)
    store.write(_summary(1, "2024-02-01T10:00:00"))
    (tmp_path / "payroll_summary_broken.json").write_text("{not json")

    assert [s["job_id"] for s in store.list_recent()] == [1]


def test_missing_directory_lists_nothing(tmp_path):
    assert SummaryStore(tmp_path / "absent").list_recent() == []


def test_get_unknown_raises_not_found(tmp_path):
    store = SummaryStore(tmp_path)
    store.write(_summary(1, "2024-02-01T10:00:00"))

    with pytest.raises(NotFoundError):
        store.get("payroll_11_1704110400000")


def test_write_failure_is_wrapped(tmp_path):
    with pytest.raises(SummaryWriteError):
        SummaryStore(tmp_path).write({"id": "payroll_1_1"})
