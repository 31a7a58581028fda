from __future__ import annotations

import logging

from riksdagskollen.logging_conf import (
    available_job_logs,
    configure_logging,
    job_logger,
    log_path,
    tail_log,
)


def _file_targets(logger_name: str) -> set[str]:
    return {
        handler.baseFilename
        for handler in logging.getLogger(logger_name).handlers
        if isinstance(handler, logging.FileHandler)
    }


def test_job_logger_writes_job_and_batch_files(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("RIKSDAGSKOLLEN_HOME", str(tmp_path))
    logger = job_logger("news")
    logger.info("unit_processed", unit="m1")

    assert "unit_processed" in log_path("news").read_text(encoding="utf-8")
    assert [path.name for path in available_job_logs()] == ["news.log"]
    assert (tmp_path / "logs" / "error.log").exists()


def test_handlers_follow_a_new_home(tmp_path, monkeypatch) -> None:
    first, second = tmp_path / "a", tmp_path / "b"
    monkeypatch.setenv("RIKSDAGSKOLLEN_HOME", str(first))
    configure_logging()
    job_logger("analysis")
    monkeypatch.setenv("RIKSDAGSKOLLEN_HOME", str(second))
    configure_logging()
    job_logger("analysis")

    assert _file_targets("riksdagskollen") == {
        str(second / "logs" / "batch.log"),
        str(second / "logs" / "error.log"),
    }
    assert _file_targets("riksdagskollen.job.analysis") == {str(second / "logs" / "jobs" / "analysis.log")}


def test_tail_log(tmp_path) -> None:
    path = tmp_path / "batch.log"
    assert tail_log(path) == []
    path.write_text("".join(f"rad {i}\n" for i in range(5)), encoding="utf-8")
    assert tail_log(path, 2) == ["rad 3\n", "rad 4\n"]
