"""Tests for the status API.

The scheduler is a MagicMock; only ``last_report``, ``is_cycle_running``
and ``skipped_ticks`` are read by the routes.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, PropertyMock

from fastapi.testclient import TestClient
from hypothesis import given, settings
from hypothesis import strategies as st

from nanocd import __version__
from nanocd.api.app import create_app
from nanocd.models.results import CycleReport, WorkloadOutcome, WorkloadState
from nanocd.models.workloads import WorkloadKind, WorkloadRef

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _make_report() -> CycleReport:
    started = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)
    return CycleReport(
        started_at=started,
        finished_at=started + timedelta(seconds=2),
        outcomes=[
            WorkloadOutcome(
                WorkloadRef("prod", WorkloadKind.DEPLOYMENT, "api"),
                WorkloadState.APPLIED,
                patch={"api": "registry/api:v1.3.0"},
            ),
            WorkloadOutcome(
                WorkloadRef("prod", WorkloadKind.STATEFUL_SET, "db"),
                WorkloadState.NOT_FOUND,
                detail="StatefulSet prod/db not found",
            ),
        ],
    )


def _make_scheduler(report: CycleReport | None = None, running: bool = False) -> MagicMock:
    scheduler = MagicMock()
    scheduler.last_report = report
    scheduler.is_cycle_running = running
    scheduler.skipped_ticks = 3
    return scheduler


def _client(scheduler: MagicMock | None = None) -> TestClient:
    return TestClient(create_app(scheduler=scheduler or _make_scheduler()), raise_server_exceptions=False)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestHealth:
    def test_ok(self) -> None:
        resp = _client().get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__}


class TestStatus:
    def test_no_cycle_yet(self) -> None:
        resp = _client().get("/api/v1/status")
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "NO_CYCLE_YET"
        assert body["detail"]

    def test_last_cycle(self) -> None:
        resp = _client(_make_scheduler(_make_report(), running=True)).get("/api/v1/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["cycle_running"] is True
        assert body["skipped_ticks"] == 3
        assert body["dry_run"] is False

        cycle = body["last_cycle"]
        assert cycle["duration_seconds"] == 2.0
        assert cycle["counts"] == {"applied": 1, "not_found": 1}
        assert cycle["workloads"][0] == {
            "namespace": "prod",
            "kind": "Deployment",
            "name": "api",
            "state": "applied",
            "patch": {"api": "registry/api:v1.3.0"},
            "detail": "",
            "containers": [],
        }
        assert cycle["workloads"][1]["kind"] == "StatefulSet"

    def test_internal_error_is_json(self) -> None:
        scheduler = MagicMock()
        type(scheduler).last_report = PropertyMock(side_effect=RuntimeError("boom"))
        resp = _client(scheduler).get("/api/v1/status")
        assert resp.status_code == 500
        assert resp.json()["error"] == "INTERNAL_ERROR"


def test_metrics_endpoint() -> None:
    resp = _client().get("/metrics")
    assert resp.status_code == 200
    assert "nanocd_cycles_total" in resp.text


@given(path=st.text(alphabet="abcdefghijklmnopqrstuvwxyz/-_", min_size=1, max_size=30))
@settings(max_examples=30, deadline=None)
def test_unknown_paths_never_500(path: str) -> None:
    resp = _client().get(f"/api/v1/{path}")
    assert resp.status_code < 500
