"""Tests for mock_iot.api - FastAPI routes over a Simulator."""

from __future__ import annotations

import time
from pathlib import Path

import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient  # noqa: E402

from mock_iot.api import create_app  # noqa: E402
from mock_iot.catalog import InMemoryDeviceCatalog  # noqa: E402
from mock_iot.simulator import SCENARIOS, Simulator  # noqa: E402
from mock_iot.sinks.memory import MemorySink  # noqa: E402

# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------


def _client(
    catalog: InMemoryDeviceCatalog | None = None, *, replay_csv: Path | None = None
) -> tuple[TestClient, MemorySink]:
    sink = MemorySink()
    if catalog is None:
        catalog = InMemoryDeviceCatalog.demo(per_type=1)
    sim = Simulator(catalog=catalog, sink=sink, time_scale=0, seed=2, replay_csv=replay_csv)
    return TestClient(create_app(sim)), sink


def _poll(client: TestClient, task_id: str, attempts: int = 500) -> dict:
    for _ in range(attempts):
        body = client.get(f"/mock-iot/tasks/{task_id}").json()
        if body["status"] in ("completed", "failed"):
            return body
        time.sleep(0.01)
    raise AssertionError(f"task {task_id} did not finish")


# -----------------------------------------------------------------------
# Scenarios
# -----------------------------------------------------------------------


class TestScenarioRoutes:
    def test_list_scenarios(self) -> None:
        client, _ = _client()
        with client:
            resp = client.get("/mock-iot/scenarios")
        assert resp.status_code == 200
        assert resp.json() == {name: list(params) for name, params in SCENARIOS.items()}

    def test_run_scenario(self) -> None:
        client, sink = _client()
        with client:
            resp = client.post("/mock-iot/scenarios/vehicle_entry", params={"count": 2})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert len(body["vehicles"]) == 2
        assert len(sink.records) == body["samples_count"]

    def test_unknown_scenario_404(self) -> None:
        client, _ = _client()
        with client:
            resp = client.post("/mock-iot/scenarios/earthquake")
        assert resp.status_code == 404

    def test_out_of_range_422(self) -> None:
        client, sink = _client()
        with client:
            assert client.post("/mock-iot/scenarios/loading", params={"duration": 0}).status_code == 422
            assert client.post("/mock-iot/scenarios/vehicle_entry", params={"count": 101}).status_code == 422
            assert client.get("/mock-iot/tasks").json() == []
        assert sink.records == []

    def test_missing_devices_is_reported_not_raised(self) -> None:
        client, sink = _client(InMemoryDeviceCatalog())
        with client:
            resp = client.post("/mock-iot/scenarios/loading", params={"duration": 10, "interval": 5})
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert sink.records == []

    def test_async_scenario(self) -> None:
        client, _ = _client()
        with client:
            resp = client.post("/mock-iot/scenarios/carbon_peak/async")
            assert resp.status_code == 202
            task_id = resp.json()["task_id"]
            task = _poll(client, task_id)
        assert task["status"] == "completed"
        assert task["kind"] == "carbon_peak"
        assert task["progress"] == 100


# -----------------------------------------------------------------------
# Time series
# -----------------------------------------------------------------------


class TestTimeSeriesRoutes:
    def test_generate_time_series(self) -> None:
        client, sink = _client()
        with client:
            resp = client.post("/mock-iot/time-series", params={"days": 1, "interval": 60})
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 4 * 24
        assert len(body["time_series"]) == 10
        assert len(sink.records) == 4 * 24

    def test_factor_bounds(self) -> None:
        client, _ = _client()
        with client:
            assert client.post("/mock-iot/time-series", params={"trend": 0.9}).status_code == 422
            assert client.post("/mock-iot/time-series", params={"days": 400}).status_code == 422
            assert client.post("/mock-iot/time-series/async", params={"outliers": 0.5}).status_code == 422

    def test_async_time_series(self) -> None:
        client, _ = _client()
        with client:
            resp = client.post("/mock-iot/time-series/async", params={"days": 1, "interval": 30})
            assert resp.status_code == 202
            task = _poll(client, resp.json()["task_id"])
        assert task["status"] == "completed"
        assert task["result"]["count"] == 4 * 48

    def test_task_status_reaches_completed(self) -> None:
        catalog = InMemoryDeviceCatalog()
        catalog.add_device("carbon_sensor")
        catalog.add_device("carbon_sensor")
        client, sink = _client(catalog)
        with client:
            resp = client.post("/mock-iot/time-series/async", params={"days": 1, "interval": 60})
            task_id = resp.json()["task_id"]
            first = client.get(f"/mock-iot/tasks/{task_id}")
            assert first.status_code == 200
            assert first.json()["kind"] == "carbon_time_series"
            task = _poll(client, task_id)
            listed = client.get("/mock-iot/tasks").json()
        assert task["status"] == "completed"
        assert task["progress"] == 100
        assert task["result"]["count"] == 48
        assert len(sink.records) == 48
        assert [t["task_id"] for t in listed] == [task_id]

    def test_async_empty_catalog_fails(self) -> None:
        client, sink = _client(InMemoryDeviceCatalog())
        with client:
            resp = client.post("/mock-iot/time-series/async", params={"days": 1})
            task = _poll(client, resp.json()["task_id"])
        assert task["status"] == "failed"
        assert task["error"]
        assert sink.records == []

    def test_prediction_dataset(self) -> None:
        client, _ = _client()
        with client:
            resp = client.post("/mock-iot/prediction-dataset", params={"days": 1})
            assert resp.status_code == 200
            assert resp.json()["total_points"] == 24

            accepted = client.post("/mock-iot/prediction-dataset/async", params={"days": 2})
            task = _poll(client, accepted.json()["task_id"])
        assert task["kind"] == "prediction_dataset"
        assert task["result"]["total_points"] == 48


# -----------------------------------------------------------------------
# Tasks
# -----------------------------------------------------------------------


class TestTaskRoutes:
    def test_unknown_task_404(self) -> None:
        client, _ = _client()
        with client:
            assert client.get("/mock-iot/tasks/does-not-exist").status_code == 404

    def test_list_tasks(self) -> None:
        client, _ = _client()
        with client:
            ids = [client.post(f"/mock-iot/scenarios/{name}/async").json()["task_id"] for name in ("night", "workday_peak")]
            for task_id in ids:
                _poll(client, task_id)
            listed = client.get("/mock-iot/tasks").json()
        assert [t["task_id"] for t in listed] == ids


# -----------------------------------------------------------------------
# CSV replay
# -----------------------------------------------------------------------

REPLAY_CSV = "device_id,data_type,value\nDEV-CO2-A001,carbon_emission,72.9\nDEV-EM-A001,,118.4\n"


@pytest.fixture
def csv_file(tmp_path: Path) -> Path:
    path = tmp_path / "readings.csv"
    path.write_text(REPLAY_CSV)
    return path


class TestReplayRoutes:
    def test_status_without_csv(self) -> None:
        client, _ = _client()
        with client:
            body = client.get("/mock-iot/replay/status").json()
        assert body["active"] is False
        assert body["total_items"] == 0
        assert body["file_path"] is None
        assert body["config"] == {"interval_s": 5.0, "devices_per_interval": 3, "randomize": True}

    def test_reload(self, csv_file: Path) -> None:
        client, _ = _client(replay_csv=csv_file)
        with client:
            resp = client.post("/mock-iot/replay/reload")
        assert resp.status_code == 200
        assert resp.json()["total_items"] == 2

    def test_reload_without_csv_400(self) -> None:
        client, _ = _client()
        with client:
            resp = client.post("/mock-iot/replay/reload")
        assert resp.status_code == 400
        assert "No replay CSV" in resp.json()["detail"]

    def test_missing_csv_404(self, tmp_path: Path) -> None:
        client, _ = _client(replay_csv=tmp_path / "gone.csv")
        with client:
            assert client.post("/mock-iot/replay/reload").status_code == 404
            assert client.post("/mock-iot/replay/start").status_code == 404

    def test_start_then_stop(self, csv_file: Path) -> None:
        client, sink = _client(replay_csv=csv_file)
        with client:
            resp = client.post("/mock-iot/replay/start", params={"interval_s": 0.01, "devices_per_interval": 1})
            assert resp.status_code == 200
            assert resp.json()["status"] == "started"

            for _ in range(500):
                status = client.get("/mock-iot/replay/status").json()
                if status["batches_sent"] >= 2:
                    break
                time.sleep(0.01)
            assert status["active"] is True
            assert status["batches_sent"] >= 2

            stopped = client.post("/mock-iot/replay/stop").json()
            assert stopped["status"] == "stopped"
            assert client.get("/mock-iot/replay/status").json()["active"] is False
        assert sink.records

    def test_stop_when_idle(self) -> None:
        client, _ = _client()
        with client:
            assert client.post("/mock-iot/replay/stop").json()["status"] == "idle"

    @pytest.mark.parametrize(
        "params",
        [{"interval_s": 0}, {"interval_s": 7200}, {"devices_per_interval": 0}, {"devices_per_interval": 5000}],
    )
    def test_start_out_of_range_422(self, csv_file: Path, params: dict) -> None:
        client, _ = _client(replay_csv=csv_file)
        with client:
            assert client.post("/mock-iot/replay/start", params=params).status_code == 422
            assert client.get("/mock-iot/replay/status").json()["active"] is False

    def test_publish(self, csv_file: Path) -> None:
        client, sink = _client(replay_csv=csv_file)
        with client:
            resp = client.post("/mock-iot/replay/publish", params={"count": 5, "interval_s": 0})
            assert resp.status_code == 202
            task_id = resp.json()["task_id"]
            body = _poll(client, task_id)
        assert body["status"] == "completed"
        assert body["kind"] == "replay_publish"
        assert body["result"]["count"] == 2
        assert body["result"]["published"] == 2
        assert len(sink.records) == 2

    def test_publish_without_csv_fails(self) -> None:
        client, sink = _client()
        with client:
            task_id = client.post("/mock-iot/replay/publish", params={"interval_s": 0}).json()["task_id"]
            body = _poll(client, task_id)
        assert body["status"] == "failed"
        assert "No replay data loaded" in body["error"]
        assert sink.records == []

    def test_publish_out_of_range_422(self) -> None:
        client, _ = _client()
        with client:
            assert client.post("/mock-iot/replay/publish", params={"count": 0}).status_code == 422
            assert client.post("/mock-iot/replay/publish", params={"interval_s": -1}).status_code == 422
