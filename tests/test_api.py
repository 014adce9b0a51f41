"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from models import HealthStatus, HistoryOut, ProviderId, SystemStateOut, default_state
from simulation import ManualClock, SeededRandom
from state import SimulationController


@pytest.fixture
def api_controller():
    return SimulationController(clock=ManualClock(start=1000.0), rng=SeededRandom(1))


@pytest.fixture
def client(api_controller):
    app = create_app(controller=api_controller, settings=Settings(autostart=False))
    return TestClient(app)


class TestReadEndpoints:

    def test_state(self, client):
        response = client.get("/state")
        assert response.status_code == 200
        data = response.json()
        assert data["total_requests"] == 3500
        assert data["providers"]["aws"]["traffic_percentage"] == 35
        assert data["providers"]["gcp"]["status"] == "healthy"

    def test_history_after_ticks(self, client):
        for _ in range(3):
            assert client.post("/simulation/tick").status_code == 200
        data = client.get("/history").json()
        assert len(data["timestamps"]) == 3
        assert len(data["series"]["azure"]["response_time"]) == 3

    def test_summary(self, client):
        data = client.get("/summary").json()
        assert data["availability_rating"] == "excellent"
        assert set(data["providers"]) == {"aws", "azure", "gcp"}


class TestOverrides:

    def test_degrade(self, client):
        response = client.post("/providers/aws/degrade")
        assert response.status_code == 200
        aws = response.json()["providers"]["aws"]
        assert aws["status"] == "critical"
        assert aws["response_time"] == 285.0

    def test_improve(self, client):
        response = client.post("/providers/gcp/improve")
        assert response.status_code == 200
        assert response.json()["providers"]["gcp"]["error_rate"] == 0.005

    @pytest.mark.parametrize("action", ["degrade", "improve"])
    def test_unknown_provider_is_404(self, client, action):
        response = client.post(f"/providers/oracle/{action}")
        assert response.status_code == 404
        assert "oracle" in response.json()["detail"]

    def test_events_feed(self, client):
        client.post("/providers/aws/degrade")
        events = client.get("/events").json()
        types = [e["event"]["type"] for e in events]
        assert types == ["manual_override", "alert_raised"]
        assert events[0]["event"]["kind"] == "degrade"

        last = events[-1]["sequence"]
        assert client.get("/events", params={"since": last}).json() == []


class TestSimulationControl:

    def test_start_and_stop(self, client, api_controller):
        assert client.get("/simulation").json()["running"] is False

        assert client.post("/simulation/start").json()["running"] is True
        assert client.post("/simulation/start").json()["running"] is True
        assert api_controller.clock.active_timers == 1

        api_controller.clock.advance(3.0)
        assert len(client.get("/history").json()["timestamps"]) == 2

        assert client.post("/simulation/stop").json()["running"] is False
        assert api_controller.clock.active_timers == 0

    def test_selection(self, client):
        response = client.put("/selection", json={"provider": "azure"})
        assert response.status_code == 200
        assert response.json()["selected_provider"] == "azure"

        assert client.put("/selection", json={"provider": None}).json()["selected_provider"] is None
        assert client.put("/selection", json={"provider": "ibm"}).status_code == 404

    def test_autostart_on_startup(self):
        controller = SimulationController(clock=ManualClock(), rng=SeededRandom(2))
        app = create_app(controller=controller, settings=Settings(autostart=True))
        with TestClient(app):
            assert controller.is_running()
        assert not controller.is_running()


class TestResponseModels:

    def test_state_model_reads_dataclass_attributes(self):
        out = SystemStateOut.model_validate(default_state(12.0))
        assert out.timestamp == 12.0
        assert out.providers[ProviderId.AZURE].response_time == 92.0
        assert out.providers[ProviderId.GCP].status is HealthStatus.HEALTHY

    def test_history_model_reads_dataclass_attributes(self, api_controller):
        api_controller.tick()
        out = HistoryOut.model_validate(api_controller.get_history())
        assert len(out.timestamps) == 1
        assert len(out.series[ProviderId.AWS].response_time) == 1
