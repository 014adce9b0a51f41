import logging
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query

from config import Settings
from events import EventLog, LoggingSink, to_dict
from models import (
    EventOut,
    HistoryOut,
    SelectionIn,
    SimulationStatusOut,
    SummaryOut,
    SystemStateOut,
    UnknownProvider,
)
from simulation import SeededRandom
from state import SimulationController
from summary import summarize

logger = logging.getLogger("traffic_router.api")


def create_app(
    controller: Optional[SimulationController] = None,
    settings: Optional[Settings] = None,
    event_log: Optional[EventLog] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    event_log = event_log or EventLog(settings.event_log_size)
    if controller is None:
        controller = SimulationController(
            rng=SeededRandom(settings.seed),
            sinks=[LoggingSink()],
            tick_interval=settings.tick_interval,
            history_limit=settings.history_limit,
        )
    controller.add_sink(event_log)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Traffic router ready (autostart=%s)", settings.autostart)
        if settings.autostart:
            controller.start()
        try:
            yield
        finally:
            controller.stop()

    app = FastAPI(
        title="Multi-Cloud Traffic Router",
        description=(
            "Tracks health, cost and performance of three cloud providers and "
            "computes how incoming traffic should be split between them. "
            "Metrics drift on a timer; providers can be degraded or improved by hand."
        ),
        lifespan=lifespan,
    )
    app.state.controller = controller
    app.state.event_log = event_log
    app.state.settings = settings

    @app.get("/state", response_model=SystemStateOut)
    def get_state():
        return SystemStateOut.model_validate(controller.get_state())

    @app.get("/history", response_model=HistoryOut)
    def get_history():
        return HistoryOut.model_validate(controller.get_history())

    @app.get("/summary", response_model=SummaryOut)
    def get_summary():
        return summarize(controller.get_state())

    @app.get("/events", response_model=List[EventOut])
    def recent_events(since: int = Query(0, ge=0)):
        return [
            EventOut(sequence=seq, event=to_dict(event))
            for seq, event in event_log.since(since)
        ]

    @app.get("/simulation", response_model=SimulationStatusOut)
    def simulation_status():
        return SimulationStatusOut(
            running=controller.is_running(),
            selected_provider=controller.selected_provider,
            dropped_events=controller.dropped_events,
        )

    @app.post("/simulation/start", response_model=SimulationStatusOut)
    def start_simulation():
        controller.start()
        return simulation_status()

    @app.post("/simulation/stop", response_model=SimulationStatusOut)
    def stop_simulation():
        controller.stop()
        return simulation_status()

    @app.post("/simulation/tick", response_model=SystemStateOut)
    def run_tick():
        return SystemStateOut.model_validate(controller.tick())

    @app.post("/providers/{provider_id}/degrade", response_model=SystemStateOut)
    def degrade_provider(provider_id: str):
        try:
            return SystemStateOut.model_validate(controller.degrade(provider_id))
        except UnknownProvider as exc:
            raise HTTPException(status_code=404, detail=str(exc))

    @app.post("/providers/{provider_id}/improve", response_model=SystemStateOut)
    def improve_provider(provider_id: str):
        try:
            return SystemStateOut.model_validate(controller.improve(provider_id))
        except UnknownProvider as exc:
            raise HTTPException(status_code=404, detail=str(exc))

    @app.put("/selection", response_model=SimulationStatusOut)
    def select_provider(selection: SelectionIn):
        try:
            controller.select_provider(selection.provider)
        except UnknownProvider as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        return simulation_status()

    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port)
