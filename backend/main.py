import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from firesale.db.config import get_sweep_interval_seconds
from firesale.routes.analytics_r import router as analytics_router
from firesale.routes.favorites_r import router as favorites_router
from firesale.routes.items_r import router as items_router
from firesale.routes.reservations_r import router as reservations_router
from firesale.services.notifications_s import ReservationEvents
from firesale.services.sweeper_s import ReservationSweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.reservation_events = ReservationEvents()
    sweeper = None
    interval = get_sweep_interval_seconds()
    if interval > 0:
        sweeper = ReservationSweeper(
            interval,
            events=app.state.reservation_events,
        )
        sweeper.start()
    else:
        logger.info("reservation sweeper disabled")
    app.state.reservation_sweeper = sweeper
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.stop()


app = FastAPI(
    title="Firesale API",
    version="0.1.0",
    description="Deals marketplace: listings, reservations, purchases.",
    lifespan=lifespan,
)

app.include_router(items_router)
app.include_router(reservations_router)
app.include_router(favorites_router)
app.include_router(analytics_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
