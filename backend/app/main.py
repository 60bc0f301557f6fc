from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.app.core.config import settings
from backend.app.core.log_config import configure_logging
from backend.app.core.redis_client import close_redis, init_redis
import backend.app.routers.availability as availability
import backend.app.routers.bookings as bookings
import backend.app.routers.health as health
import backend.app.routers.reminders as reminders
import backend.app.routers.waitlist as waitlist


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    await init_redis()
    try:
        yield
    finally:
        await close_redis()


app = FastAPI(
    title="Table Reservation API",
    lifespan=lifespan,
)

app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(availability.router, prefix=settings.API_PREFIX)
app.include_router(bookings.router, prefix=settings.API_PREFIX)
app.include_router(reminders.router, prefix=settings.API_PREFIX)
app.include_router(waitlist.router, prefix=settings.API_PREFIX)
