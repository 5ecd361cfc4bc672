import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import settings
from core.use_cases.auth_use_cases import drain_background_tasks
from core.use_cases.subscription_use_cases import check_expired_subscriptions
from infrastructure.db.sqlite import init_db, connect, SQLiteSubscriptionRepository
from infrastructure.web.controllers.access_controller import router as access_router
from infrastructure.web.controllers.admin_controller import router as admin_router
from infrastructure.web.controllers.auth_controller import router as auth_router
from infrastructure.web.controllers.notification_controller import router as notification_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


def sweep_once(db_path: str) -> int:
    conn = connect(db_path)
    try:
        return check_expired_subscriptions(SQLiteSubscriptionRepository(conn))
    finally:
        conn.close()


async def expiry_sweep_loop(db_path: str, interval_seconds: int) -> None:
    while True:
        try:
            await asyncio.to_thread(sweep_once, db_path)
        except Exception:
            logger.exception("Scheduled expiry sweep crashed")
        await asyncio.sleep(interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} (identity backend: {settings.IDENTITY_BACKEND})")
    init_db(settings.DB_PATH)

    sweeper = None
    if settings.EXPIRY_SWEEP_INTERVAL_SECONDS > 0:
        sweeper = asyncio.create_task(expiry_sweep_loop(settings.DB_PATH, settings.EXPIRY_SWEEP_INTERVAL_SECONDS))
    else:
        logger.info("Periodic expiry sweep disabled")

    yield

    if sweeper is not None:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
    await drain_background_tasks()
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(access_router)
app.include_router(admin_router)
app.include_router(notification_router)


@app.get("/health", tags=["health"])
def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}
