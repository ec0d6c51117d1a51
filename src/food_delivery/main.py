import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from food_delivery.api import health
from food_delivery.api.errors import database_error_handler, order_lifecycle_error_handler
from food_delivery.api.routes.drivers import router as drivers_router
from food_delivery.api.routes.orders import router as orders_router
from food_delivery.config import settings
from food_delivery.db.session import engine
from food_delivery.exceptions import OrderLifecycleError
from food_delivery.services.events import event_bus, log_status_change

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.subscribe(log_status_change)
    logger.info("Application started")
    yield
    event_bus.unsubscribe(log_status_change)
    await engine.dispose()
    logger.info("Application stopped")


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Подключаем роуты
app.include_router(health.router)
app.include_router(orders_router)
app.include_router(drivers_router)

app.add_exception_handler(OrderLifecycleError, order_lifecycle_error_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)
