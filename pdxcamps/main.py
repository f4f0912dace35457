import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from pdxcamps.db.neo4j_connector import close_driver

# Routers
from pdxcamps.api.routers.core import router as core_router
from pdxcamps.api.routers.camps import router as camps_router
from pdxcamps.api.routers.families import router as families_router
from pdxcamps.api.routers.registrations import router as registrations_router
from pdxcamps.api.routers.planner import router as planner_router
from pdxcamps.api.routers.calendar import router as calendar_router
from pdxcamps.api.routers.cleanup import router as cleanup_router
from pdxcamps.api.routers.scraping import router as scraping_router
from pdxcamps.api.routers.discovery import router as discovery_router
from pdxcamps.api.routers.referrals import router as referrals_router
from pdxcamps.api.routers.categorize import router as categorize_router
from pdxcamps.api.routers.images import router as images_router

logging.basicConfig(
    level=os.getenv("PDX_CAMPS_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensure resources (like the Neo4j driver) are closed on shutdown."""
    try:
        yield
    finally:
        close_driver()


app = FastAPI(title="PDX Camps", version="0.1", lifespan=lifespan)

app.include_router(core_router)
app.include_router(camps_router)
app.include_router(families_router)
app.include_router(registrations_router)
app.include_router(planner_router)
app.include_router(calendar_router)
app.include_router(cleanup_router)
app.include_router(scraping_router)
app.include_router(discovery_router)
app.include_router(referrals_router)
app.include_router(categorize_router)
app.include_router(images_router)
