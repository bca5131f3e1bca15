import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from ipo_ingest.db.neo4j_connector import close_driver
from ipo_ingest.services import scraping_service

# Routers
from ipo_ingest.api.routers.scraping import router as scraping_router
from ipo_ingest.api.routers.configuration import router as configuration_router
from ipo_ingest.api.routers.ipos import router as ipos_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the graph schema and scheduler; release the Neo4j driver on shutdown."""
    try:
        scraping_service.get_storage()
        from ipo_ingest.services.graph_service import ensure_schema
        ensure_schema()
        scraping_service.get_config_provider().seed_defaults()
    except Exception as exc:
        logger.warning("Graph schema/config initialisation skipped: %s", exc)
    scraping_service.get_scheduler().start()
    try:
        yield
    finally:
        scraping_service.shutdown()
        close_driver()


app = FastAPI(title="IPO Ingest", version="0.1", lifespan=lifespan)

app.include_router(scraping_router)
app.include_router(configuration_router)
app.include_router(ipos_router)
