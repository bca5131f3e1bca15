from typing import Dict, Any
from ipo_ingest.db.neo4j_connector import run_cypher

CONSTRAINTS = (
    "CREATE CONSTRAINT ipo_id IF NOT EXISTS FOR (i:IPO) REQUIRE i.id IS UNIQUE",
    "CREATE CONSTRAINT premium_mapping_premium_id IF NOT EXISTS FOR (m:PremiumMapping) REQUIRE m.premium_id IS UNIQUE",
    "CREATE CONSTRAINT scrape_log_id IF NOT EXISTS FOR (l:ScrapeLog) REQUIRE l.id IS UNIQUE",
    "CREATE CONSTRAINT app_config_key IF NOT EXISTS FOR (c:AppConfig) REQUIRE c.key IS UNIQUE",
)

INDEXES = (
    "CREATE INDEX scrape_log_batch IF NOT EXISTS FOR (l:ScrapeLog) ON (l.batch_id)",
    "CREATE INDEX ipo_category IF NOT EXISTS FOR (i:IPO) ON (i.category)",
)


def ensure_schema() -> Dict[str, Any]:
    """Create the uniqueness constraints and lookup indexes (idempotent)."""
    for stmt in CONSTRAINTS + INDEXES:
        run_cypher(stmt)
    return {"constraints": len(CONSTRAINTS), "indexes": len(INDEXES)}
