"""Graph persistence for scraped IPOs, source mappings, scrape logs and configuration.

Functions are importable at package level.
"""
from .records import (
    create_ipo,
    create_premium_mapping,
    premium_mapping_exists,
    get_premium_mapping,
    get_ipo,
    list_ipos,
    search_ipos,
    get_category_stats,
    delete_ipo,
    deactivate_ipo,
)
from .scrape_logs import (
    create_scrape_log,
    update_scrape_log,
    get_batch_logs,
    get_recent_batches,
    get_batch_summary,
    get_latest_batch_summary,
)
from .app_config import get_config_values, set_config_value
from .schema import ensure_schema

__all__ = [
    # records
    'create_ipo','create_premium_mapping','premium_mapping_exists','get_premium_mapping',
    'get_ipo','list_ipos','search_ipos','get_category_stats','delete_ipo','deactivate_ipo',
    # scrape logs
    'create_scrape_log','update_scrape_log','get_batch_logs','get_recent_batches',
    'get_batch_summary','get_latest_batch_summary',
    # configuration
    'get_config_values','set_config_value',
    # schema
    'ensure_schema',
]
