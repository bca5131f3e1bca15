"""Facade over the graph persistence package.

    from ipo_ingest.services.graph_service import create_ipo, get_batch_logs, ...

New code may import from `ipo_ingest.services.graph` directly.
"""

from ipo_ingest.services.graph import *  # noqa: F401,F403

from ipo_ingest.services.graph import __all__  # type: ignore
