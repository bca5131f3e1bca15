from typing import Dict, Optional

from ipo_ingest.db.neo4j_connector import run_cypher


def get_config_values() -> Dict[str, Optional[str]]:
    """All stored configuration values keyed by config key."""
    res = run_cypher("MATCH (c:AppConfig) RETURN c.key AS key, c.value AS value")
    return {r["key"]: r.get("value") for r in res or [] if r.get("key")}


def set_config_value(
    key: str,
    value: Optional[str],
    *,
    description: Optional[str] = None,
    data_type: str = "string",
    category: str = "General",
    updated_at: Optional[str] = None,
) -> Dict[str, Optional[str]]:
    query = (
        "MERGE (c:AppConfig {key: $key}) "
        "ON CREATE SET c.created_at = $updated_at "
        "SET c.value = $value, "
        "    c.description = coalesce($description, c.description), "
        "    c.data_type = $data_type, "
        "    c.category = $category, "
        "    c.updated_at = $updated_at "
        "RETURN c.key AS key, c.value AS value"
    )
    res = run_cypher(
        query,
        {
            "key": key,
            "value": value,
            "description": description,
            "data_type": data_type,
            "category": category,
            "updated_at": updated_at,
        },
    )
    return res[0] if res else {}
