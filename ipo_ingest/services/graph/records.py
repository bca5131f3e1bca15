import uuid
from typing import Any, Dict, List, Optional

from ipo_ingest.db.neo4j_connector import run_cypher

_IPO_FIELDS = (
    "i.id AS id, i.name AS name, i.category AS category, i.card_html AS card_html, "
    "i.content_html AS content_html, i.scraped_at AS scraped_at, i.created_at AS created_at, "
    "i.is_active AS is_active"
)


def create_ipo(
    name: str,
    *,
    card_html: Optional[str] = None,
    content_html: Optional[str] = None,
    category: str = "Mainboard",
    scraped_at: Optional[str] = None,
) -> str:
    """Create an IPO node and return its id."""
    ipo_id = str(uuid.uuid4())
    query = (
        "CREATE (i:IPO {id: $id, name: $name, card_html: $card_html, content_html: $content_html, "
        "category: $category, scraped_at: $scraped_at, created_at: $scraped_at, is_active: true}) "
        "RETURN i.id AS id"
    )
    res = run_cypher(
        query,
        {
            "id": ipo_id,
            "name": name,
            "card_html": card_html,
            "content_html": content_html,
            "category": category,
            "scraped_at": scraped_at,
        },
    )
    return res[0]["id"] if res else ipo_id


def create_premium_mapping(ipo_id: str, premium_id: int, slug: str, source_url: str, *, created_at: Optional[str] = None) -> Dict[str, Any]:
    """Link an IPO to its ipopremium.in id.

    Uses CREATE rather than MERGE so the uniqueness constraint on premium_id
    rejects a second mapping for the same source record.
    """
    query = (
        "MATCH (i:IPO {id: $ipo_id}) "
        "CREATE (m:PremiumMapping {premium_id: $premium_id, slug: $slug, source_url: $source_url, created_at: $created_at}) "
        "CREATE (i)-[:SOURCED_FROM]->(m) "
        "RETURN i.id AS ipo_id, m.premium_id AS premium_id, m.slug AS slug, m.source_url AS source_url"
    )
    res = run_cypher(
        query,
        {
            "ipo_id": ipo_id,
            "premium_id": int(premium_id),
            "slug": slug,
            "source_url": source_url,
            "created_at": created_at,
        },
    )
    if not res:
        raise RuntimeError(f"IPO {ipo_id} not found while creating mapping for premium id {premium_id}")
    return res[0]


def premium_mapping_exists(premium_id: int) -> bool:
    res = run_cypher(
        "MATCH (m:PremiumMapping {premium_id: $pid}) RETURN count(m) AS cnt",
        {"pid": int(premium_id)},
    )
    return bool(res and (res[0].get("cnt") or 0) > 0)


def get_premium_mapping(premium_id: int) -> Dict[str, Any]:
    q = (
        "MATCH (i:IPO)-[:SOURCED_FROM]->(m:PremiumMapping {premium_id: $pid}) "
        "RETURN i.id AS ipo_id, m.premium_id AS premium_id, m.slug AS slug, m.source_url AS source_url, "
        "m.created_at AS created_at"
    )
    res = run_cypher(q, {"pid": int(premium_id)})
    return res[0] if res else {}


def get_ipo(ipo_id: str) -> Dict[str, Any]:
    """Fetch one IPO with its source mapping. Returns empty dict if not found."""
    q = (
        "MATCH (i:IPO {id: $id}) "
        "OPTIONAL MATCH (i)-[:SOURCED_FROM]->(m:PremiumMapping) "
        f"RETURN {_IPO_FIELDS}, m.premium_id AS premium_id, m.slug AS slug, m.source_url AS source_url"
    )
    res = run_cypher(q, {"id": ipo_id})
    return res[0] if res else {}


def list_ipos(category: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
    """Active IPOs, newest source id first. HTML fragments are left out of listings."""
    q = (
        "MATCH (i:IPO) WHERE i.is_active = true AND ($category IS NULL OR i.category = $category) "
        "OPTIONAL MATCH (i)-[:SOURCED_FROM]->(m:PremiumMapping) "
        "RETURN i.id AS id, i.name AS name, i.category AS category, i.scraped_at AS scraped_at, "
        "m.premium_id AS premium_id, m.slug AS slug, m.source_url AS source_url "
        "ORDER BY coalesce(m.premium_id, -1) DESC LIMIT $limit"
    )
    return run_cypher(q, {"category": category, "limit": max(1, int(limit))}) or []


def search_ipos(term: str, limit: int = 20) -> List[Dict[str, Any]]:
    if not term:
        return []
    q = (
        "MATCH (i:IPO) WHERE i.is_active = true AND toLower(i.name) CONTAINS toLower($term) "
        "OPTIONAL MATCH (i)-[:SOURCED_FROM]->(m:PremiumMapping) "
        "RETURN i.id AS id, i.name AS name, i.category AS category, i.scraped_at AS scraped_at, "
        "m.premium_id AS premium_id, m.slug AS slug "
        "ORDER BY i.name LIMIT $limit"
    )
    return run_cypher(q, {"term": term, "limit": max(1, int(limit))}) or []


def get_category_stats() -> Dict[str, int]:
    res = run_cypher(
        "MATCH (i:IPO) WHERE i.is_active = true RETURN i.category AS category, count(i) AS cnt ORDER BY category"
    )
    return {r["category"]: r["cnt"] for r in res or [] if r.get("category")}


def delete_ipo(ipo_id: str) -> bool:
    """Remove an IPO node and its relationships. True when a node was removed."""
    res = run_cypher(
        "MATCH (i:IPO {id: $id}) DETACH DELETE i RETURN count(*) AS cnt",
        {"id": ipo_id},
    )
    return bool(res and (res[0].get("cnt") or 0) > 0)


def deactivate_ipo(ipo_id: str) -> bool:
    """Soft delete: hide the IPO from listings and stats, keep its mapping."""
    res = run_cypher(
        "MATCH (i:IPO {id: $id}) SET i.is_active = false RETURN i.id AS id",
        {"id": ipo_id},
    )
    return bool(res)
