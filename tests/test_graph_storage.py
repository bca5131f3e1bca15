import pytest

from ipo_ingest.services.crawl.base import Category, ExtractionResult, Outcome, ScrapeStatus, SourceReference
from ipo_ingest.services.graph import app_config, records, scrape_logs
from ipo_ingest.services.storage import GraphStorage


class _Cypher:
    """Records queries and answers them from a queue of canned result sets.

    An exception in the queue is raised instead of returned.
    """

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def __call__(self, query, parameters=None):
        self.calls.append((query, parameters or {}))
        result = self.results.pop(0) if self.results else []
        if isinstance(result, Exception):
            raise result
        return result


def _patch(monkeypatch, fake):
    for mod in (records, scrape_logs, app_config):
        monkeypatch.setattr(mod, "run_cypher", fake)
    return fake


REF = SourceReference(1092, "marc-technocrats-ltd", "https://www.ipopremium.in/view/ipo/1092/marc-technocrats-ltd")


def test_create_pending_log(monkeypatch):
    fake = _patch(monkeypatch, _Cypher([{"id": "log-1"}]))
    log_id = GraphStorage().create_pending_log("batch-1", REF)

    assert log_id == "log-1"
    query, params = fake.calls[0]
    assert query.startswith("CREATE (l:ScrapeLog")
    assert params["batch_id"] == "batch-1"
    assert params["premium_id"] == 1092
    assert params["status"] == "Pending"
    assert params["created_at"]


def test_update_log_maps_fields(monkeypatch):
    fake = _patch(monkeypatch, _Cypher([{"id": "log-1"}]))
    GraphStorage().update_log("log-1", ScrapeStatus.FAILED, detail="boom", retry_count=3, duration_ms=120)

    params = fake.calls[0][1]
    assert params["status"] == "Failed"
    assert params["error_message"] == "boom"
    assert params["retry_count"] == 3
    assert params["duration_ms"] == 120
    assert params["current_step"] is None
    assert params["started_at"] is None


def test_update_missing_log_raises(monkeypatch):
    _patch(monkeypatch, _Cypher([]))
    with pytest.raises(RuntimeError):
        GraphStorage().update_log("missing", ScrapeStatus.COMPLETED)


def test_record_exists(monkeypatch):
    _patch(monkeypatch, _Cypher([{"cnt": 1}], [{"cnt": 0}]))
    storage = GraphStorage()
    assert storage.record_exists(1092) is True
    assert storage.record_exists(1093) is False


def test_persist_record_and_mapping(monkeypatch):
    fake = _patch(monkeypatch, _Cypher([{"id": "ipo-1"}], [{"ipo_id": "ipo-1", "premium_id": 1092}]))
    result = ExtractionResult(
        source_id=1092,
        slug=REF.slug,
        url=REF.url,
        outcome=Outcome.SUCCESS,
        name="Marc Technocrats Ltd",
        fragment_primary="<div>card</div>",
        fragment_secondary="<div>content</div>",
        classification=Category.SME,
    )
    storage = GraphStorage()
    record_id = storage.persist_record(result)
    storage.persist_mapping(record_id, REF.source_id, REF.slug, REF.url)

    ipo_params = fake.calls[0][1]
    assert ipo_params["name"] == "Marc Technocrats Ltd"
    assert ipo_params["category"] == "SME"
    assert ipo_params["card_html"] == "<div>card</div>"
    mapping_query, mapping_params = fake.calls[1]
    assert "SOURCED_FROM" in mapping_query
    assert mapping_params == {
        "ipo_id": "ipo-1",
        "premium_id": 1092,
        "slug": REF.slug,
        "source_url": REF.url,
        "created_at": mapping_params["created_at"],
    }


def test_mapping_for_unknown_record_raises(monkeypatch):
    _patch(monkeypatch, _Cypher([]))
    with pytest.raises(RuntimeError):
        GraphStorage().persist_mapping("nope", 1, "x", "https://x")


def test_failed_mapping_removes_record(monkeypatch):
    fake = _patch(monkeypatch, _Cypher(RuntimeError("constraint violation"), [{"cnt": 1}]))
    with pytest.raises(RuntimeError, match="constraint violation"):
        GraphStorage().persist_mapping("ipo-1", REF.source_id, REF.slug, REF.url)

    query, params = fake.calls[1]
    assert query.startswith("MATCH (i:IPO {id: $id}) DETACH DELETE i")
    assert params == {"id": "ipo-1"}


def test_deactivate_ipo(monkeypatch):
    fake = _patch(monkeypatch, _Cypher([{"id": "ipo-1"}], []))
    assert records.deactivate_ipo("ipo-1") is True
    assert records.deactivate_ipo("missing") is False
    query, params = fake.calls[0]
    assert "SET i.is_active = false" in query
    assert params == {"id": "ipo-1"}


def test_batch_summary(monkeypatch):
    row = {
        "total": 4, "completed": 2, "failed": 1, "skipped": 1, "cancelled": 0,
        "pending": 0, "in_progress": 0, "started_at": "2025-05-01T10:00:00+00:00", "completed_at": None,
    }
    _patch(monkeypatch, _Cypher([row]))
    summary = scrape_logs.get_batch_summary("b1")

    assert summary["batch_id"] == "b1"
    assert summary["progress_percentage"] == 75.0
    assert summary["is_completed"] is True
    assert summary["has_failures"] is True


def test_unknown_batch_summary_is_empty(monkeypatch):
    _patch(monkeypatch, _Cypher([{"total": 0}]))
    assert scrape_logs.get_batch_summary("nope") == {}


def test_batch_history(monkeypatch):
    _patch(
        monkeypatch,
        _Cypher(
            [{"batch_id": "b2"}, {"batch_id": "b1"}],
            [{"total": 1, "completed": 1, "pending": 0, "in_progress": 0, "failed": 0, "skipped": 0}],
            [{"total": 2, "completed": 0, "pending": 2, "in_progress": 0, "failed": 0, "skipped": 0}],
        ),
    )
    history = GraphStorage().get_batch_history(2)
    assert [h["batch_id"] for h in history] == ["b2", "b1"]
    assert history[1]["is_completed"] is False


def test_config_store(monkeypatch):
    fake = _patch(monkeypatch, _Cypher([{"key": "Scraping.Count", "value": "5"}, {"key": None}], [{"key": "k"}]))
    storage = GraphStorage()
    assert storage.get_values() == {"Scraping.Count": "5"}
    storage.set_value("Scraping.Count", "9", description="d", data_type="int", category="Scraping")
    query, params = fake.calls[1]
    assert query.startswith("MERGE (c:AppConfig")
    assert params["value"] == "9"
    assert params["data_type"] == "int"
    assert params["updated_at"]


def test_premium_mapping_lookup(monkeypatch):
    fake = _patch(monkeypatch, _Cypher([{"ipo_id": "ipo-1", "premium_id": 1092, "slug": REF.slug}], []))
    assert records.get_premium_mapping(1092)["ipo_id"] == "ipo-1"
    assert records.get_premium_mapping(5) == {}
    assert fake.calls[0][1] == {"pid": 1092}


def test_search_and_listing_queries(monkeypatch):
    fake = _patch(monkeypatch, _Cypher([{"id": "i1", "name": "Acme"}], [{"category": "SME", "cnt": 2}, {"category": None, "cnt": 1}]))
    assert records.search_ipos("acme", 5)[0]["name"] == "Acme"
    assert records.get_category_stats() == {"SME": 2}
    assert records.search_ipos("", 5) == []
    assert len(fake.calls) == 2


def test_ensure_schema_runs_every_statement(monkeypatch):
    from ipo_ingest.services.graph import schema

    fake = _Cypher()
    monkeypatch.setattr(schema, "run_cypher", fake)
    assert schema.ensure_schema() == {"constraints": 4, "indexes": 2}
    assert len(fake.calls) == 6
    assert any("PremiumMapping" in q and "UNIQUE" in q for q, _ in fake.calls)
