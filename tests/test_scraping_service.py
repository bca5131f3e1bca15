from ipo_ingest.services import scraping_service


class _Stoppable:
    def __init__(self, name, calls):
        self.name = name
        self.calls = calls

    def stop(self):
        self.calls.append(self.name)
        return True


def test_shutdown_cancels_batch_before_stopping_scheduler(monkeypatch):
    calls = []
    monkeypatch.setattr(scraping_service, "_orchestrator", _Stoppable("orchestrator", calls))
    monkeypatch.setattr(scraping_service, "_scheduler", _Stoppable("scheduler", calls))

    scraping_service.shutdown()
    assert calls == ["orchestrator", "scheduler"]


def test_shutdown_without_components_is_a_no_op(monkeypatch):
    monkeypatch.setattr(scraping_service, "_orchestrator", None)
    monkeypatch.setattr(scraping_service, "_scheduler", None)
    scraping_service.shutdown()
