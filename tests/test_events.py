from ipo_ingest.services.crawl.base import ScrapeStatus, SourceReference
from ipo_ingest.services.crawl.events import EventBus, ProgressEvent, RecentEvents, StatusEvent

REF = SourceReference(5, "acme-ltd", "https://www.ipopremium.in/view/ipo/5/acme-ltd")


def test_observers_receive_events_in_order():
    bus = EventBus()
    seen = []
    bus.subscribe(on_progress=lambda e: seen.append(e.current), on_status=lambda e: seen.append(e.message))

    bus.emit_status(StatusEvent("one", ScrapeStatus.IN_PROGRESS))
    bus.emit_progress(ProgressEvent(1, 3, REF, ScrapeStatus.IN_PROGRESS))
    bus.emit_progress(ProgressEvent(2, 3, REF, ScrapeStatus.COMPLETED))
    bus.emit_status(StatusEvent("two", ScrapeStatus.COMPLETED))

    assert seen == ["one", 1, 2, "two"]


def test_failing_observer_is_isolated():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(on_status=broken)
    bus.subscribe(on_status=lambda e: seen.append(e.message))
    bus.emit_status(StatusEvent("still delivered", ScrapeStatus.IN_PROGRESS))

    assert seen == ["still delivered"]


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    seen = []
    token = bus.subscribe(on_progress=seen.append)
    bus.emit_progress(ProgressEvent(1, 1, REF, ScrapeStatus.COMPLETED))
    bus.unsubscribe(token)
    bus.emit_progress(ProgressEvent(1, 1, REF, ScrapeStatus.COMPLETED))
    assert len(seen) == 1


def test_progress_percentage():
    assert ProgressEvent(5, 20, REF, ScrapeStatus.COMPLETED).percentage == 25.0
    assert ProgressEvent(0, 0, REF, ScrapeStatus.PENDING).percentage == 0.0
    data = ProgressEvent(1, 3, REF, ScrapeStatus.SKIPPED).to_dict()
    assert data["percentage"] == 33.33
    assert data["status"] == "Skipped"
    assert data["item"]["slug"] == "acme-ltd"


def test_recent_events_keeps_latest():
    bus = EventBus()
    recent = RecentEvents(maxlen=3)
    recent.attach(bus)
    for i in range(5):
        bus.emit_status(StatusEvent(f"m{i}", ScrapeStatus.IN_PROGRESS))

    assert [e["message"] for e in recent.latest(10)] == ["m2", "m3", "m4"]
    assert [e["message"] for e in recent.latest(1)] == ["m4"]
    recent.clear()
    assert recent.latest() == []
