import httpx
import pytest

from ipo_ingest.services.crawl.base import FetchError
from ipo_ingest.services.crawl.transport import HttpTransport

URL = "https://www.ipopremium.in/view/ipo/1/acme"


def _transport(handler):
    return HttpTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_fetch_returns_body_and_status():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, text="<html>ok</html>")

    body, status = _transport(handler).fetch(URL, 1000)
    assert body == "<html>ok</html>"
    assert status == 200
    assert seen["url"] == URL


def test_non_success_status_raises_fetch_error():
    transport = _transport(lambda request: httpx.Response(503, text="busy"))
    with pytest.raises(FetchError) as excinfo:
        transport.fetch(URL, 1000)
    assert excinfo.value.status_code == 503
    assert excinfo.value.url == URL
    assert "503" in str(excinfo.value)


def test_timeout_raises_fetch_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(FetchError) as excinfo:
        _transport(handler).fetch(URL, 250)
    assert "Timed out after 250 ms" in str(excinfo.value)
    assert excinfo.value.status_code is None


def test_connection_error_raises_fetch_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(FetchError, match="refused"):
        _transport(handler).fetch(URL, 1000)


def test_close_releases_injected_client():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    transport = HttpTransport(client=client)
    transport.close()
    assert client.is_closed
