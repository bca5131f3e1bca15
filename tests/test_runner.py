import json

from ipo_ingest.services.crawl import runner

from fakes import SITEMAP_URL, FakeStorage, FakeTransport, StaticConfig, ipo_page, ipo_url, sitemap_xml


def _patch_transport(monkeypatch, pages):
    transport = FakeTransport(pages)
    monkeypatch.setattr(runner, "HttpTransport", lambda: transport)
    return transport


def _json_lines(out):
    return [json.loads(line) for line in out.splitlines() if line.strip()]


def test_sitemap_command_prints_latest(monkeypatch, capsys):
    _patch_transport(monkeypatch, {SITEMAP_URL: sitemap_xml([ipo_url(i) for i in (4, 9, 2)])})
    code = runner.main(["sitemap", "--url", SITEMAP_URL, "--count", "2"])

    assert code == 0
    assert [r["source_id"] for r in _json_lines(capsys.readouterr().out)] == [4, 9]


def test_sitemap_command_range(monkeypatch, capsys):
    _patch_transport(monkeypatch, {SITEMAP_URL: sitemap_xml([ipo_url(i) for i in range(1, 11)])})
    code = runner.main(["sitemap", "--url", SITEMAP_URL, "--min-id", "3", "--max-id", "5"])

    assert code == 0
    assert [r["source_id"] for r in _json_lines(capsys.readouterr().out)] == [3, 4, 5]


def test_scrape_command(monkeypatch, capsys):
    url = ipo_url(1092, "marc-technocrats-ltd")
    _patch_transport(monkeypatch, {url: ipo_page("Marc Technocrats Ltd", "sme")})
    code = runner.main(["scrape", url, "--retries", "0"])

    assert code == 0
    result = _json_lines(capsys.readouterr().out)[0]
    assert result["name"] == "Marc Technocrats Ltd"
    assert result["classification"] == "SME"


def test_scrape_command_failure_exit_code(monkeypatch, capsys):
    _patch_transport(monkeypatch, {})
    code = runner.main(["scrape", ipo_url(5), "--retries", "1", "--delay-ms", "0"])

    assert code == 1
    assert _json_lines(capsys.readouterr().out)[0]["attempts"] == 2


def test_scrape_command_rejects_other_urls(capsys):
    assert runner.main(["scrape", "https://www.ipopremium.in/view/news/1/x"]) == 2


def test_run_batch_summary(monkeypatch, capsys):
    from ipo_ingest.services.crawl import orchestrator as orchestrator_mod

    transport = FakeTransport({SITEMAP_URL: sitemap_xml([ipo_url(1)]), ipo_url(1): ipo_page("Acme")})
    monkeypatch.setattr(orchestrator_mod, "HttpTransport", lambda: transport)
    code = runner.run_batch(StaticConfig(), FakeStorage())

    assert code == 0
    summary = _json_lines(capsys.readouterr().out)[-1]
    assert summary["outcome"] == "Completed"
    assert summary["completed"] == 1
    assert "items" not in summary
