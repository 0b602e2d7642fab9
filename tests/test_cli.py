from unittest.mock import MagicMock

import pytest

from docintel.ingestion import ingest_files


@pytest.fixture
def cli_services(services, monkeypatch):
    monkeypatch.setattr(ingest_files, "build_services", lambda: services)
    return services


def test_ingests_local_files_and_prints_ids(tmp_path, cli_services, capsys):
    path = tmp_path / "facts.txt"
    path.write_bytes(b"Paris is the capital of France.")

    ingest_files.main([str(path), "--log-level", "WARNING"])

    (line,) = [ln for ln in capsys.readouterr().out.splitlines() if " -> " in ln]
    doc_id, name = line.split(" -> ")
    assert name == "France-Capital-Facts"
    assert doc_id.count("-") == 1


def test_fetches_urls(cli_services, monkeypatch, capsys):
    resp = MagicMock(status_code=200, content=b"<html><body><p>Berlin is the capital of Germany.</p></body></html>")
    resp.headers = {"Content-Type": "text/html; charset=utf-8"}
    get = MagicMock(return_value=resp)
    monkeypatch.setattr(ingest_files.requests, "get", get)

    ingest_files.main(["--url", "https://example.com/docs/germany.html"])

    assert get.call_args.kwargs["headers"] == ingest_files.HEADERS
    assert [ln for ln in capsys.readouterr().out.splitlines() if " -> " in ln][0].endswith("-> France-Capital-Facts")


def test_fetch_document_uses_url_filename(monkeypatch):
    resp = MagicMock(status_code=200, content=b"%PDF")
    resp.headers = {"Content-Type": "application/pdf"}
    monkeypatch.setattr(ingest_files.requests, "get", MagicMock(return_value=resp))

    data, filename, content_type = ingest_files.fetch_document("https://example.com/files/Annual%20Report.pdf?v=2")

    assert (data, filename, content_type) == (b"%PDF", "Annual Report.pdf", "application/pdf")


def test_requires_something_to_ingest():
    with pytest.raises(SystemExit):
        ingest_files.main([])
