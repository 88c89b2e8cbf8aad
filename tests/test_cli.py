from __future__ import annotations

import json
from pathlib import Path

import pytest

from marquee.cli import main
from marquee.core.config import get_settings


def test_duration_command(capsys):
    main(["duration", "PT1H2M3S"])
    assert capsys.readouterr().out.strip() == "01:02:03"


def test_extract_id_command(capsys):
    main(["extract-id", "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=1s"])
    assert capsys.readouterr().out.strip() == "dQw4w9WgXcQ"


def test_extract_id_rejects_foreign_url():
    with pytest.raises(SystemExit) as excinfo:
        main(["extract-id", "https://vimeo.com/1"])
    assert excinfo.value.code == 2


def test_no_command_prints_help():
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 1


def test_init_db_creates_database(tmp_path: Path, monkeypatch, capsys):
    db_path = tmp_path / "fresh.db"
    monkeypatch.setenv("MARQUEE_DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    get_settings.cache_clear()
    main(["init-db"])
    assert db_path.exists()
    assert "Catalog schema ensured" in capsys.readouterr().out


def test_ingest_upload_command(capsys):
    main(["ingest", "--variant", "upload", "--file-ref", "videos/cli/clip.mp4", "--title", "From the CLI"])
    out = capsys.readouterr().out
    start = out.index("{\n")
    payload = json.loads(out[start : out.rindex("}") + 1])
    assert payload["resolution"] == "skipped"
    assert payload["record"]["uploaded_file_ref"] == "videos/cli/clip.mp4"
    assert payload["record"]["title"] == "From the CLI"


def test_ingest_reports_validation_errors(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["ingest", "--variant", "external"])
    assert excinfo.value.code == 2
    assert "the URL is required" in capsys.readouterr().out
