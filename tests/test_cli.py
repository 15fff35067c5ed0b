import os
import sys

import pytest

sys.path.insert(0, os.path.abspath("src"))

from fabric_spec.cli import main as cli_main
from fabric_spec.specdb.db import FabricSpecDatabase
from fabric_spec.specdb.extraction import VisionExtractor


def _project(tmp_path, monkeypatch) -> None:
    (tmp_path / "README.md").write_text("marker", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    for name in ("FABRIC_SPEC_DB_PATH", "FABRIC_SPEC_GENERATION", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_parser_subcommands():
    parser = cli_main.build_parser()

    ns = parser.parse_args(["analyze", "--image", "sheet.jpg", "--generation", "flat", "--commit"])
    assert (ns.command, ns.image, ns.generation, ns.commit) == ("analyze", "sheet.jpg", "flat", True)

    ns = parser.parse_args(["serve", "--allow-origin", "*", "--api-only"])
    assert ns.port == 8001 and ns.allow_origins == ["*"] and ns.api_only

    with pytest.raises(SystemExit):
        parser.parse_args(["analyze", "--image", "x.jpg", "--generation", "v9"])


def test_init_creates_database(tmp_path, monkeypatch, capsys):
    _project(tmp_path, monkeypatch)

    assert cli_main.main(["init"]) == 0

    expected = os.path.join(str(tmp_path), "var", "specdb", "fabric_specs.sqlite3")
    assert os.path.isfile(expected)
    assert expected in capsys.readouterr().out


def test_lookup_errors_exit_with_one(tmp_path, monkeypatch):
    _project(tmp_path, monkeypatch)
    assert cli_main.main(["lookup", "--code", "   "]) == 1


def test_analyze_with_commit_stores_record(tmp_path, monkeypatch):
    _project(tmp_path, monkeypatch)
    (tmp_path / "sheet.png").write_bytes(b"\x89PNG\r\n\x1a\n")
    monkeypatch.setattr(
        VisionExtractor,
        "request_text",
        lambda self, data_url, generation: '{"art_no": "A1", "mill_name": "M", "spec": "S"}',
    )

    assert cli_main.main(["analyze", "--image", "sheet.png", "--generation", "flat", "--commit"]) == 0
    # Same sheet again hits the duplicate gate.
    assert cli_main.main(["analyze", "--image", "sheet.png", "--generation", "flat", "--commit"]) == 1

    db = FabricSpecDatabase(root_dir=str(tmp_path))
    assert db.count_records() == 1
    assert db.find_by_key("a1_m_s") is not None
    assert db.count_pending() == 0


def test_analyze_without_commit_prints_review_and_stores_nothing(tmp_path, monkeypatch, capsys):
    _project(tmp_path, monkeypatch)
    (tmp_path / "sheet.png").write_bytes(b"\x89PNG\r\n\x1a\n")
    monkeypatch.setattr(
        VisionExtractor,
        "request_text",
        lambda self, data_url, generation: '{"art_no": "A1", "mill_name": "M", "spec": "S"}',
    )

    assert cli_main.main(["analyze", "--image", "sheet.png", "--generation", "flat"]) == 0

    assert '"key": "a1_m_s"' in capsys.readouterr().out
    db = FabricSpecDatabase(root_dir=str(tmp_path))
    assert db.count_pending() == 0
    assert db.count_records() == 0
