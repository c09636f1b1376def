"""Tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from notesage.cli import main
from notesage.core.services import build_services


@pytest.fixture
def fake_services(tmp_project: Path, settings, store, embedder, provider):
    services = build_services(tmp_project, settings=settings, store=store, embedder=embedder, provider=provider)
    with patch("notesage.core.services.build_services", return_value=services):
        yield services


class TestInit:
    def test_creates_project(self, tmp_path: Path, capsys):
        assert main(["init", str(tmp_path / "proj")]) == 0
        project = tmp_path / "proj"
        assert (project / "NOTESAGE.md").exists()
        assert (project / "notes").is_dir()
        settings = json.loads((project / ".notesage" / "settings.json").read_text())
        assert settings["reindex_policy"] == "path"
        assert "Initialized" in capsys.readouterr().out

    def test_keeps_existing_files(self, tmp_project: Path):
        (tmp_project / "NOTESAGE.md").write_text("mine\n")
        assert main(["init", str(tmp_project)]) == 0
        assert (tmp_project / "NOTESAGE.md").read_text() == "mine\n"


class TestNoProject:
    def test_index_outside_project(self, tmp_path: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main(["index"]) == 1
        assert "No NoteSage project" in capsys.readouterr().err

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out


class TestIndex:
    def test_index_reports_counts(self, tmp_project: Path, fake_services, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["index"]) == 0
        assert "2 changed, 0 unchanged" in capsys.readouterr().out

        assert main(["index", "--policy", "checksum"]) == 0
        assert "0 changed, 2 unchanged" in capsys.readouterr().out

    def test_prune(self, tmp_project: Path, fake_services, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        main(["index"])
        (tmp_project / "notes" / "gears.md").unlink()
        capsys.readouterr()

        assert main(["index", "--prune"]) == 0
        assert "1 removed" in capsys.readouterr().out
        assert fake_services.store.list_paths() == ["journal/monday.md"]


class TestAskAndSearch:
    def test_ask_prints_reply(self, tmp_project: Path, fake_services, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        fake_services.provider.replies = ["Gears mesh.", "Title", "Description."]
        assert main(["ask", "How do gears work?"]) == 0
        assert "Gears mesh." in capsys.readouterr().out

        conversation = fake_services.store.most_recent_conversation()
        assert len(fake_services.store.all_turns(conversation.id)) == 2

    def test_ask_new_conversation(self, tmp_project: Path, fake_services, monkeypatch):
        monkeypatch.chdir(tmp_project)
        first = fake_services.store.create_conversation().unwrap()
        assert main(["ask", "--new", "hello"]) == 0
        assert fake_services.store.most_recent_conversation().id != first.id

    def test_ask_unknown_conversation(self, tmp_project: Path, fake_services, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["ask", "--conversation", "99", "hello"]) == 1
        assert "No conversation 99" in capsys.readouterr().err

    def test_search_without_matches(self, tmp_project: Path, fake_services, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["search", "anything"]) == 0
        assert "No matching notes." in capsys.readouterr().out


class TestConfig:
    def test_show(self, tmp_project: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "show"]) == 0
        assert json.loads(capsys.readouterr().out)["provider"] == "ollama"

    def test_get(self, tmp_project: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "get", "model"]) == 0
        assert capsys.readouterr().out.strip() == "llama3"

    def test_set_typed_value(self, tmp_project: Path, monkeypatch):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "set", "match_count", "5"]) == 0
        data = json.loads((tmp_project / ".notesage" / "settings.json").read_text())
        assert data["match_count"] == 5

    def test_set_float(self, tmp_project: Path, monkeypatch):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "set", "similarity_threshold", "0.5"]) == 0
        data = json.loads((tmp_project / ".notesage" / "settings.json").read_text())
        assert data["similarity_threshold"] == 0.5

    def test_set_invalid_value(self, tmp_project: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "set", "reindex_policy", "mtime"]) == 1
        assert "reindex_policy" in capsys.readouterr().err

    def test_set_non_numeric(self, tmp_project: Path, monkeypatch):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "set", "match_count", "many"]) == 1

    def test_unknown_key(self, tmp_project: Path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_project)
        assert main(["config", "get", "printer"]) == 1
        assert "Unknown key" in capsys.readouterr().err
