"""Tests for output formatting and the CLI clone progress sink."""

import json

import pytest
import yaml

from repokeeper.domain.progress import CLONE_COMPLETE, CLONE_PROGRESS
from repokeeper.format_utils import flatten_dict, format_output, get_format_from_env
from repokeeper.progress import CloneProgressSink, ProgressReporter, format_bytes

RECORDS = [
    {"id": 1, "name": "game", "gameVersions": ["dev-1.0", "qa-0.9"]},
    {"id": 2, "name": "tools", "gameVersions": []},
]


class TestFormatOutput:
    def test_jsonl(self):
        lines = list(format_output(iter(RECORDS), "jsonl"))
        assert [json.loads(line) for line in lines] == RECORDS

    def test_json(self):
        (text,) = format_output(iter(RECORDS), "json")
        assert json.loads(text) == RECORDS

    def test_yaml(self):
        (text,) = format_output(iter(RECORDS), "yaml")
        assert yaml.safe_load(text) == RECORDS

    def test_csv_flattens_lists(self):
        (text,) = format_output(iter(RECORDS), "csv")
        assert text.splitlines() == [
            "id,name,gameVersions",
            '1,game,"dev-1.0, qa-0.9"',
            "2,tools,",
        ]

    def test_tsv_selected_fields(self):
        (text,) = format_output(iter(RECORDS), "tsv", ["name", "id"])
        assert text.splitlines() == ["name\tid", "game\t1", "tools\t2"]

    def test_empty_csv(self):
        assert list(format_output(iter([]), "csv")) == []

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            list(format_output(iter(RECORDS), "xml"))

    def test_flatten_nested(self):
        assert flatten_dict({"a": {"b": 1}, "c": [{"x": 1}]}) == {"a.b": 1, "c_count": 1}

    def test_format_from_env(self, monkeypatch):
        monkeypatch.setenv("REPOKEEPER_FORMAT", "YAML")
        assert get_format_from_env() == "yaml"
        monkeypatch.setenv("REPOKEEPER_FORMAT", "xml")
        assert get_format_from_env() == "jsonl"


def test_format_bytes():
    assert format_bytes(512) == "512 B"
    assert format_bytes(1536) == "1.5 KiB"
    assert format_bytes(3 * 1024 ** 3) == "3.0 GiB"


class TestCloneProgressSink:
    def test_renders_progress_and_completion(self, capsys):
        reporter = ProgressReporter(enabled=True, use_unicode=False, use_colors=False)
        sink = CloneProgressSink(reporter)

        sink.emit(CLONE_PROGRESS, {"repoName": "game", "percent": 0, "stageMessage": "Starting..."})
        sink.emit(CLONE_PROGRESS, {
            "repoName": "game",
            "percent": 32,
            "stageMessage": "Receiving objects...",
            "receivedObjects": 450,
            "totalObjects": 1000,
            "receivedBytes": 2048,
            "speed": "2.40 MiB/s",
        })
        sink.emit(CLONE_COMPLETE, {"repoName": "game", "success": True})

        err = capsys.readouterr().err
        assert "Cloning game: 0% Starting..." in err
        assert "Receiving objects... (450/1000) 2.0 KiB | 2.40 MiB/s" in err
        assert "Cloned game" in err
        assert sink.completed["game"]["success"] is True
        assert sink.bars == {}

    def test_disabled_reporter_prints_nothing(self, capsys):
        sink = CloneProgressSink(ProgressReporter(enabled=False))
        sink.emit(CLONE_PROGRESS, {"repoName": "game", "percent": 50, "stageMessage": "Receiving objects..."})
        sink.emit(CLONE_COMPLETE, {"repoName": "game", "success": False, "errorMessage": "boom"})
        assert capsys.readouterr().err == ""
