"""Tests for the persistence layer."""

import json
import stat
from datetime import datetime
from pathlib import Path

import pytest

from chef_analyze.data.persistence import (
    ObjectWriter,
    ReportStore,
    get_cache_dir,
    report_timestamp,
)
from chef_analyze.errors import ObjectWriteError


def _mode(path):
    return stat.S_IMODE(path.stat().st_mode)


class TestObjectWriter:
    def test_write_object(self, temp_data_dir):
        writer = ObjectWriter(temp_data_dir / "repo")
        path = writer.write_object("nodes", "node1", {"name": "node1", "run_list": []})

        assert path == temp_data_dir / "repo" / "nodes" / "node1.json"
        assert json.loads(path.read_text()) == {"name": "node1", "run_list": []}
        assert path.read_text().endswith("}\n")
        assert _mode(path) == 0o600
        assert _mode(path.parent) == 0o700

    def test_overwrite_existing(self, temp_data_dir):
        writer = ObjectWriter(temp_data_dir)
        writer.write_object("roles", "web", {"v": 1})
        path = writer.write_object("roles", "web", {"v": 2})
        assert json.loads(path.read_text()) == {"v": 2}
        assert [p.name for p in path.parent.iterdir()] == ["web.json"]

    def test_unencodable_object(self, temp_data_dir):
        writer = ObjectWriter(temp_data_dir)
        with pytest.raises(ObjectWriteError) as exc:
            writer.write_object("nodes", "bad", {"when": object()})
        assert "unable to encode nodes object 'bad'" in str(exc.value)
        assert not (temp_data_dir / "nodes" / "bad.json").exists()

    def test_directory_creation_failure(self, temp_data_dir):
        (temp_data_dir / "nodes").write_text("not a directory")
        writer = ObjectWriter(temp_data_dir)
        with pytest.raises(ObjectWriteError) as exc:
            writer.write_object("nodes", "node1", {})
        assert "unable to create directory" in str(exc.value)

    def test_write_file(self, temp_data_dir):
        writer = ObjectWriter(temp_data_dir)
        path = writer.write_file("kitchen.yml", "---\n")
        assert path.read_text() == "---\n"
        assert _mode(path) == 0o600


class TestReportStore:
    def test_layout(self, temp_data_dir):
        store = ReportStore(temp_data_dir)

        report = store.save_report("cookbooks", "csv", "a,b\n", "20200101120000")
        errors = store.save_errors("cookbooks", " - foo (1.0): boom\n", "20200101120000")

        assert report == temp_data_dir / "reports" / "cookbooks-20200101120000.csv"
        assert errors == temp_data_dir / "errors" / "cookbooks-20200101120000.err"
        assert report.read_text() == "a,b\n"

    def test_download_dir(self, temp_data_dir):
        store = ReportStore(temp_data_dir)
        assert store.download_dir("apache2", "5.0.1") == temp_data_dir / "cookbooks" / "apache2-5.0.1"
        assert store.download_dir("apache2", "5.0.1", "abc") == temp_data_dir / "cookbook_artifacts" / "apache2-abc"

    def test_cache_dir_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CHEF_ANALYZE_CACHE_DIR", str(tmp_path))
        assert get_cache_dir() == tmp_path
        assert ReportStore().cache_dir == tmp_path
        assert get_cache_dir("/explicit") == Path("/explicit")

    def test_default_cache_dir(self, monkeypatch):
        monkeypatch.delenv("CHEF_ANALYZE_CACHE_DIR", raising=False)
        assert str(get_cache_dir()) == ".analyze-cache"

    def test_report_timestamp(self):
        assert report_timestamp(datetime(2020, 1, 2, 3, 4, 5)) == "20200102030405"
