"""Tests for the cookstyle runner."""

import subprocess

import pytest
from unittest.mock import patch, MagicMock

from chef_analyze.collectors.cookstyle import CookstyleRunner
from chef_analyze.errors import CookstyleError


def _completed(returncode=0, stdout="", stderr=""):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


class TestCookstyleRunner:
    def test_default_options(self):
        runner = CookstyleRunner()
        assert runner.binary == "cookstyle"
        assert runner.opts == ["--format", "json"]

    @patch("subprocess.run")
    def test_run_parses_offenses(self, mock_run, sample_cookstyle_json, tmp_path):
        mock_run.return_value = _completed(1, sample_cookstyle_json)

        result = CookstyleRunner().run(tmp_path)

        assert [f.path for f in result.files] == ["recipes/default.rb", "metadata.rb"]
        offenses = result.files[0].offenses
        assert offenses[0].cop_name == "ChefDeprecations/NodeSet"
        assert offenses[0].correctable is True
        assert offenses[1].correctable is False
        assert result.metadata["rubocop_version"] == "0.75.1"

        args, kwargs = mock_run.call_args
        assert args[0] == ["cookstyle", "--format", "json"]
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["timeout"] == 600

    @patch("subprocess.run")
    def test_clean_cookbook(self, mock_run, tmp_path):
        mock_run.return_value = _completed(0, '{"files": [{"path": "metadata.rb", "offenses": []}]}')
        result = CookstyleRunner().run(tmp_path)
        assert result.files[0].offenses == []

    @patch("subprocess.run")
    def test_unexpected_exit_status(self, mock_run, tmp_path):
        mock_run.return_value = _completed(2, "", "invalid option --bogus")

        with pytest.raises(CookstyleError) as exc:
            CookstyleRunner(opts=["--bogus"]).run(tmp_path)
        assert "exited with status 2" in str(exc.value)
        assert "invalid option --bogus" in str(exc.value)

    @patch("subprocess.run")
    def test_binary_missing(self, mock_run, tmp_path):
        mock_run.side_effect = FileNotFoundError("cookstyle")

        with pytest.raises(CookstyleError) as exc:
            CookstyleRunner().run(tmp_path)
        assert "unable to run cookstyle" in str(exc.value)

    @patch("subprocess.run")
    def test_timeout(self, mock_run, tmp_path):
        mock_run.side_effect = subprocess.TimeoutExpired(["cookstyle"], 5)

        with pytest.raises(CookstyleError) as exc:
            CookstyleRunner(timeout=5).run(tmp_path)
        assert "timed out after 5s" in str(exc.value)

    @patch("subprocess.run")
    def test_unparseable_output(self, mock_run, tmp_path):
        mock_run.return_value = _completed(0, "Inspecting 3 files\n...")

        with pytest.raises(CookstyleError) as exc:
            CookstyleRunner().run(tmp_path)
        assert "unable to parse cookstyle output" in str(exc.value)

    @patch("subprocess.run")
    def test_is_available(self, mock_run):
        mock_run.return_value = _completed(0, "Cookstyle 6.2.9\n")
        assert CookstyleRunner().is_available() is True

        mock_run.side_effect = FileNotFoundError("cookstyle")
        assert CookstyleRunner().is_available() is False
