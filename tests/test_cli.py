"""Tests for the click command line."""

import json

from click.testing import CliRunner

from main import cli


def _invoke(*args):
    return CliRunner().invoke(cli, ["--log-level", "ERROR", *args])


def test_fixed_count_json():
    result = _invoke("test", "example.com", "--transport", "fake", "--seed", "1",
                     "--count", "3", "--interval", "100", "--json")

    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert summary["target"] == "example.com"
    assert summary["mode"] == "fixed"
    assert summary["stats"]["count"] == 3


def test_human_output():
    result = _invoke("test", "8.8.8.8", "--transport", "fake", "--seed", "2",
                     "--count", "2", "--interval", "100")

    assert result.exit_code == 0, result.output
    assert "Google DNS Primary" in result.stdout
    assert "Test #1" in result.stdout
    assert "Summary: 8.8.8.8" in result.stdout


def test_preset_fills_count():
    result = _invoke("test", "example.com", "--transport", "fake", "--seed", "1",
                     "--preset", "fast", "--interval", "100", "--json")

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["stats"]["count"] == 5


def test_rejected_interval_exits_with_error():
    result = _invoke("test", "example.com", "--transport", "fake", "--count", "2", "--interval", "10")

    assert result.exit_code == 2
    assert "interval_ms must be at least 100" in result.output


def test_compare_json():
    result = _invoke("compare", "a.example", "b.example", "--tests", "2",
                     "--transport", "fake", "--seed", "3", "--json")

    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["sortKey"] == "avg"
    assert len(report["results"]) + report["excludedCount"] == 2


def test_compare_rejects_unknown_sort_key():
    result = _invoke("compare", "a.example", "--sort", "bogus", "--transport", "fake")
    assert result.exit_code != 0


def test_zero_count_is_rejected():
    result = _invoke("test", "example.com", "--transport", "fake", "--count", "0", "--interval", "100")

    assert result.exit_code == 2
    assert "count" in result.output
