import json
from unittest.mock import AsyncMock, patch

import pytest

from conftest import ingest, report_from
from topolop.cli import build_parser, format_summary, format_table, main
from topolop.models.enums import Severity


@pytest.fixture
def report(run):
    ingest(run, "A", "src/a.c", "A1", line=10, severity="high", cross_tool_patterns={"memory_safety"})
    ingest(run, "B", "src/a.c", "B1", line=12, severity="medium", cross_tool_patterns={"memory_safety"})
    return report_from(run)


@pytest.fixture
def analyze(report):
    with patch("topolop.cli.configure_logging"), \
         patch("topolop.cli.analyze_project", new=AsyncMock(return_value=report)) as mock_analyze:
        yield mock_analyze


class TestMain:
    def test_exit_one_when_threshold_reached(self, analyze, tmp_path, capsys):
        assert main([str(tmp_path)]) == 1
        assert "src/a.c" in capsys.readouterr().out

    def test_exit_zero_below_threshold(self, analyze, tmp_path):
        assert main([str(tmp_path), "--threshold", "CRITICAL"]) == 0
        config = analyze.call_args.args[0]
        assert config.threshold == Severity.CRITICAL
        assert config.project_root == str(tmp_path)

    def test_flags_reach_config(self, analyze, tmp_path):
        main([str(tmp_path), "--timeout", "5000", "--include-dev", "--adapters", "bandit, osv", "--write-report"])
        config = analyze.call_args.args[0]
        assert config.timeout_ms == 5000
        assert config.include_dev is True
        assert config.enabled_adapters == ["bandit", "osv"]
        assert config.write_report is True

    def test_config_file_values(self, analyze, tmp_path):
        (tmp_path / "topolop.toml").write_text('[topolop]\nthreshold = "low"\ntimeout_ms = 1234\n')
        main([str(tmp_path), "--timeout", "99"])
        config = analyze.call_args.args[0]
        assert config.threshold == Severity.LOW
        assert config.timeout_ms == 99

    def test_unknown_adapter_is_usage_error(self, analyze, tmp_path, capsys):
        assert main([str(tmp_path), "--adapters", "eslint"]) == 2
        assert "Unknown adapter(s): eslint" in capsys.readouterr().err
        analyze.assert_not_called()

    def test_broken_config_file_is_usage_error(self, analyze, tmp_path):
        config_file = tmp_path / "broken.toml"
        config_file.write_text("threshold = [")
        assert main([str(tmp_path), "--config", str(config_file)]) == 2

    def test_invalid_threshold_exits_two(self, analyze):
        with pytest.raises(SystemExit) as exc_info:
            main(["--threshold", "severe"])
        assert exc_info.value.code == 2

    def test_json_output_with_city(self, analyze, tmp_path, capsys):
        main([str(tmp_path), "--format", "json", "--city"])
        data = json.loads(capsys.readouterr().out)

        assert data["schemaVersion"] == "1.0"
        assert len(data["issues"]) == 2
        [building] = data["city"]["buildings"]
        assert building["canonicalPath"] == "src/a.c"
        assert building["flags"]["hazmatBeacon"] is True

    def test_json_output_without_city(self, analyze, tmp_path, capsys):
        main([str(tmp_path), "--format", "json"])
        assert "city" not in json.loads(capsys.readouterr().out)

    def test_credentials_from_environment(self, analyze, tmp_path, monkeypatch):
        monkeypatch.setenv("TOPOLOP_DATADOG_API_KEY", "env-api")
        monkeypatch.setenv("TOPOLOP_DATADOG_APP_KEY", "env-app")
        (tmp_path / "topolop.toml").write_text('[topolop.adapters.datadog]\napi_key = "file-api"\n')

        main([str(tmp_path)])
        options = analyze.call_args.args[0].adapter_options("datadog")
        assert options["api_key"] == "file-api"
        assert options["app_key"] == "env-app"

    def test_keyboard_interrupt(self, tmp_path):
        with patch("topolop.cli.configure_logging"), \
             patch("topolop.cli.analyze_project", new=AsyncMock(side_effect=KeyboardInterrupt)):
            assert main([str(tmp_path)]) == 130


class TestFormatters:
    def test_table(self, report):
        lines = format_table(report).splitlines()
        assert lines[0].startswith("FILE")
        assert lines[2].startswith("src/a.c")
        assert lines[-1] == "2 issues in 1 files, 1 correlation groups"

    def test_table_without_issues(self, run):
        assert format_table(report_from(run)) == "No issues found."

    def test_summary(self, report):
        summary = format_summary(report)
        assert "Issues: 2" in summary
        assert "  high      1" in summary

    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.path is None
        assert args.include_dev is None
        assert args.log_level == "WARNING"
