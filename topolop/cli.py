"""Command line entry point.

Exit codes: 0 when no issue reaches the threshold, 1 when at least one
does, 2 for invalid invocation or configuration.
"""

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Sequence

from . import __version__
from .adapters.catalog import AdapterCatalog
from .config import TopolopConfig, find_config, load_config
from .core.exceptions import ConfigurationError
from .logging_config import configure_logging
from .models.enums import Severity
from .models.report import UnifiedReport
from .pipeline import analyze_project, exit_code_for
from .serialization import report_to_dict
from .visualization import CityMapper

EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

# Credentials are only read from the environment here, never in the core
CREDENTIAL_ENV = {
    "datadog": {
        "api_key": "TOPOLOP_DATADOG_API_KEY",
        "app_key": "TOPOLOP_DATADOG_APP_KEY",
    },
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="topolop",
        description="Run static analysis, dependency and APM tools and correlate their findings.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Project root to analyze (default: .)")
    parser.add_argument(
        "--threshold",
        choices=[s.value for s in Severity],
        type=str.lower,
        help="Minimum severity that makes the run exit with 1 (default: high)",
    )
    parser.add_argument("--format", dest="output_format", choices=["table", "summary", "json"])
    parser.add_argument("--timeout", dest="timeout_ms", type=int, help="Per-adapter timeout in milliseconds")
    parser.add_argument(
        "--include-dev",
        action="store_true",
        default=None,
        help="Include dev-only dependencies in dependency scans",
    )
    parser.add_argument("--adapters", help="Comma-separated adapter names to run (default: all)")
    parser.add_argument("--config", help="Path to topolop.toml")
    parser.add_argument(
        "--write-report",
        action="store_true",
        default=None,
        help="Write topolop-results.json into the project root",
    )
    parser.add_argument("--city", action="store_true", help="Include the city model in JSON output")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", help="Also write JSON-lines logs to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _adapter_names(value: str | None, catalog: AdapterCatalog) -> list[str] | None:
    if value is None:
        return None
    names = [name.strip() for name in value.split(",") if name.strip()]
    unknown = [name for name in names if name not in catalog.names()]
    if unknown:
        raise ConfigurationError(
            f"Unknown adapter(s): {', '.join(unknown)}. Available: {', '.join(catalog.names())}"
        )
    return names


def _apply_credentials(config: TopolopConfig, environ: dict[str, str]) -> None:
    for adapter, variables in CREDENTIAL_ENV.items():
        for option, variable in variables.items():
            value = environ.get(variable)
            if value and not config.adapters.get(adapter, {}).get(option):
                config.adapters.setdefault(adapter, {})[option] = value


def build_config(args: argparse.Namespace, catalog: AdapterCatalog, environ: dict[str, str]) -> TopolopConfig:
    """Merge the config file, CLI flags and environment credentials.

    Raises:
        ConfigurationError: On an unreadable file, invalid values or unknown adapters
    """
    config_path = args.config or find_config(args.path or ".")
    config = load_config(
        config_path,
        project_root=args.path,
        threshold=args.threshold,
        output_format=args.output_format,
        timeout_ms=args.timeout_ms,
        include_dev=args.include_dev,
        enabled_adapters=_adapter_names(args.adapters, catalog),
        write_report=args.write_report,
    )
    _apply_credentials(config, environ)
    return config


def format_table(report: UnifiedReport) -> str:
    if not report.metrics:
        return "No issues found."

    header = f"{'FILE':<48} {'ISSUES':>6} {'CRIT':>5} {'HIGH':>5} {'MED':>5} {'LOW':>5} {'INFO':>5} {'HOTSPOT':>8}  TOOLS"
    lines = [header, "-" * len(header)]
    ranked = sorted(report.metrics.values(), key=lambda m: (-m.hotspot_score, m.canonical_path))
    for metrics in ranked:
        dist = metrics.severity_distribution
        path = metrics.canonical_path
        if len(path) > 48:
            path = "..." + path[-45:]
        lines.append(
            f"{path:<48} {metrics.issue_count:>6} {dist['critical']:>5} {dist['high']:>5} "
            f"{dist['medium']:>5} {dist['low']:>5} {dist['info']:>5} {metrics.hotspot_score:>8.1f}  "
            f"{','.join(metrics.tool_coverage)}"
        )
    lines.append("")
    lines.append(f"{len(report.issues)} issues in {len(report.metrics)} files, {len(report.correlations)} correlation groups")
    return "\n".join(lines)


def format_summary(report: UnifiedReport) -> str:
    counts = {s.value: 0 for s in Severity}
    for issue in report.issues:
        counts[issue.severity.value] += 1

    lines = [f"Project: {report.project_root}", f"Issues: {len(report.issues)}"]
    for severity in Severity:
        lines.append(f"  {severity.value:<9} {counts[severity.value]}")
    lines.append(f"Correlation groups: {len(report.correlations)}")
    lines.append("Adapters:")
    for name, record in report.adapters.items():
        line = f"  {name:<10} {record.outcome.value:<10} {record.accepted_count} issues"
        if record.message:
            line += f" ({record.message})"
        lines.append(line)
    return "\n".join(lines)


def format_json(report: UnifiedReport, config: TopolopConfig, include_city: bool) -> str:
    data = report_to_dict(report)
    if include_city:
        city = CityMapper(config.district_rule, config.max_building_height).map(report)
        data["city"] = city.model_dump(mode="json", by_alias=True)
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    catalog = AdapterCatalog()

    configure_logging(args.log_file, args.log_level)

    try:
        config = build_config(args, catalog, dict(os.environ))
    except ConfigurationError as e:
        print(f"topolop: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        report = asyncio.run(analyze_project(config, catalog=catalog))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED

    if config.output_format == "json":
        print(format_json(report, config, args.city))
    elif config.output_format == "summary":
        print(format_summary(report))
    else:
        print(format_table(report))

    return exit_code_for(report, config.threshold)


if __name__ == "__main__":
    sys.exit(main())
