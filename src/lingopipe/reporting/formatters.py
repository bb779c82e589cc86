"""Output formatters for run reports."""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from lingopipe.reporting.report import RunReport


def to_json(report: RunReport, indent: int = 2) -> str:
    """Format report as JSON string."""
    return json.dumps(report.to_dict(), indent=indent, ensure_ascii=False, default=str)


def to_markdown(report: RunReport) -> str:
    """Format report as Markdown."""
    lines = [
        "# Translation Report",
        "",
        "| Field | Value |",
        "|-------|-------|",
        f"| Status | {report.status} |",
        f"| Source | {report.source_locale} |",
        f"| Targets | {', '.join(report.target_locales)} |",
        f"| Provider | {report.provider} |",
        f"| Texts | {report.total_texts} |",
        f"| Sent for translation | {report.texts_sent} |",
        f"| Chunks | {report.chunks} |",
        f"| Tokens | {report.token_usage.get('total', 0)} |",
        f"| Duration | {report.duration_seconds:.1f}s |",
    ]

    if report.translated:
        lines.extend([
            "",
            "## Locales",
            "",
            "| Locale | Translated | Added | Changed | Unchanged | Removed |",
            "|--------|------------|-------|---------|-----------|---------|",
        ])
        for locale in report.target_locales:
            d = report.diff.get(locale, {})
            lines.append(
                f"| {locale} | {report.translated.get(locale, 0)} "
                f"| {d.get('added', '-')} | {d.get('changed', '-')} "
                f"| {d.get('unchanged', '-')} | {d.get('removed', '-')} |"
            )

    for title, items in (("Errors", report.errors), ("Warnings", report.warnings)):
        if items:
            lines.extend(["", f"## {title}", ""])
            lines.extend(f"- {item}" for item in items)

    return "\n".join(lines) + "\n"


def to_csv(report: RunReport) -> str:
    """Format report as CSV, one row per target locale."""
    output = io.StringIO()
    fieldnames = [
        "locale", "status", "translated", "added", "changed", "unchanged", "removed",
        "input_tokens", "output_tokens", "errors", "warnings",
    ]
    writer = csv.DictWriter(output, fieldnames=fieldnames)
    writer.writeheader()
    for locale in report.target_locales:
        d = report.diff.get(locale, {})
        writer.writerow({
            "locale": locale,
            "status": report.status,
            "translated": report.translated.get(locale, 0),
            "added": d.get("added", ""),
            "changed": d.get("changed", ""),
            "unchanged": d.get("unchanged", ""),
            "removed": d.get("removed", ""),
            "input_tokens": report.token_usage.get("input", 0),
            "output_tokens": report.token_usage.get("output", 0),
            "errors": "; ".join(report.errors),
            "warnings": "; ".join(report.warnings),
        })
    return output.getvalue()


def save_report(report: RunReport, path: str | Path) -> None:
    """Save report to file, auto-detecting format from extension."""
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in (".md", ".markdown"):
        content = to_markdown(report)
    elif suffix == ".csv":
        content = to_csv(report)
    else:
        content = to_json(report)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
