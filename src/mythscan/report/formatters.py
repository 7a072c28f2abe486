"""Render canonical issues in the supported output formats."""

import io
import json
from html import escape
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from rich.console import Console
from rich.markup import escape as escape_markup
from rich.table import Table

from mythscan.config.settings import OutputFormat
from mythscan.models.analysis import CanonicalIssue, Severity


SWC_REGISTRY_URL = "https://swcregistry.io/docs/"

Formatter = Callable[[List[CanonicalIssue], Optional[Path]], str]

_SEVERITY_STYLES = {
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
    Severity.UNKNOWN: "dim",
}


def display_path(path: str, base_dir: Optional[Path] = None) -> str:
    """Path relative to `base_dir` when the file lies below it."""
    if base_dir is None:
        return path
    try:
        return Path(path).relative_to(base_dir).as_posix()
    except ValueError:
        return path


def issue_level(issue: CanonicalIssue) -> str:
    """Lint-style level of an issue."""
    return "error" if issue.severity == Severity.HIGH else "warning"


def _location(issue: CanonicalIssue) -> str:
    if not issue.is_located:
        return "unknown location"
    return f"line {issue.line}, column {issue.column}"


def _summary(issues: List[CanonicalIssue]) -> str:
    errors = sum(1 for i in issues if issue_level(i) == "error")
    warnings = len(issues) - errors
    noun = "problem" if len(issues) == 1 else "problems"
    return f"✖ {len(issues)} {noun} ({errors} {'error' if errors == 1 else 'errors'}, " \
           f"{warnings} {'warning' if warnings == 1 else 'warnings'})"


def format_text(issues: List[CanonicalIssue], base_dir: Optional[Path] = None) -> str:
    blocks = []
    for issue in issues:
        title = f"{issue.title} ({issue.rule_id})" if issue.title else issue.rule_id
        lines = [
            f"==== {title} ====",
            f"Severity: {issue.severity.value.capitalize()}",
            f"File: {display_path(issue.file_path, base_dir)}",
        ]
        if issue.rule_id.startswith("SWC-"):
            lines.append(f"Link: {SWC_REGISTRY_URL}{issue.rule_id}")
        lines.extend([
            "-" * 20,
            issue.message,
            "-" * 20,
            f"Location: {_location(issue)}",
        ])
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def format_stylish(issues: List[CanonicalIssue], base_dir: Optional[Path] = None) -> str:
    by_file: Dict[str, List[CanonicalIssue]] = {}
    for issue in issues:
        by_file.setdefault(issue.file_path, []).append(issue)

    lines = []
    for file_path, file_issues in by_file.items():
        lines.append(display_path(file_path, base_dir))
        for issue in file_issues:
            lines.append(f"  {issue.line}:{issue.column}  {issue_level(issue):7}  {issue.message}  {issue.rule_id}")
        lines.append("")
    lines.append(_summary(issues))
    return "\n".join(lines)


def format_compact(issues: List[CanonicalIssue], base_dir: Optional[Path] = None) -> str:
    lines = [
        f"{display_path(i.file_path, base_dir)}: line {i.line}, col {i.column}, "
        f"{issue_level(i).capitalize()} - {i.message} ({i.rule_id})"
        for i in issues
    ]
    lines.extend(["", f"{len(issues)} {'problem' if len(issues) == 1 else 'problems'}"])
    return "\n".join(lines)


def format_table(issues: List[CanonicalIssue], base_dir: Optional[Path] = None) -> str:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Severity", justify="center")
    table.add_column("Rule", style="cyan")
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Column", justify="right")
    table.add_column("Message")

    for issue in issues:
        color = _SEVERITY_STYLES.get(issue.severity, "white")
        table.add_row(
            f"[{color}]{issue.severity.value.upper()}[/{color}]",
            escape_markup(issue.rule_id),
            escape_markup(display_path(issue.file_path, base_dir)),
            str(issue.line),
            str(issue.column),
            escape_markup(issue.message),
        )

    console = Console(file=io.StringIO(), width=160, color_system=None)
    console.print(table)
    return console.file.getvalue().rstrip("\n")


_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>MythScan Report</title>
<style>
body {{ font-family: sans-serif; margin: 2em; }}
table {{ border-collapse: collapse; width: 100%; }}
th, td {{ border: 1px solid #ccc; padding: 4px 8px; text-align: left; vertical-align: top; }}
th {{ background: #eee; }}
.high {{ color: #c00; }} .medium {{ color: #c80; }} .low {{ color: #06c; }} .unknown {{ color: #888; }}
</style>
</head>
<body>
<h1>MythScan Report</h1>
<p>{summary}</p>
<table>
<tr><th>Severity</th><th>Rule</th><th>File</th><th>Line</th><th>Column</th><th>Message</th></tr>
{rows}
</table>
</body>
</html>"""


def format_html(issues: List[CanonicalIssue], base_dir: Optional[Path] = None) -> str:
    rows = []
    for issue in issues:
        rule = escape(issue.rule_id)
        if issue.rule_id.startswith("SWC-"):
            rule = f'<a href="{SWC_REGISTRY_URL}{rule}">{rule}</a>'
        rows.append(
            f'<tr class="{issue.severity.value}">'
            f'<td class="{issue.severity.value}">{issue.severity.value.upper()}</td>'
            f"<td>{rule}</td>"
            f"<td>{escape(display_path(issue.file_path, base_dir))}</td>"
            f"<td>{issue.line}</td><td>{issue.column}</td>"
            f"<td>{escape(issue.message)}</td></tr>"
        )
    return _HTML_TEMPLATE.format(summary=escape(_summary(issues)), rows="\n".join(rows))


def format_json(issues: List[CanonicalIssue], base_dir: Optional[Path] = None) -> str:
    data = []
    for issue in issues:
        item = issue.model_dump(mode="json")
        item["file_path"] = display_path(issue.file_path, base_dir)
        data.append(item)
    return json.dumps(data, indent=2)


FORMATTERS: Dict[OutputFormat, Formatter] = {
    OutputFormat.TEXT: format_text,
    OutputFormat.STYLISH: format_stylish,
    OutputFormat.COMPACT: format_compact,
    OutputFormat.TABLE: format_table,
    OutputFormat.HTML: format_html,
    OutputFormat.JSON: format_json,
}


def format_issues(
    issues: List[CanonicalIssue],
    output_format: Union[OutputFormat, str] = OutputFormat.TEXT,
    base_dir: Optional[Path] = None,
) -> str:
    """Render issues in one of the supported formats."""
    return FORMATTERS[OutputFormat(output_format)](issues, base_dir)
