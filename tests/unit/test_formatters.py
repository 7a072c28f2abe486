"""Tests for report formatters."""

import json
from pathlib import Path

import pytest

from mythscan.config.settings import OutputFormat
from mythscan.models.analysis import CanonicalIssue, Severity
from mythscan.report.formatters import FORMATTERS, display_path, format_issues, issue_level


@pytest.fixture
def issues():
    return [
        CanonicalIssue(
            rule_id="SWC-101",
            severity=Severity.HIGH,
            file_path="/project/Token.sol",
            line=21,
            column=8,
            message="The arithmetic operator can underflow.",
            title="Integer Overflow and Underflow",
        ),
        CanonicalIssue(
            rule_id="SWC-103",
            severity=Severity.LOW,
            file_path="/project/Token.sol",
            line=0,
            column=0,
            message="A floating pragma is set <here>.",
        ),
    ]


class TestHelpers:
    """Test path display and levels."""

    def test_relative_to_base_dir(self):
        assert display_path("/project/lib/Owned.sol", Path("/project")) == "lib/Owned.sol"

    def test_outside_base_dir_unchanged(self):
        assert display_path("@openzeppelin/Ownable.sol", Path("/project")) == "@openzeppelin/Ownable.sol"

    def test_no_base_dir(self):
        assert display_path("/project/Token.sol") == "/project/Token.sol"

    def test_levels(self, issues):
        assert issue_level(issues[0]) == "error"
        assert issue_level(issues[1]) == "warning"


class TestFormats:
    """Test each output format."""

    def test_every_format_registered(self):
        assert set(FORMATTERS) == set(OutputFormat)

    def test_text(self, issues):
        output = format_issues(issues, OutputFormat.TEXT, base_dir=Path("/project"))

        assert "==== Integer Overflow and Underflow (SWC-101) ====" in output
        assert "Severity: High" in output
        assert "File: Token.sol" in output
        assert "Link: https://swcregistry.io/docs/SWC-101" in output
        assert "Location: line 21, column 8" in output
        assert "Location: unknown location" in output

    def test_stylish(self, issues):
        output = format_issues(issues, "stylish")

        lines = output.splitlines()
        assert lines[0] == "/project/Token.sol"
        assert lines[1].split()[:2] == ["21:8", "error"]
        assert lines[2].split()[:2] == ["0:0", "warning"]
        assert lines[-1] == "✖ 2 problems (1 error, 1 warning)"

    def test_compact(self, issues):
        output = format_issues(issues, "compact", base_dir=Path("/project"))

        assert output.splitlines()[0] == (
            "Token.sol: line 21, col 8, Error - The arithmetic operator can underflow. (SWC-101)"
        )
        assert output.endswith("2 problems")

    def test_table(self, issues):
        output = format_issues(issues, "table")

        assert "SWC-101" in output
        assert "HIGH" in output
        assert "Message" in output

    def test_table_keeps_brackets_literal(self):
        issue = CanonicalIssue(
            rule_id="SWC-101",
            severity=Severity.MEDIUM,
            file_path="/project/Token.sol",
            line=8,
            column=8,
            message="balances[msg.sender] can underflow",
        )

        assert "balances[msg.sender] can underflow" in format_issues([issue], "table")

    def test_html_escapes_messages(self, issues):
        output = format_issues(issues, "html")

        assert output.startswith("<!DOCTYPE html>")
        assert "&lt;here&gt;" in output
        assert "<here>" not in output
        assert '<a href="https://swcregistry.io/docs/SWC-101">SWC-101</a>' in output

    def test_json(self, issues):
        data = json.loads(format_issues(issues, OutputFormat.JSON, base_dir=Path("/project")))

        assert [item["rule_id"] for item in data] == ["SWC-101", "SWC-103"]
        assert data[0]["file_path"] == "Token.sol"
        assert data[0]["severity"] == "high"
        assert data[0]["line"] == 21

    def test_unknown_format(self, issues):
        with pytest.raises(ValueError):
            format_issues(issues, "xml")
