"""Turn raw service findings into located, deduplicated issues."""

import logging
import re
from bisect import bisect_right
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from mythscan.models.analysis import CanonicalIssue, RawIssue


logger = logging.getLogger(__name__)

_SOURCE_RANGE_PATTERN = re.compile(r"^(\d+):(\d+):(-?\d+)$")
_INSTRUCTION_PATTERN = re.compile(r"^\d+$")


class SourceRange(NamedTuple):
    start: int
    length: int
    file_index: int


class Position(NamedTuple):
    file_path: str
    line: int
    column: int


def decompress_source_map(source_map: str) -> List[SourceRange]:
    """Expand a compressed solc source map into one range per instruction.

    Entries are `s:l:f:j:m` separated by `;`; an empty field repeats the
    value of the previous entry.
    """
    if not source_map:
        return []

    ranges = []
    start, length, file_index = 0, 0, -1
    for entry in source_map.split(";"):
        fields = entry.split(":")
        if len(fields) > 0 and fields[0]:
            start = int(fields[0])
        if len(fields) > 1 and fields[1]:
            length = int(fields[1])
        if len(fields) > 2 and fields[2]:
            file_index = int(fields[2])
        ranges.append(SourceRange(start, length, file_index))
    return ranges


class LineIndex:
    """Byte offset to (line, column) lookup for one source file."""

    def __init__(self, content: str):
        self.data = content.encode("utf-8")
        self.line_starts = [0]
        for index, byte in enumerate(self.data):
            if byte == 0x0A:
                self.line_starts.append(index + 1)

    def position(self, offset: int) -> Optional[Tuple[int, int]]:
        """1-based line and 0-based character column of a byte offset."""
        if offset < 0 or offset > len(self.data):
            return None
        line = bisect_right(self.line_starts, offset)
        line_start = self.line_starts[line - 1]
        column = len(self.data[line_start:offset].decode("utf-8", errors="replace"))
        return line, column


class IssueNormalizer:
    """Source-maps, deduplicates and orders the findings of one analysis.

    Issues are located through the artifact's source map against the
    ordered source list the request was built with. A location reference
    is either a `start:length:fileIndex` source range or the index of an
    instruction in the compressed source map. Issues whose location cannot
    be resolved are kept at line 0, column 0 of the entry file.
    """

    def __init__(
        self,
        source_map: str,
        source_list: Sequence[str],
        sources: Mapping[str, str],
        entry_path: str,
    ):
        self.source_list = list(source_list)
        self.sources = sources
        self.entry_path = entry_path
        self._source_map = source_map
        self._ranges: Optional[List[SourceRange]] = None
        self._line_indexes: Dict[str, LineIndex] = {}

    def normalize(self, raw_issues: Iterable[RawIssue]) -> List[CanonicalIssue]:
        """Ordered issues, one per (rule, file, line, column).

        The first issue seen for a key keeps its severity and message.
        Output is sorted by file, line and column; ties keep arrival order.
        """
        unique: Dict[Tuple[str, str, int, int], CanonicalIssue] = {}
        for raw in raw_issues:
            position = self.resolve(raw.location_ref)
            if position is None:
                logger.debug("Unresolvable location %r for %s", raw.location_ref, raw.rule_id)
                position = Position(self.entry_path, 0, 0)

            issue = CanonicalIssue(
                rule_id=raw.rule_id,
                severity=raw.severity,
                file_path=position.file_path,
                line=position.line,
                column=position.column,
                message=raw.message,
                title=raw.title,
            )
            if issue.key in unique:
                logger.debug("Dropping duplicate %s at %s:%d:%d", *issue.key)
                continue
            unique[issue.key] = issue

        return sorted(unique.values(), key=lambda i: (i.file_path, i.line, i.column))

    def resolve(self, location_ref: Optional[str]) -> Optional[Position]:
        """Concrete position of a location reference, or None."""
        source_range = self._source_range(location_ref)
        if source_range is None:
            return None
        if not 0 <= source_range.file_index < len(self.source_list):
            return None

        file_path = self.source_list[source_range.file_index]
        index = self._line_index(file_path)
        if index is None:
            return None
        position = index.position(source_range.start)
        if position is None:
            return None
        return Position(file_path, *position)

    def _source_range(self, location_ref: Optional[str]) -> Optional[SourceRange]:
        if not location_ref:
            return None
        location_ref = location_ref.strip()

        match = _SOURCE_RANGE_PATTERN.match(location_ref)
        if match:
            return SourceRange(int(match.group(1)), int(match.group(2)), int(match.group(3)))

        if _INSTRUCTION_PATTERN.match(location_ref):
            if self._ranges is None:
                self._ranges = decompress_source_map(self._source_map)
            instruction = int(location_ref)
            if instruction < len(self._ranges):
                return self._ranges[instruction]
        return None

    def _line_index(self, file_path: str) -> Optional[LineIndex]:
        if file_path not in self._line_indexes:
            content = self.sources.get(file_path)
            if content is None:
                return None
            self._line_indexes[file_path] = LineIndex(content)
        return self._line_indexes[file_path]
