"""Solidity version pragma parsing and release selection.

Parses `pragma solidity` statements and picks the highest known solc
release satisfying them. Constraint syntax follows the npm semver ranges
solc itself accepts:

    pragma solidity 0.7.6;
    pragma solidity ^0.8.0;
    pragma solidity >=0.6.0 <0.8.0;
    pragma solidity 0.4.20 - 0.4.26 || ^0.5.0;
"""

import logging
import re
from typing import List, Optional, Tuple, Iterable

from mythscan.exceptions import NoMatchingRelease, NoVersionDeclared, VersionResolutionError
from mythscan.compiler.releases import ReleaseIndex
from mythscan.models.contract import CompilerRelease


logger = logging.getLogger(__name__)

Version = Tuple[int, int, int]
Comparator = Tuple[str, Version]

# String literals are matched first so comment markers inside them are kept.
_COMMENT_PATTERN = re.compile(
    r""""(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*'|//[^\n]*|/\*.*?\*/""",
    re.DOTALL,
)
_PRAGMA_PATTERN = re.compile(r"pragma\s+solidity\s+([^;]+);")
_RELEASE_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_COMPARATOR_PATTERN = re.compile(r"(>=|<=|>|<|=|\^|~)?\s*v?([0-9xX*]+(?:\.[0-9xX*]+){0,2})")
_WILDCARDS = {"x", "X", "*"}


def _drop_comment(match: "re.Match[str]") -> str:
    text = match.group(0)
    if text[0] in "\"'":
        return text
    return "\n" * text.count("\n")


def strip_comments(source: str) -> str:
    """Remove line and block comments, keeping line structure and string literals."""
    return _COMMENT_PATTERN.sub(_drop_comment, source)


def parse_pragma_version(source: str) -> Optional[str]:
    """Extract the version constraint of the first `pragma solidity` statement."""
    match = _PRAGMA_PATTERN.search(strip_comments(source))
    if not match:
        return None
    return " ".join(match.group(1).split())


def parse_version(text: str) -> Optional[Version]:
    """Parse a concrete `major.minor.patch` release string."""
    match = _RELEASE_PATTERN.match(text.strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def _parse_partial(text: str) -> List[Optional[int]]:
    parts: List[Optional[int]] = []
    for piece in text.split("."):
        if piece in _WILDCARDS:
            break
        if not piece.isdigit():
            raise VersionResolutionError(f"Invalid version '{text}' in constraint")
        parts.append(int(piece))
    return parts


def _floor(parts: List[Optional[int]]) -> Version:
    padded = list(parts) + [0, 0, 0]
    return padded[0], padded[1], padded[2]


def _bump(parts: List[Optional[int]]) -> Version:
    """Smallest release above every release matching a partial version."""
    if not parts:
        raise VersionResolutionError("Cannot bump a wildcard version")
    bumped = list(parts)
    bumped[-1] += 1
    return _floor(bumped)


def _expand_token(op: str, parts: List[Optional[int]]) -> List[Comparator]:
    if not parts:
        # `*`, `x`, `>=*` ...
        return [] if op in ("", "=", ">=", "<=", "^", "~") else [("<", (0, 0, 0))]

    if op == "^":
        floor = _floor(parts)
        major, minor, patch = floor
        if major > 0 or len(parts) == 1:
            ceiling = (major + 1, 0, 0)
        elif minor > 0 or len(parts) == 2:
            ceiling = (0, minor + 1, 0)
        else:
            ceiling = (0, 0, patch + 1)
        return [(">=", floor), ("<", ceiling)]
    if op == "~":
        ceiling = _bump(parts[:2]) if len(parts) > 1 else _bump(parts[:1])
        return [(">=", _floor(parts)), ("<", ceiling)]
    if op == ">=":
        return [(">=", _floor(parts))]
    if op == ">":
        if len(parts) == 3:
            return [(">", _floor(parts))]
        return [(">=", _bump(parts))]
    if op == "<":
        return [("<", _floor(parts))]
    if op == "<=":
        if len(parts) == 3:
            return [("<=", _floor(parts))]
        return [("<", _bump(parts))]

    # exact or partial (`0.8` means any 0.8.x)
    if len(parts) == 3:
        return [("=", _floor(parts))]
    return [(">=", _floor(parts)), ("<", _bump(parts))]


def _parse_alternative(text: str) -> List[Comparator]:
    hyphen = re.match(r"^\s*(\S+)\s+-\s+(\S+)\s*$", text)
    if hyphen:
        low = _parse_partial(hyphen.group(1).lstrip("v"))
        high = _parse_partial(hyphen.group(2).lstrip("v"))
        return _expand_token(">=", low) + _expand_token("<=", high)

    # comparators need not be space separated: `>=0.4.22<0.6.0`
    comparators: List[Comparator] = []
    position = 0
    for match in _COMPARATOR_PATTERN.finditer(text):
        if text[position:match.start()].strip():
            raise VersionResolutionError(f"Invalid version constraint '{text.strip()}'")
        comparators.extend(_expand_token(match.group(1) or "", _parse_partial(match.group(2))))
        position = match.end()
    if text[position:].strip():
        raise VersionResolutionError(f"Invalid version constraint '{text.strip()}'")
    return comparators


def parse_constraint(constraint: str) -> List[List[Comparator]]:
    """Parse a constraint into OR-ed groups of AND-ed comparators."""
    alternatives = constraint.split("||")
    if not constraint.strip() or any(not alt.strip() for alt in alternatives):
        raise VersionResolutionError(f"Empty version constraint in '{constraint}'")
    return [_parse_alternative(alt) for alt in alternatives]


def _compare(op: str, version: Version, bound: Version) -> bool:
    if op == ">=":
        return version >= bound
    if op == ">":
        return version > bound
    if op == "<=":
        return version <= bound
    if op == "<":
        return version < bound
    return version == bound


def satisfies(version: str, constraint: str) -> bool:
    """Check whether a concrete release satisfies a constraint."""
    parsed = parse_version(version)
    if parsed is None:
        return False
    return any(
        all(_compare(op, parsed, bound) for op, bound in group)
        for group in parse_constraint(constraint)
    )


def select_best_version(constraint: str, available: Iterable[str]) -> Optional[str]:
    """Highest release in `available` satisfying `constraint`."""
    groups = parse_constraint(constraint)
    best: Optional[Version] = None
    best_text: Optional[str] = None
    for candidate in available:
        parsed = parse_version(candidate)
        if parsed is None:
            continue
        if not any(all(_compare(op, parsed, bound) for op, bound in group) for group in groups):
            continue
        if best is None or parsed > best:
            best, best_text = parsed, candidate
    return best_text


class VersionResolver:
    """Turns a contract's version pragma into a downloadable solc release."""

    @staticmethod
    def extract_constraint(source: str) -> str:
        """Return the declared constraint or raise NoVersionDeclared."""
        constraint = parse_pragma_version(source)
        if constraint is None:
            raise NoVersionDeclared("No 'pragma solidity' version declaration found in source")
        return constraint

    @staticmethod
    def resolve(constraint: str, index: ReleaseIndex) -> CompilerRelease:
        """Pick the highest release in the index satisfying the constraint."""
        version = select_best_version(constraint, index.releases.keys())
        if version is None:
            raise NoMatchingRelease(constraint)

        logger.info("Selected solc %s for pragma '%s'", version, constraint)
        return CompilerRelease(
            version_constraint=constraint,
            resolved_version=version,
            artifact_locator=index.url_for(version),
            checksum=index.checksum_for(version),
        )
