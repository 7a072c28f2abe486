"""Import graph resolution for multi-file compilation."""

import logging
import os
import posixpath
import re
from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path
from typing import Dict, List, Optional, Union

from mythscan.compiler.version import strip_comments
from mythscan.exceptions import ImportNotFound, InputError
from mythscan.models.contract import SourceUnit


logger = logging.getLogger(__name__)

# import "a.sol"; import "a.sol" as A; import * as A from "a.sol"; import {X} from "a.sol";
_IMPORT_PATTERN = re.compile(r"""\bimport\s+(?:[^;"']*?\s+from\s+)?["']([^"']+)["']""")


def find_imports(source: str) -> List[str]:
    """Import paths declared in a source file, in declaration order."""
    return _IMPORT_PATTERN.findall(strip_comments(source))


def is_relative_import(import_path: str) -> bool:
    return import_path.startswith("./") or import_path.startswith("../")


class SourceProvider(ABC):
    """Locates and reads source units by logical path."""

    @abstractmethod
    def resolve_import(self, import_path: str, importer: str) -> Optional[str]:
        """Logical path an import statement refers to, or None if it cannot be found."""
        pass

    @abstractmethod
    def read(self, logical_path: str) -> str:
        """Content of a source unit.

        Raises:
            OSError: If the unit cannot be read
        """
        pass


class FileSystemProvider(SourceProvider):
    """Resolves imports against the local filesystem.

    Local files are keyed by absolute POSIX path. Package imports
    (`@scope/pkg/File.sol`, `pkg/File.sol`) that are not found beside the
    entry file are looked up in `node_modules` directories from the entry
    directory upwards and keep their import path as logical path.
    """

    def __init__(self, base_dir: Union[str, Path], search_paths: Optional[List[Path]] = None):
        self.base_dir = Path(base_dir).resolve()
        if search_paths is None:
            search_paths = [d / "node_modules" for d in [self.base_dir, *self.base_dir.parents]]
        self.search_paths = [p for p in search_paths if p.is_dir()]

    def resolve_import(self, import_path: str, importer: str) -> Optional[str]:
        if is_relative_import(import_path):
            logical = posixpath.normpath(posixpath.join(posixpath.dirname(importer), import_path))
            if os.path.isabs(logical):
                # same key as a project-rooted import of the file, symlinks included
                logical = Path(logical).resolve().as_posix()
        else:
            local = self.base_dir / import_path
            if local.is_file():
                return local.resolve().as_posix()
            logical = posixpath.normpath(import_path)

        if self._locate(logical) is None:
            return None
        return logical

    def read(self, logical_path: str) -> str:
        path = self._locate(logical_path)
        if path is None:
            raise FileNotFoundError(logical_path)
        return path.read_text(encoding="utf-8")

    def _locate(self, logical_path: str) -> Optional[Path]:
        if os.path.isabs(logical_path):
            path = Path(logical_path)
            return path if path.is_file() else None

        for search_path in self.search_paths:
            candidate = search_path / logical_path
            if candidate.is_file():
                return candidate
        return None


class SourceResolver:
    """Collects the entry file and everything it transitively imports."""

    def __init__(self, provider: SourceProvider):
        self.provider = provider

    def resolve(self, entry_path: str) -> Dict[str, SourceUnit]:
        """Walk the import graph breadth-first from the entry file.

        Args:
            entry_path: Logical path of the entry file

        Returns:
            Mapping of logical path to source unit, closed over all imports
        """
        try:
            entry_content = self.provider.read(entry_path)
        except (OSError, UnicodeDecodeError) as e:
            raise InputError(f"Error opening input file {entry_path}: {e}") from e

        units: Dict[str, SourceUnit] = {
            entry_path: SourceUnit(logical_path=entry_path, content=entry_content),
        }
        pending = deque([entry_path])

        while pending:
            importer = pending.popleft()
            for import_path in find_imports(units[importer].content):
                logical = self.provider.resolve_import(import_path, importer)
                if logical is None:
                    raise ImportNotFound(import_path, importer)
                if logical in units:
                    continue

                try:
                    content = self.provider.read(logical)
                except (OSError, UnicodeDecodeError) as e:
                    raise ImportNotFound(import_path, importer) from e

                logger.debug("Resolved import '%s' from %s -> %s", import_path, importer, logical)
                units[logical] = SourceUnit(logical_path=logical, content=content)
                pending.append(logical)

        logger.info("Resolved %d source units from %s", len(units), entry_path)
        return units
