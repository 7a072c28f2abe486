"""Source file resolution."""

from mythscan.sources.resolver import FileSystemProvider, SourceProvider, SourceResolver, find_imports

__all__ = ["FileSystemProvider", "SourceProvider", "SourceResolver", "find_imports"]
