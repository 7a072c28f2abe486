"""Base class for compiler snapshots."""

from abc import ABC, abstractmethod
from typing import Dict, Any


class CompilerSnapshot(ABC):
    """A specific solc build behind the standard-JSON invocation contract.

    Implementations take a standard-JSON input descriptor and return the
    standard-JSON output: per-file diagnostics under `errors` and, when
    compilation succeeds, per-contract artifacts under `contracts` and
    per-file ASTs and ids under `sources`.
    """

    def __init__(self, version: str):
        """Initialize snapshot.

        Args:
            version: Release this snapshot claims to be (e.g. "0.8.19")
        """
        self.version = version

    @abstractmethod
    async def compile(self, standard_input: Dict[str, Any]) -> Dict[str, Any]:
        """Compile a standard-JSON input descriptor.

        Args:
            standard_input: solc standard-JSON input

        Returns:
            solc standard-JSON output
        """
        pass

    @abstractmethod
    async def verify(self) -> None:
        """Check the snapshot honors the invocation contract.

        Raises:
            IncompatibleSnapshot: If it does not
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the snapshot is present and ready to use."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(version={self.version!r})"
