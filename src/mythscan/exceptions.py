"""MythScan exception hierarchy.

Every failure the pipeline can report derives from MythScanError. Each class
carries the process exit code the CLI uses when it surfaces the error.
"""

from typing import Optional

EXIT_COMPILATION_ERROR = 1
EXIT_FAILURE = 2
EXIT_TIMEOUT = 3
# -1 as seen by the shell
EXIT_INPUT_ERROR = 255


class MythScanError(Exception):
    """Base exception for all MythScan errors."""

    exit_code = EXIT_FAILURE


class InputError(MythScanError):
    """Raised for an unreadable input file or an invalid option value."""

    exit_code = EXIT_INPUT_ERROR


class VersionResolutionError(MythScanError):
    """Raised when no compiler release can be chosen for the source."""


class NoVersionDeclared(VersionResolutionError):
    """The source declares no `pragma solidity` constraint."""


class NoMatchingRelease(VersionResolutionError):
    """No known solc release satisfies the declared constraint."""

    def __init__(self, constraint: str):
        super().__init__(f"No solc release satisfies version constraint '{constraint}'")
        self.constraint = constraint


class ProvisioningError(MythScanError):
    """Raised when a compiler snapshot cannot be fetched or loaded."""


class DownloadFailed(ProvisioningError):
    """Network or storage fault while fetching a snapshot or the release index."""


class IncompatibleSnapshot(ProvisioningError):
    """The snapshot does not behave like the requested solc release."""


class SourceResolutionError(MythScanError):
    """Raised when the import graph of the entry file cannot be closed."""


class ImportNotFound(SourceResolutionError):
    """An import statement names a file that cannot be located."""

    def __init__(self, import_path: str, importer: str):
        super().__init__(f"Import '{import_path}' declared in {importer} could not be found")
        self.import_path = import_path
        self.importer = importer


class CompilationError(MythScanError):
    """The compiler reported at least one error-severity diagnostic.

    `diagnostics` holds the full compiler text so it can be shown verbatim.
    """

    exit_code = EXIT_COMPILATION_ERROR

    def __init__(self, diagnostics: str):
        super().__init__(diagnostics)
        self.diagnostics = diagnostics


class ContractNotFound(CompilationError):
    """The requested contract is not defined in the entry file."""


class IncompleteArtifact(MythScanError):
    """Compiler output is missing the bytecode or the source map."""


class SubmissionError(MythScanError):
    """Raised when the analysis service will not accept the request."""


class SubmissionRejected(SubmissionError):
    """Authentication or validation failure reported by the service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientNetworkError(MythScanError):
    """Network faults persisted after the bounded number of retries."""


class AnalysisFailed(MythScanError):
    """The service finished the job with an error status."""


class AnalysisTimeout(MythScanError):
    """No terminal status was observed before the client-side deadline."""

    exit_code = EXIT_TIMEOUT

    def __init__(self, uuid: str, timeout: float):
        super().__init__(
            f"Analysis {uuid} did not finish within {timeout:.0f}s. "
            "The job may still be running on the service; retry later to fetch its results."
        )
        self.uuid = uuid
        self.timeout = timeout
