"""Main analysis pipeline orchestrator."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

from mythscan.client.mythx import MythXClient
from mythscan.client.request import RequestBuilder
from mythscan.compiler.driver import CompilationDriver
from mythscan.compiler.provisioner import CompilerProvisioner
from mythscan.compiler.version import VersionResolver
from mythscan.config.settings import AnalysisConfig, Settings
from mythscan.exceptions import AnalysisFailed, AnalysisTimeout, InputError
from mythscan.models.analysis import AnalysisStatus
from mythscan.models.report import AnalysisReport
from mythscan.report.normalizer import IssueNormalizer
from mythscan.sources.resolver import FileSystemProvider, SourceProvider, SourceResolver


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
DebugSink = Callable[[str, Any], None]
ProviderFactory = Callable[[Path], SourceProvider]


class AnalysisPipeline:
    """Compile a contract and analyze it on MythX.

    Stages run strictly in order and the first failure stops the run:
    version resolution, compiler provisioning, source resolution,
    compilation, request building, submission and polling, normalization.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        provisioner: Optional[CompilerProvisioner] = None,
        client: Optional[MythXClient] = None,
        provider_factory: Optional[ProviderFactory] = None,
        debug_sink: Optional[DebugSink] = None,
    ):
        """Initialize the pipeline with settings and collaborators."""
        self.settings = settings or Settings()
        self.provisioner = provisioner or CompilerProvisioner(self.settings)
        self.client = client or MythXClient.from_settings(self.settings)
        self.provider_factory = provider_factory or FileSystemProvider
        self.debug_sink = debug_sink

    async def analyze(
        self,
        target: Union[str, Path],
        config: Optional[AnalysisConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AnalysisReport:
        """Run full analysis pipeline on target.

        Args:
            target: Path to the Solidity entry file
            config: Analysis configuration
            on_progress: Called with a description of each stage

        Returns:
            Report with the normalized issues
        """
        config = config or AnalysisConfig()
        progress = on_progress or (lambda message: None)
        started_at = datetime.now()

        entry_file = Path(target).resolve()
        entry_path = entry_file.as_posix()
        try:
            source_code = entry_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InputError(f"Error opening input file {target}: {e}") from e

        constraint = VersionResolver.extract_constraint(source_code)

        progress("Fetching solc release list...")
        index = await self.provisioner.fetch_release_index()
        release = VersionResolver.resolve(constraint, index)

        progress(f"Downloading solc v{release.resolved_version}...")
        compiler = await self.provisioner.provision(release)

        progress("Resolving imports...")
        sources = SourceResolver(self.provider_factory(entry_file.parent)).resolve(entry_path)

        progress(f"Compiling with solc v{release.resolved_version}...")
        artifact = await CompilationDriver(compiler).compile(sources, entry_path, config.contract_name)
        logger.info("Compiled %s with solc v%s", artifact.contract_name, release.resolved_version)

        request = RequestBuilder(self.settings.client_tool_name).build(
            artifact, artifact.source_list, config, sources
        )
        if config.debug:
            self._debug("MythX Request Body", request.to_payload())

        progress(f"Analyzing {artifact.contract_name}...")
        result = await self.client.analyze(request, config.timing())
        if config.debug:
            self._debug("MythX Response Body", result.raw_response)

        if result.status == AnalysisStatus.TIMED_OUT:
            raise AnalysisTimeout(result.uuid or "", config.timing().timeout)
        if result.status == AnalysisStatus.FAILED:
            raise AnalysisFailed(f"Analysis {result.uuid} failed: {result.error}")

        issues = IssueNormalizer(
            source_map=artifact.source_map,
            source_list=request.source_list,
            sources=request.sources,
            entry_path=entry_path,
        ).normalize(result.issues)
        logger.info("%d raw issues normalized to %d", len(result.issues), len(issues))

        report = AnalysisReport(
            entry_file=entry_path,
            contract_name=artifact.contract_name,
            compiler_version=release.resolved_version,
            analysis_uuid=result.uuid,
            status=result.status,
            issues=issues,
            started_at=started_at,
            completed_at=datetime.now(),
        )
        logger.info("Analysis of %s finished in %s", report.contract_name, report.duration)
        return report

    def _debug(self, title: str, body: Any) -> None:
        if self.debug_sink is not None:
            self.debug_sink(title, body)
        else:
            logger.debug("%s:\n%s", title, body)
