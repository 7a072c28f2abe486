"""Assemble the analysis request from compiler output and run options."""

from typing import Mapping, Sequence

from mythscan.config.settings import AnalysisConfig
from mythscan.exceptions import IncompleteArtifact
from mythscan.models.analysis import AnalysisRequest, CachePolicy
from mythscan.models.contract import CompiledArtifact, SourceUnit


class RequestBuilder:
    """Builds the single AnalysisRequest of a run."""

    def __init__(self, default_tool_name: str = "mythscan"):
        self.default_tool_name = default_tool_name

    def build(
        self,
        artifact: CompiledArtifact,
        source_list: Sequence[str],
        config: AnalysisConfig,
        sources: Mapping[str, SourceUnit],
    ) -> AnalysisRequest:
        """Pair the artifact with its sources and the run options.

        Raises:
            IncompleteArtifact: If the artifact has no bytecode or source map
        """
        missing = [
            field for field, value in (("bytecode", artifact.bytecode), ("sourceMap", artifact.source_map))
            if not value
        ]
        if missing:
            raise IncompleteArtifact(
                f"Compiled contract {artifact.contract_name} has no {' or '.join(missing)}; "
                "abstract contracts and interfaces cannot be analyzed"
            )

        return AnalysisRequest(
            artifact=artifact,
            source_list=list(source_list),
            sources={path: unit.content for path, unit in sources.items()},
            main_source=artifact.source_path,
            mode=config.mode,
            tool_name=config.client_tool_name or self.default_tool_name,
            cache_policy=CachePolicy.BYPASS if config.no_cache_lookup else CachePolicy.ALLOW,
        )
