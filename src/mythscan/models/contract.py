"""Smart contract data models."""

from typing import Dict, List, Optional, Any

from pydantic import BaseModel, ConfigDict, Field


class SourceUnit(BaseModel):
    """Content of one source file, keyed by the path the compiler sees."""

    model_config = ConfigDict(frozen=True)

    logical_path: str
    content: str


class CompilerRelease(BaseModel):
    """A solc release chosen for a version constraint."""

    model_config = ConfigDict(frozen=True)

    version_constraint: str
    resolved_version: str
    artifact_locator: str = Field(description="URL of the snapshot binary")
    checksum: Optional[str] = Field(default=None, description="Published sha256 of the binary")


class CompiledArtifact(BaseModel):
    """Compiler output for the contract that will be analyzed."""

    model_config = ConfigDict(frozen=True)

    contract_name: str
    source_path: str = Field(description="Logical path of the file defining the contract")
    bytecode: str
    source_map: str
    deployed_bytecode: str = ""
    deployed_source_map: str = ""
    ast: Dict[str, Any] = Field(default_factory=dict)
    abi: List[Dict[str, Any]] = Field(default_factory=list)
    source_list: List[str] = Field(
        default_factory=list,
        description="Logical paths ordered by compiler source id",
    )
    compiler_version: str = ""
