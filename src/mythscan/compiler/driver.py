"""Compile resolved sources and extract the contract to analyze."""

import logging
from typing import Dict, List, Optional, Any, Mapping

from mythscan.compiler.base import CompilerSnapshot
from mythscan.exceptions import CompilationError, ContractNotFound
from mythscan.models.contract import CompiledArtifact, SourceUnit


logger = logging.getLogger(__name__)

OUTPUT_SELECTION = {
    "*": {
        "*": [
            "abi",
            "evm.bytecode.object",
            "evm.bytecode.sourceMap",
            "evm.deployedBytecode.object",
            "evm.deployedBytecode.sourceMap",
        ],
        "": ["ast"],
    }
}


def build_standard_input(sources: Mapping[str, SourceUnit]) -> Dict[str, Any]:
    """solc standard-JSON input listing every source unit."""
    return {
        "language": "Solidity",
        "sources": {path: {"content": unit.content} for path, unit in sources.items()},
        "settings": {
            "optimizer": {"enabled": False},
            "outputSelection": OUTPUT_SELECTION,
        },
    }


def declared_contracts(ast: Optional[Dict[str, Any]]) -> List[str]:
    """Contract names in declaration order from a compact or legacy source unit AST."""
    if not ast:
        return []

    names = []
    if "nodes" in ast:
        for node in ast["nodes"]:
            if node.get("nodeType") == "ContractDefinition" and node.get("name"):
                names.append(node["name"])
    else:
        # solc < 0.5 legacy AST
        for node in ast.get("children", []):
            if node.get("name") == "ContractDefinition":
                name = (node.get("attributes") or {}).get("name")
                if name:
                    names.append(name)
    return names


class CompilationDriver:
    """Runs a compiler snapshot over a source set and picks the target contract.

    Without a contract name the default is the last contract declared in
    the entry file that has creation bytecode. Interfaces and abstract
    contracts are skipped unless nothing else is declared, in which case
    the last declared contract is used.
    """

    def __init__(self, compiler: CompilerSnapshot):
        self.compiler = compiler

    async def compile(
        self,
        sources: Mapping[str, SourceUnit],
        entry_path: str,
        contract_name: Optional[str] = None,
    ) -> CompiledArtifact:
        """Compile and extract the artifact for one contract of the entry file."""
        output = await self.compiler.compile(build_standard_input(sources))

        diagnostics = output.get("errors") or []
        errors = [d for d in diagnostics if d.get("severity") == "error"]
        if errors:
            raise CompilationError(
                "\n".join((d.get("formattedMessage") or d.get("message") or "").rstrip() for d in errors)
            )
        for warning in diagnostics:
            logger.debug("solc: %s", (warning.get("formattedMessage") or warning.get("message") or "").rstrip())

        contracts = (output.get("contracts") or {}).get(entry_path) or {}
        if not contracts:
            raise ContractNotFound(f"No contracts found in {entry_path}")

        source_outputs = output.get("sources") or {}
        name = self._select_contract(contracts, source_outputs.get(entry_path, {}), entry_path, contract_name)
        contract = contracts[name]
        evm = contract.get("evm") or {}
        bytecode = evm.get("bytecode") or {}
        deployed = evm.get("deployedBytecode") or {}

        return CompiledArtifact(
            contract_name=name,
            source_path=entry_path,
            bytecode=bytecode.get("object") or "",
            source_map=bytecode.get("sourceMap") or "",
            deployed_bytecode=deployed.get("object") or "",
            deployed_source_map=deployed.get("sourceMap") or "",
            ast=source_outputs.get(entry_path, {}).get("ast") or {},
            abi=contract.get("abi") or [],
            source_list=self._source_list(source_outputs, sources),
            compiler_version=self.compiler.version,
        )

    @staticmethod
    def _source_list(source_outputs: Dict[str, Any], sources: Mapping[str, SourceUnit]) -> List[str]:
        """Logical paths ordered by the ids the source map refers to."""
        if source_outputs and all("id" in s for s in source_outputs.values()):
            return sorted(source_outputs, key=lambda path: source_outputs[path]["id"])
        return list(sources)

    @staticmethod
    def _select_contract(
        contracts: Dict[str, Any],
        source_output: Dict[str, Any],
        entry_path: str,
        contract_name: Optional[str],
    ) -> str:
        if contract_name is not None:
            if contract_name not in contracts:
                raise ContractNotFound(
                    f"Contract '{contract_name}' not found in {entry_path}. "
                    f"Available: {', '.join(sorted(contracts))}"
                )
            return contract_name

        declared = [n for n in declared_contracts(source_output.get("ast")) if n in contracts]
        ordered = declared or list(contracts)

        with_code = [
            n for n in ordered
            if ((contracts[n].get("evm") or {}).get("bytecode") or {}).get("object")
        ]
        selected = (with_code or ordered)[-1]
        if len(ordered) > 1:
            logger.info("No contract name given, defaulting to %s (last in %s)", selected, entry_path)
        return selected
