"""Compiler resolution, provisioning and invocation."""

from mythscan.compiler.base import CompilerSnapshot
from mythscan.compiler.driver import CompilationDriver
from mythscan.compiler.provisioner import CompilerProvisioner
from mythscan.compiler.releases import ReleaseIndex
from mythscan.compiler.solc import SolcBinary
from mythscan.compiler.version import VersionResolver

__all__ = [
    "CompilerSnapshot",
    "CompilationDriver",
    "CompilerProvisioner",
    "ReleaseIndex",
    "SolcBinary",
    "VersionResolver",
]
