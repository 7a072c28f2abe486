"""MythScan - Solidity contract analysis on MythX.

Compiles a contract with the solc release its pragma asks for, submits the
compiled artifact to the MythX analysis service and reports the findings.
"""

__version__ = "0.1.0"
__author__ = "BugWarden"

from mythscan.core.pipeline import AnalysisPipeline

__all__ = ["AnalysisPipeline"]
