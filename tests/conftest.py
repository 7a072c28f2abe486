"""Shared fixtures for mythscan tests."""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
import pytest

from mythscan.compiler.base import CompilerSnapshot
from mythscan.config.settings import Settings


SIMPLE_TOKEN = """// SPDX-License-Identifier: MIT
pragma solidity ^0.5.0;

contract Token {
    mapping(address => uint256) public balances;

    function transfer(address to, uint256 amount) public {
        balances[msg.sender] -= amount;
        balances[to] += amount;
    }
}
"""


def make_solc_output(
    contracts: Dict[str, Sequence[Tuple[str, str]]],
    errors: Optional[List[Dict[str, Any]]] = None,
    source_map: str = "0:200:0:-;;;",
) -> Dict[str, Any]:
    """Standard-JSON output for files defining (name, bytecode) contracts.

    Source ids follow sorted path order, as solc assigns them.
    """
    output: Dict[str, Any] = {"sources": {}, "contracts": {}}
    for source_id, path in enumerate(sorted(contracts)):
        output["sources"][path] = {
            "id": source_id,
            "ast": {
                "nodeType": "SourceUnit",
                "nodes": [
                    {"nodeType": "PragmaDirective"},
                    *({"nodeType": "ContractDefinition", "name": name} for name, _ in contracts[path]),
                ],
            },
        }
        output["contracts"][path] = {
            name: {
                "abi": [],
                "evm": {
                    "bytecode": {"object": bytecode, "sourceMap": source_map if bytecode else ""},
                    "deployedBytecode": {"object": bytecode[::-1], "sourceMap": source_map if bytecode else ""},
                },
            }
            for name, bytecode in contracts[path]
        }
    if errors:
        output["errors"] = errors
    return output


class FakeCompiler(CompilerSnapshot):
    """Compiler snapshot returning canned standard-JSON output."""

    def __init__(self, output: Any, version: str = "0.5.17"):
        super().__init__(version)
        self.output = output
        self.inputs: List[Dict[str, Any]] = []

    async def compile(self, standard_input: Dict[str, Any]) -> Dict[str, Any]:
        self.inputs.append(standard_input)
        if callable(self.output):
            return self.output(standard_input)
        return self.output

    async def verify(self) -> None:
        return None

    def is_available(self) -> bool:
        return True


class FakeClock:
    """Monotonic clock that only advances when something sleeps on it."""

    def __init__(self, start: float = 1000.0):
        self.start = start
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        assert seconds >= 0
        self.sleeps.append(seconds)
        self.now += seconds

    @property
    def elapsed(self) -> float:
        return self.now - self.start


class FakeMythX:
    """In-memory MythX API for httpx.MockTransport.

    `statuses` are returned by successive status polls; the last one
    repeats. `faults` maps a path suffix to a list of per-call overrides:
    an exception instance to raise or an int status code to answer with.
    """

    def __init__(
        self,
        statuses: Sequence[str] = ("Finished",),
        issues: Optional[List[Dict[str, Any]]] = None,
        login_status: int = 200,
        submit_status: int = 200,
        submit_state: str = "Queued",
        faults: Optional[Dict[str, List[Any]]] = None,
    ):
        self.statuses = list(statuses)
        self.issues = issues or []
        self.login_status = login_status
        self.submit_status = submit_status
        self.submit_state = submit_state
        self.faults = faults or {}
        self.requests: List[httpx.Request] = []
        self.submitted: List[Dict[str, Any]] = []
        self.polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        for suffix, overrides in self.faults.items():
            if path.endswith(suffix) and overrides:
                fault = overrides.pop(0)
                if isinstance(fault, Exception):
                    raise fault
                if fault is not None:
                    return httpx.Response(fault, json={"error": "injected"})

        if path == "/v1/auth/login":
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"error": "Wrong password"})
            return httpx.Response(200, json={"jwtTokens": {"access": "access-token", "refresh": "refresh-token"}})

        if path == "/v1/analyses" and request.method == "POST":
            if self.submit_status != 200:
                return httpx.Response(self.submit_status, json={"error": "Validation failed"})
            self.submitted.append(json.loads(request.content))
            return httpx.Response(200, json={"uuid": "job-1", "status": self.submit_state})

        if path == "/v1/analyses/job-1/issues":
            return httpx.Response(200, json=[{"issues": self.issues, "sourceType": "solidity-file"}])

        if path == "/v1/analyses/job-1":
            status = self.statuses[min(self.polls, len(self.statuses) - 1)]
            self.polls += 1
            body = {"uuid": "job-1", "status": status}
            if status == "Error":
                body["error"] = "Internal analysis error"
            return httpx.Response(200, json=body)

        return httpx.Response(404, json={"error": f"No route {path}"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


def mythx_issue(
    swc_id: str = "SWC-101",
    source_map: Optional[str] = "0:10:0",
    severity: str = "High",
    head: str = "The arithmetic operator can underflow.",
) -> Dict[str, Any]:
    """One entry of a MythX issues array."""
    return {
        "swcID": swc_id,
        "swcTitle": "Integer Overflow and Underflow",
        "description": {"head": head, "tail": "It is possible to cause an integer overflow or underflow."},
        "severity": severity,
        "locations": [{"sourceMap": source_map}] if source_map else [],
        "extra": {},
    }


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and the user cache."""
    return Settings(
        _env_file=None,
        eth_address=None,
        password=None,
        api_url="https://mythx.test",
        solc_binaries_url="https://solc.test",
        solc_platform="linux-amd64",
        cache_dir=tmp_path / "cache",
    )


@pytest.fixture
def contract_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "contracts"
    directory.mkdir()
    return directory


@pytest.fixture
def write_contract(contract_dir: Path) -> Callable[[str, str], Path]:
    def write(name: str, content: str) -> Path:
        path = contract_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return write
