"""Native solc binary snapshot."""

import asyncio
import json
import logging
import os
import tempfile
from typing import Dict, Any, List, Optional, Tuple
from pathlib import Path

from mythscan.compiler.base import CompilerSnapshot
from mythscan.compiler.version import parse_version
from mythscan.exceptions import CompilationError, IncompatibleSnapshot


logger = logging.getLogger(__name__)

# first release whose CLI accepts --standard-json
MIN_STANDARD_JSON_VERSION = (0, 4, 11)


class SolcBinary(CompilerSnapshot):
    """solc release binary run as an isolated subprocess.

    The binary gets the whole input on stdin, runs in a scratch directory
    with an empty environment, and never reads sources from disk.
    """

    def __init__(self, path: Path, version: str, timeout: Optional[float] = None):
        super().__init__(version)
        self.path = Path(path)
        self.timeout = timeout

    def is_available(self) -> bool:
        return self.path.is_file() and os.access(self.path, os.X_OK)

    async def verify(self) -> None:
        parsed = parse_version(self.version)
        if parsed is not None and parsed < MIN_STANDARD_JSON_VERSION:
            raise IncompatibleSnapshot(
                f"solc {self.version} predates --standard-json; use a release >= 0.4.11"
            )
        if not self.is_available():
            raise IncompatibleSnapshot(f"solc snapshot {self.path} is not an executable file")

        try:
            stdout, stderr, returncode = await self._run_command([str(self.path), "--version"], timeout=30)
        except (OSError, asyncio.TimeoutError) as e:
            raise IncompatibleSnapshot(f"solc snapshot {self.path} could not be executed: {e}") from e

        if returncode != 0 or f"Version: {self.version}" not in stdout:
            raise IncompatibleSnapshot(
                f"solc snapshot {self.path} does not report version {self.version}: "
                f"{(stdout or stderr).strip()[:200]}"
            )

    async def compile(self, standard_input: Dict[str, Any]) -> Dict[str, Any]:
        payload = json.dumps(standard_input).encode("utf-8")
        logger.debug("Running solc %s on %d source units", self.version, len(standard_input.get("sources", {})))

        try:
            stdout, stderr, returncode = await self._run_command(
                [str(self.path), "--standard-json"],
                stdin=payload,
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise CompilationError(f"solc {self.version} did not finish within {self.timeout}s")

        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise CompilationError(
                f"solc {self.version} produced unreadable output (exit {returncode}): "
                f"{(stderr or stdout).strip()[:500]}"
            ) from e

    async def _run_command(
        self,
        cmd: List[str],
        stdin: Optional[bytes] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[str, str, int]:
        """Run a command and return output.

        Args:
            cmd: Command to run
            stdin: Bytes written to the process stdin
            timeout: Timeout in seconds

        Returns:
            Tuple of (stdout, stderr, return_code)
        """
        with tempfile.TemporaryDirectory(prefix="mythscan_solc_") as workdir:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
                env={},
            )

            try:
                if timeout:
                    stdout, stderr = await asyncio.wait_for(
                        process.communicate(stdin),
                        timeout=timeout,
                    )
                else:
                    stdout, stderr = await process.communicate(stdin)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise

        stdout_str = stdout.decode("utf-8", errors="replace") if stdout else ""
        stderr_str = stderr.decode("utf-8", errors="replace") if stderr else ""

        return stdout_str, stderr_str, process.returncode
