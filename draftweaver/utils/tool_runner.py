#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

External tool execution.

Every collaborator (seqtk, KMC, Lighter, FLASH, SPAdes, BWA, samtools, Pilon)
is invoked through ToolRunner. Each call blocks until the process exits; its
combined output is appended to a stage-numbered log file in the output
directory (and echoed live in verbose mode). A non-zero exit raises
StageExecutionError naming the stage.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import os
import shlex
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO, Tuple, Union

from ..errors import StageExecutionError

logger = logging.getLogger(__name__)

Command = Sequence[str]


@dataclass
class ToolCall:
    """Record of one (possibly piped) invocation."""
    stage: str
    commands: List[List[str]]
    log_path: Path
    stdout_path: Optional[Path] = None
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def command_line(self) -> str:
        line = ' | '.join(shlex.join(cmd) for cmd in self.commands)
        if self.stdout_path is not None:
            line += f' > {shlex.quote(str(self.stdout_path))}'
        return line


class ToolRunner:
    """
    Run external tools with per-stage logging and fail-fast semantics.

    Stage log files are numbered in order of first use:
    ``01_read_stats.log``, ``02_genome_size.log``, ...
    """

    def __init__(self, log_dir: Path, verbose: bool = False):
        """
        Args:
            log_dir: Directory receiving the numbered stage log files
            verbose: Echo tool output live to stderr
        """
        self.log_dir = Path(log_dir)
        self.verbose = verbose
        self.history: List[ToolCall] = []
        self._stage_numbers: Dict[str, int] = {}

    def log_path(self, stage: str) -> Path:
        """Return (and reserve) the numbered log file for a stage."""
        if stage not in self._stage_numbers:
            self._stage_numbers[stage] = len(self._stage_numbers) + 1
        return self.log_dir / f"{self._stage_numbers[stage]:02d}_{stage}.log"

    def run(
        self,
        stage: str,
        command: Union[Command, Sequence[Command]],
        stdout_path: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> str:
        """
        Run a command, or a pipeline of commands, to completion.

        Args:
            stage: Pipeline stage name (selects the log file)
            command: One argv list, or a list of argv lists joined by pipes
            stdout_path: Redirect the final command's stdout to this file
            env: Extra environment variables
            cwd: Working directory for the process(es)

        Returns:
            Combined output text that was written to the stage log

        Raises:
            StageExecutionError: If any process exits non-zero or cannot start
        """
        commands = _normalize(command)
        call = ToolCall(
            stage=stage,
            commands=commands,
            log_path=self.log_path(stage),
            stdout_path=Path(stdout_path) if stdout_path else None,
            env=dict(env or {}),
        )
        self.history.append(call)

        logger.info(f"Running: {call.command_line}")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        with open(call.log_path, 'a') as log_handle:
            log_handle.write(f"# {call.command_line}\n")
            log_handle.flush()
            returncode, output = self._execute(call, log_handle, cwd)

        if returncode != 0:
            logger.error(f"Stage '{stage}' exited with status {returncode}")
            raise StageExecutionError(stage, call.command_line, returncode, call.log_path)

        return output

    def _execute(self, call: ToolCall, log_handle: TextIO,
                 cwd: Optional[Path]) -> Tuple[int, str]:
        """Spawn the processes of *call*; returns (first non-zero status or 0, output)."""
        env = None
        if call.env:
            env = os.environ.copy()
            env.update(call.env)

        processes: List[subprocess.Popen] = []
        out_handle = open(call.stdout_path, 'wb') if call.stdout_path else None
        captured: List[str] = []

        # stderr of every process, and the last stdout unless redirected,
        # share one pipe so upstream progress is logged and echoed too
        read_fd, write_fd = os.pipe()
        try:
            upstream = None
            for i, cmd in enumerate(call.commands):
                last = i == len(call.commands) - 1
                if not last:
                    stdout = subprocess.PIPE
                elif out_handle is not None:
                    stdout = out_handle
                else:
                    stdout = write_fd
                try:
                    proc = subprocess.Popen(
                        cmd, stdin=upstream, stdout=stdout, stderr=write_fd,
                        cwd=cwd, env=env,
                    )
                except OSError as e:
                    log_handle.write(f"Failed to start {cmd[0]}: {e}\n")
                    for started in processes:
                        started.kill()
                        started.wait()
                    return 127, ''.join(captured)
                if upstream is not None:
                    # Let the upstream process receive SIGPIPE if we exit early
                    upstream.close()
                upstream = proc.stdout if not last else None
                processes.append(proc)

            # EOF arrives once every child has closed its copy
            os.close(write_fd)
            write_fd = None
            with os.fdopen(read_fd, 'rb') as stream:
                read_fd = None
                for raw in stream:
                    line = raw.decode(errors='replace')
                    captured.append(line)
                    log_handle.write(line)
                    if self.verbose:
                        sys.stderr.write(line)

            returncodes = [proc.wait() for proc in processes]
        finally:
            for fd in (read_fd, write_fd):
                if fd is not None:
                    os.close(fd)
            if out_handle is not None:
                out_handle.close()

        failed = next((rc for rc in returncodes if rc != 0), 0)
        return failed, ''.join(captured)


def _normalize(command: Union[Command, Sequence[Command]]) -> List[List[str]]:
    """Turn a single argv or a list of argvs into a list of argv lists."""
    if not command:
        raise ValueError("Empty command")
    if isinstance(command[0], str):
        return [[str(part) for part in command]]
    return [[str(part) for part in cmd] for cmd in command]


__all__ = ["ToolRunner", "ToolCall"]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
