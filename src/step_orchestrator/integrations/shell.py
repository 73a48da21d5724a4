"""Subprocess helper shared by the CLI-backed integrations (docker, qa)."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandOutcome:
    returncode: int
    output: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def tail(self, lines: int = 50) -> list[str]:
        return self.output.splitlines()[-lines:]


CommandRunner = Callable[[Sequence[str], Path | None, float], CommandOutcome]


def run_command(args: Sequence[str], cwd: Path | None, timeout_seconds: float) -> CommandOutcome:
    """Run ``args`` with stderr merged into stdout.

    A missing executable is reported as return code 127 rather than raised.
    """

    logger.debug("Running command", extra={"args": list(args), "cwd": str(cwd or ".")})
    try:
        proc = subprocess.run(
            list(args),
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout_seconds,
            check=False,
        )
    except FileNotFoundError as e:
        return CommandOutcome(returncode=127, output=str(e))
    except subprocess.TimeoutExpired as e:
        partial = e.output if isinstance(e.output, str) else ""
        return CommandOutcome(returncode=-1, output=partial, timed_out=True)
    return CommandOutcome(returncode=proc.returncode, output=proc.stdout or "")


def has_placeholder(value: str) -> bool:
    """True when ``value`` still carries a ``${...}`` the context did not resolve."""

    return "${" in value
