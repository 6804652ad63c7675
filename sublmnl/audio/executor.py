"""The single boundary through which external programs are run."""

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

from sublmnl.errors import ExecutionError, tail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    exit_code: int


class CommandExecutor:
    """Runs external programs with captured output and a timeout.

    Any failure (spawn error, timeout, non-zero exit) becomes an
    ExecutionError. Tests substitute a fake with the same `run` signature.
    """

    def run(
        self,
        program: str,
        args: Sequence[str],
        timeout: Optional[float] = None,
    ) -> CommandResult:
        cmd = [program, *args]
        logger.debug("Esecuzione: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            stderr = e.stderr.decode(errors="replace") if isinstance(e.stderr, bytes) else (e.stderr or "")
            raise ExecutionError(
                program, args, None, tail(stderr), detail=f"timeout dopo {timeout}s",
            ) from e
        except OSError as e:
            raise ExecutionError(
                program, args, None, detail=f"avvio impossibile: {e}",
            ) from e

        if proc.returncode != 0:
            stderr_tail = tail(proc.stderr)
            logger.debug("%s stderr:\n%s", program, stderr_tail)
            raise ExecutionError(program, args, proc.returncode, stderr_tail)

        return CommandResult(stdout=proc.stdout, exit_code=proc.returncode)
