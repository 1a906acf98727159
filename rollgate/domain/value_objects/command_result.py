from dataclasses import dataclass

TIMED_OUT_STATUS = -1

# Shell exit codes for "found but not executable" and "command not found"
LAUNCH_FAILURE_CODES = (126, 127)


@dataclass(frozen=True)
class CommandResult:
    """
    Value Object for one finished command, local or remote.
    A non-zero exit status is a normal result, not an error.
    """
    exit_status: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_status == 0 and not self.timed_out

    def describe(self) -> str:
        """One-line summary suitable for a rollout cause record."""
        if self.timed_out:
            return f"timed out after {self.duration:.1f}s"
        if self.ok:
            return "exit status 0"
        detail = _last_line(self.stderr) or _last_line(self.stdout)
        if detail:
            return f"exit status {self.exit_status}: {detail}"
        return f"exit status {self.exit_status}"


def _last_line(text: str) -> str:
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    return lines[-1] if lines else ""
