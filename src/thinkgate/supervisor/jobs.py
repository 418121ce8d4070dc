"""Auxiliary login jobs run through the backend binary.

Each job kind starts an external browser-based authentication flow by
invoking the backend with a job-specific flag. Some flows stop at a prompt;
for those a fixed line is written to the child's stdin after a delay.
"""

from __future__ import annotations

__all__ = [
    "BROWSER_OPENED_MARKERS",
    "JOB_EXIT_WAIT_SECONDS",
    "JOB_FAILED_FALLBACK_MESSAGE",
    "JOB_SETTLE_SECONDS",
    "JOB_STARTED_MESSAGE",
    "JobKind",
    "JobSpec",
    "build_job_input",
]

from dataclasses import dataclass
from enum import Enum

from thinkgate.exceptions import JobParameterError

# Wait before checking whether the job crashed (seconds)
JOB_SETTLE_SECONDS = 1.0

# Window in which the job may still exit after the settle wait (seconds).
# Still running afterwards means the browser flow is in progress.
JOB_EXIT_WAIT_SECONDS = 0.5

# Output fragments printed by the backend when it hands off to a browser
BROWSER_OPENED_MARKERS: tuple[str, ...] = ("Opening browser", "Attempting to open URL")

JOB_STARTED_MESSAGE = (
    "🌐 Browser opened for authentication.\n\n"
    "Please complete the login in your browser.\n\n"
    "The app will automatically detect when you're authenticated."
)

JOB_FAILED_FALLBACK_MESSAGE = "Authentication process failed unexpectedly"


@dataclass(frozen=True)
class JobSpec:
    """Static description of a job kind.

    Attributes:
        flag: Command-line flag passed to the backend.
        label: Display name used in log lines.
        input_delay_seconds: Delay before writing to stdin (None: no input).
        requires_parameter: The caller must supply a parameter (e.g. e-mail).
    """

    flag: str
    label: str
    input_delay_seconds: float | None = None
    requires_parameter: bool = False


class JobKind(str, Enum):
    """The four login flows the backend supports."""

    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"
    QWEN = "qwen"

    @property
    def spec(self) -> JobSpec:
        return _JOB_SPECS[self]

    @classmethod
    def from_name(cls, name: str) -> JobKind:
        """Look up a job kind case-insensitively.

        Raises:
            ValueError: If the name is not a known job kind.
        """
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown service: {name}") from None


_JOB_SPECS: dict[JobKind, JobSpec] = {
    JobKind.CLAUDE: JobSpec(flag="-claude-login", label="Claude"),
    JobKind.CODEX: JobSpec(flag="-codex-login", label="Codex"),
    # Accepts the default project at the prompt
    JobKind.GEMINI: JobSpec(flag="-login", label="Gemini", input_delay_seconds=3.0),
    # Prompts for the account e-mail
    JobKind.QWEN: JobSpec(
        flag="-qwen-login",
        label="Qwen",
        input_delay_seconds=10.0,
        requires_parameter=True,
    ),
}


def build_job_input(kind: JobKind, parameter: str | None) -> bytes | None:
    """Return the bytes to write to the job's stdin, if any.

    Args:
        kind: Job kind.
        parameter: Caller-supplied parameter.

    Returns:
        Line to send (newline-terminated), or None for jobs without input.

    Raises:
        JobParameterError: If the job requires a parameter and none was given.
    """
    spec = kind.spec
    if spec.requires_parameter:
        if not parameter:
            raise JobParameterError(f"{spec.label} login requires an e-mail address")
        return f"{parameter}\n".encode()
    if spec.input_delay_seconds is not None:
        return b"\n"
    return None
