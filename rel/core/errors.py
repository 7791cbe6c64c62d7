"""Process exit codes for the release CLI.

CI platforms only see the exit code, so these values are a contract and
must stay stable:

- 0: release reached Done
- 1: build failed
- 2: publish failed (registry unreachable, rejected, authentication)
- 3: trigger reference is not a valid version (or does not match the crate)
- 4: usage or configuration error
- 130: cancelled (interrupt from the invoking job)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    BUILD_ERROR = 1
    PUBLISH_ERROR = 2
    VERSION_ERROR = 3
    USER_ERROR = 4
    CANCELLED = 130

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
