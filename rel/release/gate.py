from __future__ import annotations

from rel.core.result import Err, Ok, Result
from rel.output.console import ConsoleProtocol, Style
from rel.release.errors import ReleaseError, cancelled
from rel.release.model import ReleaseVersion
from rel.release.registry import Registry, RegistryError
from rel.release.retry import CancelToken, RetryPolicy, call_with_retry


class PublishGate:
    """Turns publish into an at-most-once operation per version.

    The registry is asked for the version right before upload. Registries
    disagree on what a re-publish does (reject or silently accept), so the
    gate does not rely on either.
    """

    def __init__(
        self,
        *,
        console: ConsoleProtocol,
        policy: RetryPolicy | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        self._console = console
        self._policy = policy or RetryPolicy()
        self._cancel = cancel or CancelToken()

    def _on_retry(self, attempt: int, error: RegistryError, delay: float) -> None:
        self._console.warning(f"registry check attempt {attempt} failed ({error}); retrying in {delay:g}s")

    def check_not_published(
        self,
        version: ReleaseVersion,
        registry: Registry,
        *,
        crate: str,
    ) -> Result[bool, ReleaseError]:
        """Ok(True) when ``crate@version`` is absent from the registry."""
        self._console.print(f"checking {registry.name} for {crate} {version}", Style.DIM)
        outcome = call_with_retry(
            lambda: registry.version_exists(crate, version.value),
            policy=self._policy,
            is_transient=lambda e: e.is_transient,
            cancel=self._cancel,
            on_retry=self._on_retry,
        )
        if outcome.result is None:
            return Err(cancelled("gate"))

        result = outcome.result
        if isinstance(result, Ok):
            return Ok(not result.value)

        error = result.error
        # An auth or 4xx answer here still means we could not learn the state.
        return Err(
            ReleaseError(
                kind="registry_unreachable",
                message=f"cannot query {registry.name} for {crate} {version}: {error}",
                hint=f"gave up after {outcome.attempts} attempt(s)",
            )
        )
