from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from rel.net.http import HttpClient, RealHttpClient
from rel.output.console import ConsoleProtocol, RichConsole
from rel.release.registry import CratesIoRegistry, Registry

RegistryFactory = Callable[[str, float], Registry]


@dataclass(frozen=True, slots=True)
class CLIContext:
    console: ConsoleProtocol
    http: HttpClient
    make_registry: RegistryFactory


def build_context() -> CLIContext:
    http = RealHttpClient()

    def make_registry(url: str, timeout: float) -> Registry:
        return CratesIoRegistry(base_url=url, http=http, timeout=timeout)

    return CLIContext(console=RichConsole(), http=http, make_registry=make_registry)
