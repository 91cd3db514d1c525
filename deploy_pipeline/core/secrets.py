"""Secret resolution collaborators.

A Run receives its secrets through an injected resolver; nothing here is read
from the Run's own state and resolved values are never persisted.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Protocol

from deploy_pipeline.core.errors import NotFoundError
from deploy_pipeline.core.logging import REDACTED


class SecretResolver(Protocol):
    def resolve(self, name: str) -> str:
        ...


@dataclass
class EnvSecretResolver:
    """Reads secrets from the process environment, the way CI runners expose them."""
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)
    prefix: str = ""

    def resolve(self, name: str) -> str:
        value = self.environ.get(f"{self.prefix}{name}")
        if not value:
            raise NotFoundError(f"Secret not found: {name}")
        return value


@dataclass
class StaticSecretResolver:
    values: Mapping[str, str]

    def resolve(self, name: str) -> str:
        try:
            return self.values[name]
        except KeyError:
            raise NotFoundError(f"Secret not found: {name}") from None


def resolve_all(resolver: SecretResolver, names: Iterable[str]) -> dict[str, str]:
    return {name: resolver.resolve(name) for name in names}


def redact(text: str, secrets: Mapping[str, str]) -> str:
    # longest first so a secret containing another is masked whole
    for value in sorted((v for v in secrets.values() if v), key=len, reverse=True):
        text = text.replace(value, REDACTED)
    return text


def redact_lines(lines: Iterable[str], secrets: Mapping[str, str]) -> list[str]:
    return [redact(line, secrets) for line in lines]
