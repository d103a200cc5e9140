"""Resolve the login secret from the environment or a file.

References use a ``PROVIDER:KEY`` syntax so that secrets never appear on
the command line or in configuration files::

    env:VOUCHER_SECRET          # environment variable
    file:/run/secrets/erp       # first line of a file
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from voucher_pipeline.core.context import Credentials

logger = logging.getLogger(__name__)

DEFAULT_SECRET_REFERENCE = "env:VOUCHER_SECRET"
DEFAULT_IDENTITY_VARIABLE = "VOUCHER_IDENTITY"


class SecretResolutionStatus(str, Enum):
    """Outcome of a secret resolution attempt."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class SecretsReference:
    """Reference to a secret in a specific provider.

    Args:
        provider: Provider name (``"env"`` or ``"file"``).
        key: Variable name or file path.
    """

    provider: str
    key: str

    def __str__(self) -> str:
        return f"{self.provider}:{self.key}"


@dataclass
class SecretResolutionResult:
    """Result of resolving a secret reference.

    The ``value`` field is masked in ``__repr__`` to prevent accidental
    leakage in logs or tracebacks.
    """

    reference: SecretsReference
    status: SecretResolutionStatus
    value: str | None = None
    error: str | None = None

    def __repr__(self) -> str:
        masked = "***" if self.value is not None else "None"
        return (
            f"SecretResolutionResult("
            f"reference={self.reference!r}, "
            f"status={self.status!r}, "
            f"value={masked}, "
            f"error={self.error!r})"
        )


class SecretResolutionError(Exception):
    """Raised when a secret reference cannot be resolved.

    Args:
        reference: The reference string that failed.
        reason: Human-readable failure description.
    """

    def __init__(self, reference: str, reason: str) -> None:
        self.reference = reference
        self.reason = reason
        super().__init__(f"Failed to resolve '{reference}': {reason}")


class SecretsProvider(ABC):
    """Base class for secrets providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique name for this provider."""
        ...

    @abstractmethod
    def resolve(self, reference: SecretsReference) -> SecretResolutionResult:
        """Resolve a single secret reference."""
        ...


class EnvSecretsProvider(SecretsProvider):
    """Resolve secrets from environment variables."""

    @property
    def provider_name(self) -> str:
        return "env"

    def resolve(self, reference: SecretsReference) -> SecretResolutionResult:
        value = os.environ.get(reference.key)
        if value is None:
            return SecretResolutionResult(
                reference=reference,
                status=SecretResolutionStatus.NOT_FOUND,
                error=f"Environment variable '{reference.key}' not set",
            )
        return SecretResolutionResult(reference=reference, status=SecretResolutionStatus.SUCCESS, value=value)


class FileSecretsProvider(SecretsProvider):
    """Resolve secrets from the first line of a file."""

    @property
    def provider_name(self) -> str:
        return "file"

    def resolve(self, reference: SecretsReference) -> SecretResolutionResult:
        path = Path(reference.key).expanduser()
        if not path.is_file():
            return SecretResolutionResult(
                reference=reference,
                status=SecretResolutionStatus.NOT_FOUND,
                error=f"Secret file '{path}' does not exist",
            )
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            return SecretResolutionResult(reference=reference, status=SecretResolutionStatus.ERROR, error=str(exc))
        if not lines or not lines[0].strip():
            return SecretResolutionResult(
                reference=reference,
                status=SecretResolutionStatus.NOT_FOUND,
                error=f"Secret file '{path}' is empty",
            )
        return SecretResolutionResult(reference=reference, status=SecretResolutionStatus.SUCCESS, value=lines[0].strip())


class SecretsResolver:
    """Routes references to registered providers by name.

    ``env`` and ``file`` providers are registered by default.
    """

    def __init__(self, providers: list[SecretsProvider] | None = None) -> None:
        self._providers: dict[str, SecretsProvider] = {}
        for provider in providers if providers is not None else [EnvSecretsProvider(), FileSecretsProvider()]:
            self.register(provider)

    def register(self, provider: SecretsProvider) -> None:
        """Register a secrets provider."""
        self._providers[provider.provider_name] = provider

    def resolve(self, reference: SecretsReference) -> SecretResolutionResult:
        """Resolve a secret using the appropriate provider."""
        provider = self._providers.get(reference.provider)
        if provider is None:
            return SecretResolutionResult(
                reference=reference,
                status=SecretResolutionStatus.ERROR,
                error=f"Unknown provider: {reference.provider}",
            )
        return provider.resolve(reference)


def parse_secret_reference(value: str) -> SecretsReference | None:
    """Parse a ``PROVIDER:KEY`` string into a reference.

    Returns:
        A :class:`SecretsReference`, or ``None`` if *value* has no
        provider prefix or an empty key.
    """
    provider, sep, key = value.partition(":")
    if not sep or not provider or not key:
        return None
    return SecretsReference(provider=provider, key=key)


def resolve_secret(reference: str, resolver: SecretsResolver | None = None) -> str:
    """Resolve one reference string to its secret value.

    Raises:
        SecretResolutionError: If the reference is malformed or unresolved.
    """
    parsed = parse_secret_reference(reference)
    if parsed is None:
        raise SecretResolutionError(reference, "expected PROVIDER:KEY, e.g. env:VOUCHER_SECRET")
    result = (resolver or SecretsResolver()).resolve(parsed)
    if result.status != SecretResolutionStatus.SUCCESS or result.value is None:
        raise SecretResolutionError(reference, result.error or result.status.value)
    logger.debug("Resolved secret reference %s", parsed)
    return result.value


def resolve_credentials(
    identity: str | None = None,
    secret_reference: str = DEFAULT_SECRET_REFERENCE,
    resolver: SecretsResolver | None = None,
) -> Credentials:
    """Build :class:`Credentials` from an identity and a secret reference.

    Args:
        identity: Login identity.  Defaults to the ``VOUCHER_IDENTITY``
            environment variable.
        secret_reference: ``PROVIDER:KEY`` reference of the secret.
        resolver: Resolver to use; a default env/file resolver otherwise.

    Raises:
        SecretResolutionError: If the identity or the secret is missing.
    """
    identity = identity or os.environ.get(DEFAULT_IDENTITY_VARIABLE)
    if not identity:
        raise SecretResolutionError(
            f"env:{DEFAULT_IDENTITY_VARIABLE}", "no identity given and environment variable not set"
        )
    return Credentials(identity=identity, secret=resolve_secret(secret_reference, resolver))
