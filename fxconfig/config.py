"""Configuration schema for fxconfig: logging, MSP identity, TLS and service endpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from fxconfig.validation import ValidationContext


class ConfigError(ValueError):
    """Raised when a configuration value is invalid."""


def error_if_empty(value: str, message: str) -> None:
    """Raise ConfigError with the message if the value is empty or whitespace only."""
    if not value.strip():
        raise ConfigError(message)


def _split_host_port(endpoint: str) -> tuple[str, str]:
    if endpoint.startswith("["):
        end = endpoint.find("]")
        if end < 0:
            raise ConfigError(f"address {endpoint}: missing ']' in address")
        host, rest = endpoint[1:end], endpoint[end + 1 :]
        if not rest.startswith(":"):
            raise ConfigError(f"address {endpoint}: missing port in address")
        port = rest[1:]
    else:
        if ":" not in endpoint:
            raise ConfigError(f"address {endpoint}: missing port in address")
        host, port = endpoint.rsplit(":", 1)
        if ":" in host:
            raise ConfigError(f"address {endpoint}: too many colons in address")
    if ":" in port:
        raise ConfigError(f"address {endpoint}: too many colons in address")
    return host, port


def validate_endpoint(endpoint: str) -> None:
    """Raise ConfigError unless the endpoint has the form host:port with both parts set."""
    host, port = _split_host_port(endpoint)
    if not host:
        raise ConfigError("host is empty")
    if not port:
        raise ConfigError("port is empty")


def _wrapped(prefix: str, call, *args) -> None:
    try:
        call(*args)
    except ValueError as exc:
        raise ConfigError(f"{prefix}: {exc}") from exc


@dataclass
class LoggingConfig:
    """Logging level and format."""

    level: str = ""
    format: str = ""


@dataclass
class MSPConfig:
    """The organisation identity used to sign transactions."""

    local_msp_id: str = ""
    config_path: str = ""

    def validate(self, validation_context: ValidationContext) -> None:
        """Require an MSP id and an existing configuration directory."""
        _wrapped("invalid localMspID", error_if_empty, self.local_msp_id, "must not be empty")
        _wrapped(
            "invalid configPath",
            validation_context.directory_checker.exists,
            self.config_path,
        )


@dataclass
class TLSConfig:
    """TLS settings: none, server TLS (root certs) or mutual TLS (all fields)."""

    enabled: bool | None = None
    client_key_path: str = ""
    client_cert_path: str = ""
    root_cert_paths: list[str] = field(default_factory=list)
    server_name_override: str = ""

    def normalize(self) -> None:
        """Make the enabled flag explicit, False when unset."""
        if self.enabled is None:
            self.enabled = False

    def inherit_from(self, parent: TLSConfig | None) -> TLSConfig:
        """Return a new config taking this one's values where set, else the parent's."""
        return inherit_tls(self, parent)

    def is_enabled(self) -> bool:
        """Return whether TLS is enabled; unset means disabled."""
        return tls_enabled(self)

    def validate(self, validation_context: ValidationContext) -> None:
        """Check certificate paths and, for mutual TLS, the client key pair."""
        if not self.is_enabled():
            return
        if not self.root_cert_paths:
            raise ConfigError("rootCertPaths must not be empty")
        checker = validation_context.file_checker
        for path in self.root_cert_paths:
            _wrapped("invalid rootCertPath", checker.exists, path)
        if not self.client_cert_path and not self.client_key_path:
            return
        _wrapped("invalid clientCertPath", checker.exists, self.client_cert_path)
        _wrapped("invalid clientKeyPath", checker.exists, self.client_key_path)
        try:
            _check_key_pair(self.client_cert_path, self.client_key_path)
        except (ValueError, TypeError, OSError) as exc:
            raise ConfigError(f"invalid cert/key pair: {exc}") from exc


def _check_key_pair(cert_path: str, key_path: str) -> None:
    cert = x509.load_pem_x509_certificate(Path(cert_path).read_bytes())
    key = serialization.load_pem_private_key(Path(key_path).read_bytes(), password=None)
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    der = serialization.Encoding.DER
    if cert.public_key().public_bytes(der, spki) != key.public_key().public_bytes(der, spki):
        raise ValueError("private key does not match public key")


def tls_enabled(tls: TLSConfig | None) -> bool:
    """Return whether the possibly missing TLS config is enabled."""
    if tls is None or tls.enabled is None:
        return False
    return tls.enabled


def inherit_tls(child: TLSConfig | None, parent: TLSConfig | None) -> TLSConfig:
    """Merge child over parent; a missing child counts as empty, a missing parent returns the child."""
    if child is None:
        child = TLSConfig()
    if parent is None:
        return child
    return TLSConfig(
        enabled=child.enabled if child.enabled is not None else parent.enabled,
        client_key_path=child.client_key_path or parent.client_key_path,
        client_cert_path=child.client_cert_path or parent.client_cert_path,
        root_cert_paths=list(child.root_cert_paths or parent.root_cert_paths),
        server_name_override=child.server_name_override or parent.server_name_override,
    )


@dataclass
class EndpointServiceConfig:
    """Connection settings for one service."""

    address: str = ""
    connection_timeout: timedelta = timedelta(0)
    tls: TLSConfig | None = None

    def validate(self, validation_context: ValidationContext) -> None:
        """Check address, connection timeout and TLS settings."""
        _wrapped("invalid address", validate_endpoint, self.address)
        if self.connection_timeout == timedelta(0):
            raise ConfigError("invalid connection timeout: must be non-zero")
        if self.tls is not None:
            _wrapped("invalid tls configuration", self.tls.validate, validation_context)


@dataclass
class OrdererConfig(EndpointServiceConfig):
    """The ordering service endpoint and channel."""

    channel: str = ""

    def validate(self, validation_context: ValidationContext) -> None:
        """Check the channel name, then the endpoint."""
        _wrapped("invalid channel", error_if_empty, self.channel, "empty")
        super().validate(validation_context)


@dataclass
class QueriesConfig(EndpointServiceConfig):
    """The query service endpoint."""


@dataclass
class NotificationsConfig(EndpointServiceConfig):
    """The notification service endpoint and how long to wait for notifications."""

    waiting_timeout: timedelta = timedelta(0)


@dataclass
class Config:
    """The complete fxconfig configuration."""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    msp: MSPConfig = field(default_factory=MSPConfig)
    tls: TLSConfig = field(default_factory=TLSConfig)
    orderer: OrdererConfig = field(default_factory=OrdererConfig)
    queries: QueriesConfig = field(default_factory=QueriesConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)

    def resolve_tls(self) -> None:
        """Let every service inherit the top-level TLS settings, then normalize all of them."""
        self.tls.normalize()
        for service in (self.orderer, self.queries, self.notifications):
            service.tls = inherit_tls(service.tls, self.tls)
            service.tls.normalize()