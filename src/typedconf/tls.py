"""TLS settings declared in configuration files.

The declaration (:class:`TLSConfig`) is what appears in JSON or YAML::

    tls:
      rootCAFiles: [/etc/ssl/ca.pem]
      clientCAFiles: [/etc/ssl/clients.pem]
      clientAuth: require+verify
      certificates:
        - certFile: /etc/ssl/server.pem
          keyFile: /etc/ssl/server.key

Decoding a :class:`TLS` value reads every referenced file and builds a
:class:`TLSContext` holding the certificate pools and key pairs. The runtime
context is rebuilt in full on every load and is never serialized; the first
unreadable or malformed file aborts the load and leaves the previous state
untouched.
"""
from __future__ import annotations

import json
import logging
import ssl
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Protocol, cast

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from .errors import ConfigFormatError, ConfigValidationError, file_error
from .loader import Format, decode_into, parse_document, to_document
from .values import SettableValue

LOGGER = logging.getLogger(__name__)


class ClientAuthType(IntEnum):
    """Server policy for TLS client certificates."""

    NO_CLIENT_CERT = 0
    REQUEST_CLIENT_CERT = 1
    REQUIRE_ANY_CLIENT_CERT = 2
    VERIFY_CLIENT_CERT_IF_GIVEN = 3
    REQUIRE_AND_VERIFY_CLIENT_CERT = 4


CLIENT_AUTH_NAMES: dict[str, ClientAuthType] = {
    "none": ClientAuthType.NO_CLIENT_CERT,
    "request": ClientAuthType.REQUEST_CLIENT_CERT,
    "require": ClientAuthType.REQUIRE_ANY_CLIENT_CERT,
    "verify": ClientAuthType.VERIFY_CLIENT_CERT_IF_GIVEN,
    "require+verify": ClientAuthType.REQUIRE_AND_VERIFY_CLIENT_CERT,
}
CLIENT_AUTH_BY_VALUE: dict[int, str] = {int(value): name for name, value in CLIENT_AUTH_NAMES.items()}
if len(CLIENT_AUTH_BY_VALUE) != len(CLIENT_AUTH_NAMES):  # pragma: no cover - table invariant
    raise RuntimeError("Client auth names must map to distinct values.")

# The ssl module always verifies a client certificate that is presented.
CLIENT_AUTH_VERIFY_MODES: dict[ClientAuthType, ssl.VerifyMode] = {
    ClientAuthType.NO_CLIENT_CERT: ssl.CERT_NONE,
    ClientAuthType.REQUEST_CLIENT_CERT: ssl.CERT_OPTIONAL,
    ClientAuthType.REQUIRE_ANY_CLIENT_CERT: ssl.CERT_REQUIRED,
    ClientAuthType.VERIFY_CLIENT_CERT_IF_GIVEN: ssl.CERT_OPTIONAL,
    ClientAuthType.REQUIRE_AND_VERIFY_CLIENT_CERT: ssl.CERT_REQUIRED,
}


@dataclass(eq=True)
class TLSClientAuth(SettableValue):
    """Client-auth policy configured by name (``none``, ``require+verify``, ...)."""

    value: int = ClientAuthType.NO_CLIENT_CERT

    def set(self, text: str) -> None:
        """Select the policy named *text* (case-insensitive)."""
        mode = CLIENT_AUTH_NAMES.get(text.lower())
        if mode is None:
            allowed = ", ".join(CLIENT_AUTH_NAMES)
            raise ConfigValidationError(
                f'Invalid client auth type "{text}". Allowed: {allowed}.'
            )
        self.value = mode

    def to_text(self) -> str:
        """Return the policy name; unnamed values cannot be rendered."""
        name = CLIENT_AUTH_BY_VALUE.get(int(self.value))
        if name is None:
            raise ConfigValidationError(f"Invalid client auth type value {int(self.value)}.")
        return name

    @property
    def mode(self) -> ClientAuthType:
        """Return the policy as a :class:`ClientAuthType`."""
        try:
            return ClientAuthType(self.value)
        except ValueError as exc:
            raise ConfigValidationError(
                f"Invalid client auth type value {int(self.value)}."
            ) from exc

    @property
    def verify_mode(self) -> ssl.VerifyMode:
        """Return the matching ``ssl`` verify mode for server contexts."""
        return CLIENT_AUTH_VERIFY_MODES[self.mode]

    def is_empty(self) -> bool:
        return int(self.value) == ClientAuthType.NO_CLIENT_CERT

    def __str__(self) -> str:
        return CLIENT_AUTH_BY_VALUE.get(int(self.value), "")


@dataclass
class CertificateFiles:
    """One certificate/private-key file pair."""

    cert_file: str = field(default="", metadata={"key": "certFile"})
    key_file: str = field(default="", metadata={"key": "keyFile"})


@dataclass
class TLSConfig:
    """Serializable TLS declaration."""

    root_ca_files: list[str] = field(
        default_factory=list,
        metadata={"key": "rootCAFiles", "omitempty": True},
    )
    client_ca_files: list[str] = field(
        default_factory=list,
        metadata={"key": "clientCAFiles", "omitempty": True},
    )
    client_auth: TLSClientAuth = field(
        default_factory=TLSClientAuth,
        metadata={"key": "clientAuth", "omitempty": True},
    )
    certificates: list[CertificateFiles] = field(
        default_factory=list,
        metadata={"key": "certificates", "omitempty": True},
    )


class PublicKeyProtocol(Protocol):
    """Protocol covering public keys exposing ``public_bytes``."""

    def public_bytes(
        self,
        *,
        encoding: serialization.Encoding,
        format: serialization.PublicFormat,
    ) -> bytes:
        """Return the public key bytes in the requested encoding/format."""


class PrivateKeyProtocol(Protocol):
    """Protocol for private keys that can provide a matching public key."""

    def public_key(self) -> PublicKeyProtocol:
        """Return the associated public key object."""


@dataclass
class CertPool:
    """Ordered collection of trusted certificates."""

    certificates: list[x509.Certificate] = field(default_factory=list)

    def append_pem(self, data: bytes, *, source: str = "<pem>") -> int:
        """Add every certificate in *data*; return how many were added."""
        try:
            loaded = x509.load_pem_x509_certificates(data)
        except ValueError as exc:
            raise ConfigFormatError(f"No valid PEM certificates in {source}: {exc}") from exc
        self.certificates.extend(loaded)
        return len(loaded)

    def subjects(self) -> list[str]:
        """Return each certificate subject in RFC 4514 form."""
        return [cert.subject.rfc4514_string() for cert in self.certificates]

    def to_pem(self) -> str:
        """Return the pool as concatenated PEM text."""
        return "".join(
            cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for cert in self.certificates
        )

    def __len__(self) -> int:
        return len(self.certificates)

    def __iter__(self) -> Iterator[x509.Certificate]:
        return iter(self.certificates)


@dataclass(frozen=True)
class KeyPair:
    """A certificate chain (leaf first) and its private key."""

    cert_file: Path
    key_file: Path
    chain: tuple[x509.Certificate, ...]
    private_key: PrivateKeyProtocol

    @property
    def leaf(self) -> x509.Certificate:
        """Return the end-entity certificate."""
        return self.chain[0]

    def names(self) -> list[str]:
        """Return the common name and DNS subject alternative names of the leaf."""
        names = [
            str(attribute.value)
            for attribute in self.leaf.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
            if attribute.value
        ]
        try:
            san = self.leaf.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        except x509.ExtensionNotFound:
            return names
        names.extend(san.value.get_values_for_type(x509.DNSName))
        return names


@dataclass
class TLSContext:
    """Runtime TLS material derived from a :class:`TLSConfig`."""

    client_auth: ClientAuthType = ClientAuthType.NO_CLIENT_CERT
    root_cas: CertPool | None = None
    client_cas: CertPool | None = None
    certificates: tuple[KeyPair, ...] = ()
    name_to_certificate: dict[str, KeyPair] = field(default_factory=dict)

    def certificate_for(self, server_name: str | None) -> KeyPair:
        """Select the key pair for *server_name*, falling back to the first one."""
        if not self.certificates:
            raise ConfigValidationError("No TLS certificates are configured.")
        if len(self.certificates) == 1 or not server_name:
            return self.certificates[0]
        name = server_name.lower().rstrip(".")
        pair = self.name_to_certificate.get(name)
        if pair is not None:
            return pair
        labels = name.split(".")
        labels[0] = "*"
        return self.name_to_certificate.get(".".join(labels), self.certificates[0])

    def server_context(self) -> ssl.SSLContext:
        """Return an ``SSLContext`` for accepting TLS connections."""
        if not self.certificates:
            raise ConfigValidationError("A TLS server context needs at least one certificate.")
        context = self._server_context_for(self.certificates[0])
        if len(self.certificates) > 1:
            by_pair = {id(pair): self._server_context_for(pair) for pair in self.certificates}
            context.sni_callback = self._sni_selector(by_pair)
        return context

    def client_context(self) -> ssl.SSLContext:
        """Return an ``SSLContext`` for outgoing TLS connections."""
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        if self.root_cas is not None:
            context.load_verify_locations(cadata=self.root_cas.to_pem())
        else:
            context.load_default_certs(ssl.Purpose.SERVER_AUTH)
        if self.certificates:
            _load_cert_chain(context, self.certificates[0])
        return context

    def _server_context_for(self, pair: KeyPair) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.verify_mode = CLIENT_AUTH_VERIFY_MODES[self.client_auth]
        if context.verify_mode != ssl.CERT_NONE:
            if self.client_cas is not None:
                context.load_verify_locations(cadata=self.client_cas.to_pem())
            else:
                context.load_default_certs(ssl.Purpose.CLIENT_AUTH)
        _load_cert_chain(context, pair)
        return context

    def _sni_selector(
        self,
        by_pair: dict[int, ssl.SSLContext],
    ) -> Callable[[ssl.SSLObject, str | None, ssl.SSLContext], None]:
        def select(connection: ssl.SSLObject, server_name: str | None, _: ssl.SSLContext) -> None:
            if server_name:
                connection.context = by_pair[id(self.certificate_for(server_name))]

        return select

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable summary of the loaded material."""
        return {
            "client_auth": CLIENT_AUTH_BY_VALUE.get(int(self.client_auth), ""),
            "root_cas": self.root_cas.subjects() if self.root_cas is not None else None,
            "client_cas": self.client_cas.subjects() if self.client_cas is not None else None,
            "certificates": [
                {
                    "cert_file": str(pair.cert_file),
                    "key_file": str(pair.key_file),
                    "subject": pair.leaf.subject.rfc4514_string(),
                    "names": pair.names(),
                    "not_valid_after": pair.leaf.not_valid_after_utc.isoformat(),
                }
                for pair in self.certificates
            ],
        }


class TLS(SettableValue):
    """A TLS declaration together with the runtime context built from it."""

    def __init__(self, config: TLSConfig | None = None) -> None:
        """Create an empty value, or load the files named by *config*."""
        self.config = TLSConfig()
        self.context: TLSContext | None = None
        if config is not None:
            self.context = build_tls_context(config)
            self.config = config

    def decode(self, node: object, *, yaml_scalars: bool = False) -> None:
        """Load a declaration mapping and rebuild the runtime context."""
        declaration = TLSConfig()
        decode_into(declaration, node, path="tls", yaml_scalars=yaml_scalars)
        context = build_tls_context(declaration)
        self.config, self.context = declaration, context

    def encode(self) -> object:
        """Return the declaration only; the runtime context is never serialized."""
        return to_document(self.config)

    def set(self, text: str) -> None:
        """Load a declaration given as JSON or YAML text."""
        self.decode(
            parse_document(text, Format.YAML, source="TLS declaration"),
            yaml_scalars=True,
        )

    def to_text(self) -> str:
        """Return the declaration as compact JSON."""
        return json.dumps(self.encode())

    def __repr__(self) -> str:
        return f"TLS(config={self.config!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TLS):
            return NotImplemented
        return self.config == other.config

    __hash__ = None  # type: ignore[assignment]


def build_tls_context(config: TLSConfig) -> TLSContext:
    """Read every file named by *config* and return the runtime context."""
    context = TLSContext(client_auth=config.client_auth.mode)
    if config.root_ca_files:
        context.root_cas = load_cert_pool(config.root_ca_files)
    if config.client_ca_files:
        context.client_cas = load_cert_pool(config.client_ca_files)

    pairs = [load_key_pair(entry.cert_file, entry.key_file) for entry in config.certificates]
    context.certificates = tuple(pairs)
    for pair in pairs:
        for name in pair.names():
            context.name_to_certificate[name.lower()] = pair
    LOGGER.debug(
        "Loaded TLS context: %d root CA(s), %d client CA(s), %d key pair(s).",
        len(context.root_cas or ()),
        len(context.client_cas or ()),
        len(pairs),
    )
    return context


def load_cert_pool(files: Iterable[str | Path]) -> CertPool:
    """Return a pool holding the certificates of each PEM file, in order."""
    pool = CertPool()
    for path in files:
        pool.append_pem(_read_file(path, "CA file"), source=str(path))
    return pool


def load_key_pair(cert_file: str | Path, key_file: str | Path) -> KeyPair:
    """Load a PEM certificate chain and its matching private key."""
    chain = _load_certificates(Path(cert_file))
    private_key = _load_private_key(Path(key_file))
    if not _public_keys_match(chain[0], private_key):
        raise ConfigValidationError(
            f"Private key {key_file} does not match the certificate in {cert_file}."
        )
    return KeyPair(
        cert_file=Path(cert_file),
        key_file=Path(key_file),
        chain=tuple(chain),
        private_key=private_key,
    )


def _read_file(path: str | Path, what: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise file_error(path, exc, what=what) from exc


def _load_certificates(path: Path) -> Sequence[x509.Certificate]:
    data = _read_file(path, "certificate file")
    try:
        return x509.load_pem_x509_certificates(data)
    except ValueError as exc:
        raise ConfigFormatError(f"Failed to parse certificate {path}: {exc}") from exc


def _load_private_key(path: Path) -> PrivateKeyProtocol:
    data = _read_file(path, "key file")
    try:
        private_key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ConfigFormatError(f"Failed to parse private key {path}: {exc}") from exc
    return cast(PrivateKeyProtocol, private_key)


def _public_keys_match(cert: x509.Certificate, private_key: PrivateKeyProtocol) -> bool:
    cert_key = cert.public_key()
    try:
        key_public = private_key.public_key()
    except AttributeError:  # pragma: no cover - defensive
        return False
    cert_bytes = cert_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    key_bytes = key_public.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return cert_bytes == key_bytes


def _load_cert_chain(context: ssl.SSLContext, pair: KeyPair) -> None:
    try:
        context.load_cert_chain(pair.cert_file, pair.key_file)
    except (ssl.SSLError, OSError) as exc:
        raise ConfigValidationError(
            f"Cannot use certificate {pair.cert_file} with key {pair.key_file}: {exc}"
        ) from exc


__all__ = [
    "CLIENT_AUTH_NAMES",
    "CertPool",
    "CertificateFiles",
    "ClientAuthType",
    "KeyPair",
    "TLS",
    "TLSClientAuth",
    "TLSConfig",
    "TLSContext",
    "build_tls_context",
    "load_cert_pool",
    "load_key_pair",
]
