"""Signed fetching: OAuth 1.0 RSA-SHA1 request signing with viewer/owner identity."""

from __future__ import annotations

import base64
import secrets
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from pathlib import Path
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from gadgetry.core.config import Settings
from gadgetry.core.errors import ConfigError, SecurityTokenError
from gadgetry.core.model import FetchRequest, FetchResponse
from gadgetry.transports.base import Fetcher

_RESERVED_PREFIXES = ("oauth", "xoauth", "opensocial")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def _encode(value: str) -> str:
    return quote(value, safe="-._~")


def normalize_url(url: str) -> str:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if parts.port and parts.port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{parts.port}"
    return urlunsplit((scheme, host, parts.path or "/", "", ""))


def signature_base_string(method: str, url: str, params: Sequence[tuple[str, str]]) -> str:
    encoded = sorted((_encode(key), _encode(value)) for key, value in params)
    normalized = "&".join(f"{key}={value}" for key, value in encoded)
    return "&".join((method.upper(), _encode(normalize_url(url)), _encode(normalized)))


class RequestSigner:
    def __init__(
        self,
        private_key: rsa.RSAPrivateKey,
        key_name: str,
        *,
        clock: Callable[[], float] = time.time,
        nonce: Callable[[], str] = lambda: secrets.token_hex(16),
    ) -> None:
        self.private_key = private_key
        self.key_name = key_name
        self._clock = clock
        self._nonce = nonce

    def sign(self, request: FetchRequest) -> str:
        """Return request.url with identity and OAuth signature parameters added.

        Caller-supplied oauth/xoauth/opensocial parameters are stripped so they
        cannot spoof the signed identity.
        """
        token = request.token
        if token is None:
            raise SecurityTokenError(f"Signed fetch of {request.url} requires a security token")

        parts = urlsplit(request.url)
        params = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if not key.lower().startswith(_RESERVED_PREFIXES)
        ]
        if request.owner_signed and token.owner_id:
            params.append(("opensocial_owner_id", token.owner_id))
        if request.viewer_signed and token.viewer_id:
            params.append(("opensocial_viewer_id", token.viewer_id))
        if token.app_id:
            params.append(("opensocial_app_id", token.app_id))
        if token.app_url:
            params.append(("opensocial_app_url", token.app_url))
        params.extend(
            [
                ("xoauth_signature_publickey", self.key_name),
                ("oauth_nonce", self._nonce()),
                ("oauth_timestamp", str(int(self._clock()))),
                ("oauth_signature_method", "RSA-SHA1"),
                ("oauth_version", "1.0"),
            ]
        )

        base = signature_base_string("GET", request.url, params)
        signature = self.private_key.sign(base.encode("utf-8"), padding.PKCS1v15(), hashes.SHA1())
        params.append(("oauth_signature", base64.b64encode(signature).decode("ascii")))

        query = "&".join(f"{_encode(key)}={_encode(value)}" for key, value in params)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


class SigningFetcher:
    """Fetcher decorator that signs each request before delegating it."""

    def __init__(self, fetcher: Fetcher, signer: RequestSigner) -> None:
        self.fetcher = fetcher
        self.signer = signer

    def _signed(self, request: FetchRequest) -> FetchRequest:
        return replace(request, url=self.signer.sign(request), request_id=request.key)

    def fetch(self, request: FetchRequest) -> FetchResponse:
        return self.fetcher.fetch(self._signed(request))

    def multi_fetch(self, requests: Sequence[FetchRequest]) -> list[FetchResponse]:
        return self.fetcher.multi_fetch([self._signed(request) for request in requests])


class KeyFileSigningFetcherFactory:
    """Builds signing fetchers from a PEM private key file."""

    def __init__(self, key_file: Path, *, key_name: str, passphrase: str | None = None) -> None:
        try:
            data = key_file.read_bytes()
        except OSError as exc:
            raise ConfigError(f"Could not read private key file {key_file}: {exc}") from exc
        try:
            private_key = serialization.load_pem_private_key(
                data,
                password=passphrase.encode("utf-8") if passphrase else None,
            )
        except (ValueError, TypeError) as exc:
            raise ConfigError(f"Could not load private key from {key_file}: {exc}") from exc
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ConfigError(f"Private key in {key_file} must be an RSA key")
        self.private_key = private_key
        self.key_name = key_name

    @classmethod
    def from_settings(cls, settings: Settings) -> KeyFileSigningFetcherFactory:
        if settings.private_key_file is None:
            raise ConfigError("Signed preloads require 'private_key_file' in the gadgetry config")
        return cls(
            settings.private_key_file,
            key_name=settings.private_key_name,
            passphrase=settings.private_key_phrase,
        )

    def get_signing_fetcher(self, fetcher: Fetcher) -> SigningFetcher:
        return SigningFetcher(fetcher, RequestSigner(self.private_key, self.key_name))
