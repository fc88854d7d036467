#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import base64
import hashlib
import time
from logging import getLogger
from threading import Lock

import jwt
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric.ec import (
    SECP256R1,
    SECP384R1,
    SECP521R1,
    EllipticCurvePrivateKey,
)
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_pem_private_key,
)

from .constants import TOKEN_EXPIRY_MARGIN, TOKEN_LIFETIME
from .errorcode import (
    ER_EMPTY_PRIVATE_KEY,
    ER_FAILED_TO_SIGN_TOKEN,
    ER_INVALID_PRIVATE_KEY,
    ER_UNSUPPORTED_KEY_TYPE,
)
from .errors import AuthError
from .token_cache import (
    AuthToken,
    InMemoryTokenCache,
    NoopTokenCache,
    TokenCache,
    TokenKey,
)

logger = getLogger(__name__)

FINGERPRINT_PREFIX = "SHA256:"


def normalize_private_key(private_key: str | bytes) -> bytes:
    """Turns literal ``\\n`` sequences into newlines.

    Keys passed through environment variables usually arrive on one line.
    """
    if isinstance(private_key, bytes):
        private_key = private_key.decode("utf-8")
    return private_key.replace("\\n", "\n").strip().encode("utf-8")


def calculate_public_key_fingerprint(
    private_key: RSAPrivateKey | EllipticCurvePrivateKey,
) -> str:
    # get public key bytes
    public_key_der = private_key.public_key().public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo
    )

    # take sha256 on raw bytes and then do base64 encode
    sha256hash = hashlib.sha256()
    sha256hash.update(public_key_der)

    public_key_fp = FINGERPRINT_PREFIX + base64.b64encode(sha256hash.digest()).decode(
        "utf-8"
    )
    logger.debug("Public key fingerprint is %s", public_key_fp)

    return public_key_fp


class KeyPairTokenIssuer:
    """Produces key-pair JWTs for the SQL API and caches them in two tiers.

    The in-process tier is shared by every issuer in the process unless
    another one is injected. The external tier, when configured, survives
    process restarts. Both tiers are keyed by account and user, and a token
    is never handed out within ``TOKEN_EXPIRY_MARGIN`` seconds of its expiry.
    """

    ALG_RS256 = "RS256"
    ALG_ES256 = "ES256"
    ALG_ES384 = "ES384"
    ALG_ES512 = "ES512"

    ISSUER = "iss"
    SUBJECT = "sub"
    EXPIRE_TIME = "exp"
    ISSUE_TIME = "iat"

    def __init__(
        self,
        account: str,
        user: str,
        private_key: str | bytes,
        public_key_fingerprint: str = "",
        private_key_passphrase: str | bytes | None = None,
        memory_cache: InMemoryTokenCache | None = None,
        external_cache: TokenCache | None = None,
        lifetime_in_seconds: int = TOKEN_LIFETIME,
    ) -> None:
        self._account = account
        self._user = user
        self._private_key = private_key
        self._public_key_fingerprint = public_key_fingerprint or ""
        if isinstance(private_key_passphrase, str):
            private_key_passphrase = private_key_passphrase.encode("utf-8")
        self._private_key_passphrase: bytes | None = private_key_passphrase or None
        self._memory_cache = (
            memory_cache if memory_cache is not None else InMemoryTokenCache.default()
        )
        self._external_cache = (
            external_cache if external_cache is not None else NoopTokenCache()
        )
        self._lifetime = lifetime_in_seconds
        self._key = TokenKey(account=account, user=user)
        self._lock = Lock()

    @property
    def cache_key(self) -> TokenKey:
        return self._key

    def get_token(self) -> str:
        return self.get_token_with_expiry().token

    def get_token_with_expiry(self) -> AuthToken:
        with self._lock:
            cached = self._memory_cache.get(self._key)
            if cached is not None and cached.is_valid(TOKEN_EXPIRY_MARGIN):
                logger.debug("Using in-process cached token for %s", self._user)
                return cached

            cached = self._external_cache.get(self._key)
            if cached is not None and cached.is_valid(TOKEN_EXPIRY_MARGIN):
                logger.debug("Using externally cached token for %s", self._user)
                self._memory_cache.put(self._key, cached, self._ttl(cached))
                return cached

            logger.debug("Generating new token for %s", self._user)
            token = self._generate()
            ttl = self._ttl(token)
            self._memory_cache.put(self._key, token, ttl)
            self._external_cache.put(self._key, token, ttl)
            return token

    def invalidate(self) -> None:
        """Drops this account and user's token from both tiers."""
        with self._lock:
            self._memory_cache.remove(self._key)
            self._external_cache.remove(self._key)

    @staticmethod
    def _ttl(token: AuthToken) -> float:
        return token.expiry - TOKEN_EXPIRY_MARGIN - time.time()

    def _load_private_key(self) -> RSAPrivateKey | EllipticCurvePrivateKey:
        if not self._private_key:
            raise AuthError(
                msg="Private key content is empty",
                errno=ER_EMPTY_PRIVATE_KEY,
            )
        try:
            private_key = load_pem_private_key(
                data=normalize_private_key(self._private_key),
                password=self._private_key_passphrase,
                backend=default_backend(),
            )
        except Exception as e:
            raise AuthError(
                msg=f"Failed to load private key: {e}\nPlease provide a valid "
                "RSA or ECDSA private key in PEM format. If the key is "
                "encrypted, provide the passphrase via private_key_passphrase",
                errno=ER_INVALID_PRIVATE_KEY,
            ) from e

        if not isinstance(private_key, (RSAPrivateKey, EllipticCurvePrivateKey)):
            raise AuthError(
                msg=f"Private key type ({private_key.__class__.__name__}) not supported."
                "\nPlease provide a valid RSA or ECDSA private key in PEM format",
                errno=ER_UNSUPPORTED_KEY_TYPE,
            )
        return private_key

    def _fingerprint(self, private_key: RSAPrivateKey | EllipticCurvePrivateKey) -> str:
        configured = self._public_key_fingerprint.strip()
        if not configured:
            return calculate_public_key_fingerprint(private_key)
        if configured.startswith(FINGERPRINT_PREFIX):
            return configured
        return FINGERPRINT_PREFIX + configured

    def _algorithm(self, private_key: RSAPrivateKey | EllipticCurvePrivateKey) -> str:
        # select algorithm based on key type and curve
        if isinstance(private_key, EllipticCurvePrivateKey):
            curve = private_key.curve
            if isinstance(curve, SECP256R1):
                return self.ALG_ES256
            elif isinstance(curve, SECP384R1):
                return self.ALG_ES384
            elif isinstance(curve, SECP521R1):
                return self.ALG_ES512
            raise AuthError(
                msg=f"Unsupported EC curve: {curve.name}. Supported: SECP256R1, SECP384R1, SECP521R1",
                errno=ER_UNSUPPORTED_KEY_TYPE,
            )
        return self.ALG_RS256

    def _generate(self) -> AuthToken:
        private_key = self._load_private_key()
        algorithm = self._algorithm(private_key)

        now = int(time.time())
        expiry = now + self._lifetime
        payload = {
            self.ISSUER: f"{self._user}.{self._fingerprint(private_key)}",
            self.SUBJECT: self._user,
            self.ISSUE_TIME: now,
            self.EXPIRE_TIME: expiry,
        }

        try:
            _jwt_token = jwt.encode(payload, private_key, algorithm=algorithm)
        except Exception as e:
            raise AuthError(
                msg=f"Failed to sign token: {e}",
                errno=ER_FAILED_TO_SIGN_TOKEN,
            ) from e

        # jwt.encode() returns bytes in pyjwt 1.x and a string
        # in pyjwt 2.x
        if isinstance(_jwt_token, bytes):
            _jwt_token = _jwt_token.decode("utf-8")

        return AuthToken(token=_jwt_token, expiry=expiry)
