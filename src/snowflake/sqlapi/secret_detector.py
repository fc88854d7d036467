#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

"""The secret detector detects sensitive information.

It masks secrets that might be leaked through logging or exception text:
bearer tokens, signed JWTs, private key blocks and key passphrases.
"""
from __future__ import annotations

import logging
import re


class SecretDetector(logging.Formatter):
    BEARER_TOKEN_PATTERN = re.compile(
        r"(Bearer\s+)([a-z0-9=/_\-\+\.]{8,})",
        flags=re.IGNORECASE,
    )
    # header.payload.signature, each part base64url
    JWT_PATTERN = re.compile(
        r"eyJ[a-z0-9_\-]{4,}\.[a-z0-9_\-]{4,}\.[a-z0-9_\-]{4,}",
        flags=re.IGNORECASE,
    )
    PRIVATE_KEY_PATTERN = re.compile(
        r"(-----BEGIN (?:ENCRYPTED |RSA |EC )?PRIVATE KEY-----)"
        r"(.+?)"
        r"(-----END (?:ENCRYPTED |RSA |EC )?PRIVATE KEY-----)",
        flags=re.DOTALL | re.IGNORECASE,
    )
    CONNECTION_TOKEN_PATTERN = re.compile(
        r"(token)" r"([\'\"\s:=]+)" r"([a-z0-9=/_\-\+\.]{8,})",
        flags=re.IGNORECASE,
    )
    PASSPHRASE_PATTERN = re.compile(
        r"(passphrase"
        r"|password"
        r"|pwd)"
        r"([\'\"\s:=]+)"
        r"([a-z0-9!\"#\$%&\\\'\(\)\*\+\,-\./:;<=>\?\@\[\]\^_`\{\|\}~]{6,})",
        flags=re.IGNORECASE,
    )

    @staticmethod
    def mask_bearer_token(text):
        return SecretDetector.BEARER_TOKEN_PATTERN.sub(r"\1****", text)

    @staticmethod
    def mask_jwt(text):
        return SecretDetector.JWT_PATTERN.sub("****", text)

    @staticmethod
    def mask_private_key(text):
        return SecretDetector.PRIVATE_KEY_PATTERN.sub(r"\1XXXX\3", text)

    @staticmethod
    def mask_connection_token(text):
        return SecretDetector.CONNECTION_TOKEN_PATTERN.sub(r"\1\2****", text)

    @staticmethod
    def mask_passphrase(text):
        return SecretDetector.PASSPHRASE_PATTERN.sub(r"\1\2****", text)

    @staticmethod
    def mask_secrets(text: str | None) -> tuple[bool, str | None, str | None]:
        """Masks any secrets. This is the method that should be used by outside classes.

        Args:
            text: A string which may contain a secret.

        Returns:
            A tuple of whether anything was masked, the masked string and the
            error raised while masking, if any.
        """
        if text is None:
            return (False, None, None)

        masked = False
        err_str = None
        try:
            masked_text = SecretDetector.mask_passphrase(
                SecretDetector.mask_connection_token(
                    SecretDetector.mask_jwt(
                        SecretDetector.mask_bearer_token(
                            SecretDetector.mask_private_key(text)
                        )
                    )
                )
            )
            if masked_text != text:
                masked = True
        except Exception as ex:
            # the text may hold a secret, never hand it back unmasked
            masked = True
            masked_text = str(ex)
            err_str = str(ex)

        return masked, masked_text, err_str

    def format(self, record: logging.LogRecord) -> str:
        """Wrapper around logging module's formatter.

        This will ensure that the formatted message is free from sensitive credentials.

        Args:
            record: The logging record.

        Returns:
            Formatted desensitized log string.
        """
        try:
            unsanitized_log = super().format(record)
            masked, sanitized_log, err_str = SecretDetector.mask_secrets(
                unsanitized_log
            )
            if masked and err_str is not None:
                sanitized_log = "{} - {} {} - {} - {} - {}".format(
                    record.asctime,
                    record.threadName,
                    "secret_detector.py",
                    "sanitize_log_str",
                    record.levelname,
                    err_str,
                )
        except Exception as ex:
            sanitized_log = "{} - {} {} - {} - {} - {}".format(
                getattr(record, "asctime", ""),
                record.threadName,
                "secret_detector.py",
                "sanitize_log_str",
                record.levelname,
                "EXCEPTION - " + str(ex),
            )
        return sanitized_log
