"""Exceptions raised by the Blockfrost client and the lookup pipeline."""

from __future__ import annotations


class BlockfrostError(Exception):
    """Base class for failed Blockfrost requests.

    ``status_code`` and ``body`` are ``None`` for errors that never reached
    the API (missing configuration, timeouts).
    """

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class NotFoundError(BlockfrostError):
    """No assets or holders exist for the requested identifier."""


class AccessDeniedError(BlockfrostError):
    """The API key was rejected (HTTP 403)."""


class ApiError(BlockfrostError):
    """Any other non-success response."""


class MissingConfigError(BlockfrostError):
    """No Blockfrost API key configured."""


class LookupTimeoutError(BlockfrostError):
    """A lookup did not finish within ``lookup_timeout_sec``."""


def classify(status_code: int, body: str = "") -> BlockfrostError:
    """Map a non-success HTTP status to a typed error."""

    if status_code == 404:
        return NotFoundError(
            "Not found. Please check if the policy ID or asset ID is correct.",
            status_code,
            body,
        )
    if status_code == 403:
        return AccessDeniedError(
            "API key error (403 Forbidden). Please check your Blockfrost API key. "
            f"Details: {body}",
            status_code,
            body,
        )
    return ApiError(f"API error: {status_code}", status_code, body)
