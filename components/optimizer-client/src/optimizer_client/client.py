"""Optimizer webhook client with a wall-clock deadline.

Configuration comes from ``care_shared.config.AppConfig``:
- OPTIMIZER_WEBHOOK_URL: webhook endpoint (required for ``OptimizerClient``).
- OPTIMIZER_API_TOKEN: bearer token attached to every request.
- OPTIMIZER_TIMEOUT_MS: budget for one call (defaults to 20000).

Failures are returned as values, never raised. One request is made per call;
this layer does not retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

import anyio
import httpx
from pydantic import ValidationError

from care_shared.config import AppConfig
from care_shared.models import DocumentationEntry, OptimizationResult
from optimizer_client.schemas import OptimizationResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallSuccess:
    """Deserialized response body, exactly as received."""

    value: Any


@dataclass(frozen=True)
class CallTimeoutError:
    """The deadline fired before a response arrived."""

    timeout_ms: int


@dataclass(frozen=True)
class CallTransportError:
    """Network-level failure (DNS, refused connection, reset...)."""

    cause: Exception


@dataclass(frozen=True)
class CallRemoteError:
    """The endpoint answered with a non-success status."""

    status_code: int
    status_text: str


@dataclass(frozen=True)
class CallUnexpectedError:
    """Anything else, including malformed response bodies."""

    message: str


CallFailure = Union[
    CallTimeoutError, CallTransportError, CallRemoteError, CallUnexpectedError
]
CallResult = Union[CallSuccess, CallFailure]


class RemoteCallClient:
    """Issue single POST requests bounded by a wall-clock timeout.

    Args:
        auth_token: Bearer credential attached as ``Authorization`` header.
        transport: Optional httpx transport (tests inject ``MockTransport``).
    """

    def __init__(
        self,
        auth_token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.auth_token = auth_token
        self._http = httpx.AsyncClient(transport=transport)

    async def __aenter__(self) -> "RemoteCallClient":
        return self

    async def __aexit__(self, _exc_type: object, _exc: object, _tb: object) -> None:
        await self.aclose()

    async def call(
        self, url: str, payload: dict[str, Any], timeout_ms: int
    ) -> CallResult:
        """POST ``payload`` as JSON to ``url`` within ``timeout_ms``.

        Args:
            url: Target endpoint.
            payload: JSON-serializable request body.
            timeout_ms: Positive budget in milliseconds for the whole exchange.

        Returns:
            ``CallSuccess`` with the parsed JSON body, or one of the failure
            variants. The deadline's cancel scope is closed on every path.

        Raises:
            ValueError: If ``timeout_ms`` is not positive.
        """
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

        timeout_s = timeout_ms / 1000
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.auth_token}",
        }
        try:
            with anyio.fail_after(timeout_s):
                response = await self._http.post(
                    url, json=payload, headers=headers, timeout=timeout_s
                )
        except (TimeoutError, httpx.TimeoutException):
            logger.warning("Optimizer call to %s timed out after %d ms", url, timeout_ms)
            return CallTimeoutError(timeout_ms=timeout_ms)
        except httpx.RequestError as exc:
            logger.warning("Optimizer request error: %s", exc)
            return CallTransportError(cause=exc)
        except Exception as exc:
            logger.exception("Optimizer call failed unexpectedly")
            return CallUnexpectedError(message=str(exc))

        if not response.is_success:
            logger.warning(
                "Optimizer returned %d: %s",
                response.status_code,
                response.text[:100],
            )
            return CallRemoteError(
                status_code=response.status_code,
                status_text=response.reason_phrase,
            )
        try:
            return CallSuccess(value=response.json())
        except ValueError:
            logger.warning("Optimizer response is not valid JSON: %s", response.text[:100])
            return CallUnexpectedError(message="Response body is not valid JSON")

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()


class OptimizerClient:
    """Bind ``RemoteCallClient`` to the configured optimization webhook.

    Args:
        config: Endpoint, token and timeout settings.
        transport: Optional httpx transport for tests.
    """

    def __init__(
        self,
        config: AppConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.endpoint_url:
            raise ValueError(
                "Optimizer endpoint is required. Set OPTIMIZER_WEBHOOK_URL."
            )
        self.endpoint_url = config.endpoint_url
        self.timeout_ms = config.timeout_ms
        self._remote = RemoteCallClient(config.auth_token, transport=transport)

    async def __aenter__(self) -> "OptimizerClient":
        return self

    async def __aexit__(self, _exc_type: object, _exc: object, _tb: object) -> None:
        await self.aclose()

    async def optimize(self, entry: DocumentationEntry) -> CallResult:
        """Send ``entry`` to the optimizer.

        Returns:
            ``CallSuccess`` wrapping an ``OptimizationResult``, or the failure
            from the remote call. A body that does not have the expected shape
            becomes ``CallUnexpectedError``.
        """
        outcome = await self._remote.call(
            self.endpoint_url, entry.to_payload(), self.timeout_ms
        )
        if not isinstance(outcome, CallSuccess):
            return outcome
        try:
            parsed = OptimizationResponse.model_validate(outcome.value)
        except ValidationError as exc:
            logger.warning("Malformed optimizer response: %s", exc)
            return CallUnexpectedError(message="Malformed optimizer response")
        result: OptimizationResult = parsed.to_result()
        logger.info(
            "Optimizer returned %d mappings for %s",
            len(result.mappings),
            entry.patient_name,
        )
        return CallSuccess(value=result)

    async def aclose(self) -> None:
        await self._remote.aclose()
