"""
Thin JSON-over-HTTP base for the course platform clients.

Every call goes through the client's RetryPolicy and CircuitBreaker; transport
failures and non-2xx responses surface as IntegrationError.
"""

from __future__ import annotations

from typing import Any

import requests

from companion.integrations.retry import CircuitBreaker, IntegrationError, RetryPolicy
from companion.observability.logging import get_logger
from companion.observability.telemetry import counter, time_block

logger = get_logger(__name__)


class JsonApiClient:
    """requests.Session wrapper with bearer auth, retries and a circuit breaker."""

    stage = "integration"

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float,
        session: requests.Session | None = None,
        retry_policy: RetryPolicy | None = None,
        circuit: CircuitBreaker | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.retry_policy = retry_policy or RetryPolicy(stage=self.stage)
        self.circuit = circuit or CircuitBreaker(stage=self.stage)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}", "Accept": "application/json"}

    def _require_token(self) -> None:
        if not self.token:
            raise IntegrationError(f"{self.stage} token is not configured")

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.base_url}/{path_or_url.lstrip('/')}"

    def _send(self, url: str, params: dict[str, Any] | None) -> requests.Response:
        try:
            response = self.session.get(
                url, headers=self._headers(), params=params, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise IntegrationError(f"{self.stage} request timed out") from e
        except requests.exceptions.RequestException as e:
            raise IntegrationError(f"{self.stage} request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise IntegrationError(
                f"{self.stage} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def get(self, path_or_url: str, params: dict[str, Any] | None = None) -> requests.Response:
        """
        GET with retries; raises IntegrationError on final failure.

        Side Effects:
            - Network call(s)
            - Updates the client's circuit breaker
            - Increments <stage>.requests / <stage>.failures counters
        """
        self._require_token()
        if not self.circuit.allow_request():
            raise IntegrationError(f"{self.stage} circuit open")

        counter(f"{self.stage}.requests")
        try:
            with time_block(f"{self.stage}.latency"):
                response = self.retry_policy.execute(self._send, self._url(path_or_url), params)
        except IntegrationError as e:
            self.circuit.record_failure()
            counter(f"{self.stage}.failures")
            logger.warning("%s GET %s failed: %s", self.stage, path_or_url, e)
            raise
        self.circuit.record_success()
        return response

    def get_json(self, path_or_url: str, params: dict[str, Any] | None = None) -> Any:
        response = self.get(path_or_url, params)
        try:
            return response.json()
        except ValueError as e:
            raise IntegrationError(f"{self.stage} returned invalid JSON") from e
