"""Power source backed by a Prometheus-compatible metrics server.

Each configured PromQL expression must evaluate to watts. The package and
system expressions are queried independently, so one can be unavailable
while the other still answers.
"""

from __future__ import annotations

import math
import time
from typing import Any

import requests

from procwatt.errors import SourceUnavailableError
from procwatt.models.power_models import PowerSample, PowerSourceKind
from procwatt.sources.base import PowerSampleSource
from procwatt.utils.logger import Logger


class MetricsServerPowerSource(PowerSampleSource):
    """Reads power figures from the ``/api/v1/query`` instant-query endpoint."""

    API_ENDPOINT = "api/v1/query"

    def __init__(
        self,
        base_url: str,
        package_query: str | None = None,
        system_query: str | None = None,
        timeout: float = 5.0,
    ) -> None:
        """Create a metrics-server source.

        Args:
            base_url: Server root, e.g. ``http://localhost:9090``.
            package_query: PromQL expression for CPU package watts.
            system_query: PromQL expression for whole-system watts.
            timeout: Per-request timeout in seconds.

        Raises:
            ValueError: If neither query is given.
        """
        if not package_query and not system_query:
            raise ValueError("at least one of package_query or system_query is required")

        if not base_url.endswith("/"):
            base_url = base_url + "/"

        self.url = base_url + self.API_ENDPOINT
        self._package_query = package_query
        self._system_query = system_query
        self._timeout = timeout
        self._session: requests.Session | None = None
        self._logger = Logger.get("sources.metrics_server")

    @property
    def name(self) -> str:
        """Return the name of the power source."""
        return "metrics_server"

    @property
    def kind(self) -> PowerSourceKind:
        """Return the backend type."""
        return PowerSourceKind.METRICS_SERVER

    def open(self) -> None:
        """Create the HTTP session."""
        if self._session is None:
            self._session = requests.Session()
        super().open()

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None
        super().close()

    def check_permissions(self) -> bool:
        """Check that the server answers a trivial query."""
        try:
            self._query_watts("vector(1)")
        except SourceUnavailableError:
            return False
        return True

    def read(self) -> PowerSample:
        """Query package and system power.

        Raises:
            SourceUnavailableError: If every configured query failed.
        """
        package_mw: float | None = None
        system_mw: float | None = None
        errors: list[str] = []

        if self._package_query:
            try:
                package_mw = self._query_watts(self._package_query) * 1000.0
            except SourceUnavailableError as e:
                errors.append(e.reason)

        if self._system_query:
            try:
                system_mw = self._query_watts(self._system_query) * 1000.0
            except SourceUnavailableError as e:
                errors.append(e.reason)

        if package_mw is None and system_mw is None:
            raise SourceUnavailableError(self.name, "; ".join(errors))

        return PowerSample(
            timestamp=time.time(),
            package_power_mw=package_mw,
            system_power_mw=system_mw,
        )

    def _query_watts(self, expression: str) -> float:
        """Evaluate an instant query and sum the resulting series.

        Raises:
            SourceUnavailableError: On transport errors, non-success status,
                or an empty result.
        """
        http = self._session or requests
        try:
            response = http.get(
                self.url, params={"query": expression}, timeout=self._timeout
            )
            response.raise_for_status()
            data: dict[str, Any] = response.json()
        except requests.exceptions.Timeout:
            raise SourceUnavailableError(
                self.name, f"query timed out: {expression}"
            ) from None
        except requests.exceptions.RequestException as e:
            raise SourceUnavailableError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise SourceUnavailableError(self.name, "response was not JSON") from e

        if data.get("status") != "success":
            error = data.get("error", "unknown error")
            raise SourceUnavailableError(self.name, f"query failed: {error}")

        results = data.get("data", {}).get("result", [])
        if not results:
            raise SourceUnavailableError(self.name, f"no data for: {expression}")

        total = 0.0
        for series in results:
            try:
                total += float(series["value"][1])
            except (KeyError, IndexError, TypeError, ValueError) as e:
                raise SourceUnavailableError(
                    self.name, f"malformed series in result: {series!r}"
                ) from e

        if not math.isfinite(total) or total < 0:
            raise SourceUnavailableError(
                self.name, f"invalid value {total} for: {expression}"
            )

        self._logger.debug(f"{expression} = {total:.3f} W")
        return total
