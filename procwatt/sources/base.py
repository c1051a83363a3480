"""Base classes for the two sample sources the engine consumes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

from procwatt.models.power_models import (
    PowerSample,
    PowerSourceKind,
    UtilizationSample,
)


class SampleSource(ABC):
    """Common lifecycle for sample sources.

    Sources are constructed explicitly, opened before the tick loop starts,
    and closed on shutdown. ``read()`` raises ``SourceUnavailableError`` when
    the backend cannot answer; it never returns zeros to mean "no data".
    """

    _opened: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of the source (e.g., 'rapl', 'psutil')."""
        pass

    @property
    def is_open(self) -> bool:
        """Whether open() has been called without a matching close()."""
        return self._opened

    def open(self) -> None:
        """Acquire backend resources.

        Raises:
            SourceUnavailableError: If the backend cannot be initialized.
        """
        self._opened = True

    def close(self) -> None:
        """Release backend resources. Safe to call more than once."""
        self._opened = False

    def check_permissions(self) -> bool:
        """Check if we have the privileges this source needs.

        Returns:
            True if permissions are sufficient, False otherwise.
        """
        return True

    def __enter__(self) -> SampleSource:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class PowerSampleSource(SampleSource):
    """Abstract source of package and system power readings."""

    @property
    @abstractmethod
    def kind(self) -> PowerSourceKind:
        """Return the backend type."""
        pass

    @abstractmethod
    def read(self) -> PowerSample:
        """Take one power reading.

        Returns:
            PowerSample with each field set or None independently.

        Raises:
            SourceUnavailableError: If no field could be read at all.
        """
        pass


class UtilizationSampleSource(SampleSource):
    """Abstract source of per-process CPU utilization."""

    @abstractmethod
    def read(self) -> UtilizationSample:
        """Take one utilization reading.

        Returns:
            UtilizationSample keyed by process name.

        Raises:
            SourceUnavailableError: If utilization could not be read.
        """
        pass
