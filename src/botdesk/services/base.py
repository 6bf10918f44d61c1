"""Lifecycle contract for components owned by the service manager."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Service(ABC):
    """Started with the application, stopped in reverse order.

    ``health_check`` results are reported by the ``/health`` route under
    ``service_name``.
    """

    service_name: str

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True while the service can do its job."""
