"""Registry of configured channel adapters, keyed by channel kind."""

from __future__ import annotations

from typing import TYPE_CHECKING

from botdesk.core.errors import NotFoundError
from botdesk.core.types import ChannelKind

if TYPE_CHECKING:
    from botdesk.messenger.base import ChannelAdapter


class ChannelRegistry:
    """Tracks the adapter instance serving each channel kind."""

    def __init__(self) -> None:
        self._adapters: dict[ChannelKind, ChannelAdapter] = {}

    def register(self, adapter: ChannelAdapter) -> None:
        self._adapters[adapter.kind] = adapter

    def get(self, kind: ChannelKind | str) -> ChannelAdapter:
        try:
            return self._adapters[ChannelKind(kind)]
        except (KeyError, ValueError):
            raise NotFoundError("channel", str(kind)) from None

    def all(self) -> list[ChannelAdapter]:
        return list(self._adapters.values())

    def kinds(self) -> list[ChannelKind]:
        return list(self._adapters.keys())
