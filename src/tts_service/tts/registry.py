"""
Mode Registry.

Maps each enabled mode identifier to its single adapter instance. Built
once at startup and read-only afterwards, so concurrent requests share it
without locking.

Usage:
    registry = build_registry(config)
    adapter = registry.resolve("espeak")    # None for unknown modes
    registry.list_modes()                   # ["espeak", "gtts", ...]
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Optional

from tts_service.core.config import ServiceConfig
from tts_service.core.logging import get_logger, info, warn
from tts_service.tts.adapter import BaseAdapter

_LOG = get_logger("tts-service.registry")


class Mode(str, Enum):
    ESPEAK = "espeak"
    GTTS = "gtts"
    GCLOUD = "gcloud"
    POLLY = "polly"
    GWENT = "gwent"


class ModeRegistry:
    """
    Ordered, immutable mapping of mode id to adapter.

    Raises:
        ValueError: If two adapters claim the same mode.
    """

    def __init__(self, adapters: Iterable[BaseAdapter]):
        self._adapters: Dict[str, BaseAdapter] = {}
        for adapter in adapters:
            if adapter.mode in self._adapters:
                raise ValueError(f"Mode registered twice: {adapter.mode}")
            self._adapters[adapter.mode] = adapter
        self._modes = tuple(self._adapters)

    def resolve(self, mode_id: Optional[str]) -> Optional[BaseAdapter]:
        if not mode_id:
            return None
        return self._adapters.get(mode_id.strip().lower())

    def list_modes(self) -> List[str]:
        return list(self._modes)

    def adapters(self) -> List[BaseAdapter]:
        return [self._adapters[m] for m in self._modes]

    def __contains__(self, mode_id: str) -> bool:
        return mode_id in self._adapters

    def __len__(self) -> int:
        return len(self._modes)

    async def startup(self) -> None:
        for adapter in self.adapters():
            await adapter.startup()
        info(_LOG, "registry_ready", modes=",".join(self._modes))

    async def aclose(self) -> None:
        for adapter in self.adapters():
            await adapter.aclose()


def _create_adapter(mode: Mode, config: ServiceConfig) -> BaseAdapter:
    """
    Create the adapter for one mode.

    Adapter modules are imported lazily so unused SDK wrappers never load.
    """
    if mode is Mode.ESPEAK:
        from tts_service.tts.adapters.espeak_adapter import EspeakAdapter
        return EspeakAdapter(config.espeak)

    if mode is Mode.GTTS:
        from tts_service.tts.adapters.gtts_adapter import GttsAdapter
        return GttsAdapter(config.gtts)

    if mode is Mode.GCLOUD:
        from tts_service.tts.adapters.gcloud_adapter import GcloudAdapter
        return GcloudAdapter(config.gcloud)

    if mode is Mode.POLLY:
        from tts_service.tts.adapters.polly_adapter import PollyAdapter
        return PollyAdapter(config.polly)

    if mode is Mode.GWENT:
        from tts_service.tts.adapters.gwent_adapter import GwentAdapter
        return GwentAdapter(config.gwent)

    raise ValueError(f"Unknown mode: {mode}")


def build_registry(config: ServiceConfig) -> ModeRegistry:
    """
    Build the registry for ``config.server.modes``, in configured order.

    Raises:
        ValueError: If a configured mode is unknown or listed twice.
    """
    adapters = []
    for mode_id in config.server.modes:
        try:
            mode = Mode(mode_id)
        except ValueError:
            warn(_LOG, "unknown_mode", mode=mode_id)
            raise ValueError(f"Unknown mode: {mode_id}") from None
        adapters.append(_create_adapter(mode, config))
    return ModeRegistry(adapters)
