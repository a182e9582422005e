from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from flowio_console.domain.models import ROOT_CACHE_KEY, ConfigTreeNode
from flowio_console.services.device_api import DeviceApiClient


logger = logging.getLogger(__name__)


def normalize_path(value: str) -> str:
    return str(value or "").strip().strip("/")


def cache_key(prefix: str) -> str:
    normalized = normalize_path(prefix)
    return normalized or ROOT_CACHE_KEY


def normalize_children(raw_children: Iterable[Any]) -> tuple[str, ...]:
    names = {
        normalize_path(name)
        for name in raw_children
        if isinstance(name, str) and name
    }
    names.discard("")
    return tuple(sorted(names))


class ConfigTreeCache:
    """Memoized child listings of the remote configuration tree, keyed by prefix.

    Nodes are replaced wholesale on every fetch. ``invalidate_all`` drops every
    branch because the device may rewrite siblings of the branch being edited.
    """

    def __init__(self, api: DeviceApiClient) -> None:
        self.api = api
        self._nodes: dict[str, ConfigTreeNode] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, prefix: object) -> bool:
        return isinstance(prefix, str) and cache_key(prefix) in self._nodes

    def get(self, prefix: str) -> ConfigTreeNode | None:
        return self._nodes.get(cache_key(prefix))

    def invalidate_all(self) -> None:
        logger.debug("Dropping %d cached config tree nodes", len(self._nodes))
        self._nodes.clear()

    async def fetch_children(self, prefix: str, force_reload: bool = False) -> ConfigTreeNode:
        normalized = normalize_path(prefix)
        key = cache_key(normalized)
        if not force_reload:
            cached = self._nodes.get(key)
            if cached is not None:
                return cached

        payload = await self.api.get_config_children(normalized)
        node = ConfigTreeNode(
            prefix=normalized,
            has_exact_module=bool(payload.get("has_exact")),
            children=normalize_children(payload.get("children") or []),
        )
        self._nodes[key] = node
        return node
