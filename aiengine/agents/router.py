"""Router — picks the model backend for a task with a cheap static heuristic.

Long tasks, or tasks mentioning a configured complex-task keyword, go to the
deliberate backend; everything else goes to the fast one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aiengine.config import RouterConfig
    from aiengine.models.base import ModelAdapter, Tier

logger = logging.getLogger(__name__)


def select_tier(task: str, config: RouterConfig) -> Tier:
    """Pure function of task length and keyword content."""
    if len(task) > config.length_threshold:
        return "deliberate"
    lowered = task.lower()
    if any(keyword in lowered for keyword in config.complex_keywords):
        return "deliberate"
    return "fast"


class Router:
    """Maps a task to a freshly built adapter for the selected tier."""

    def __init__(
        self,
        config: RouterConfig,
        factories: Mapping[Tier, Callable[[], ModelAdapter]],
    ):
        missing = {"deliberate", "fast"} - set(factories)
        if missing:
            raise ValueError(f"Router needs an adapter factory for tiers: {sorted(missing)}")
        self.config = config
        self._factories = dict(factories)

    def select_tier(self, task: str) -> Tier:
        return select_tier(task, self.config)

    def choose(self, task: str) -> ModelAdapter:
        tier = self.select_tier(task)
        adapter = self._factories[tier]()
        logger.info(f"Routed task (len={len(task)}) to {tier} backend '{adapter.name}'")
        return adapter
