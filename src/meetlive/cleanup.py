import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CleanupRegistry:
    """Collects teardown actions and runs each of them once."""

    def __init__(self):
        self._actions: list[tuple[str, Callable[[], Any]]] = []

    def add(self, action: Callable[[], Any], name: str = "") -> None:
        self._actions.append((name or getattr(action, "__name__", "cleanup"), action))

    def __len__(self):
        return len(self._actions)

    async def run(self) -> int:
        """Run and drop every registered action. Returns how many failed."""
        actions, self._actions = self._actions, []
        if actions:
            logger.info("Performing global cleanup (%d actions)", len(actions))

        failures = 0
        for name, action in actions:
            try:
                result = action()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                failures += 1
                logger.exception("Error during cleanup step %s", name)
        return failures
