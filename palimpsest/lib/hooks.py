"""Async action/filter hooks around the revision ledger.

Side effects of a committed ledger transition (notification e-mails, cache
purges, search reindexing) belong to the surrounding application and are
attached here instead of inside the transaction.

Actions: callbacks run for their side effects
Filters: callbacks that transform a value and return it

Usage:
    from palimpsest.lib.hooks import action, filter, AFTER_SUGGESTION_APPLIED

    @action(AFTER_SUGGESTION_APPLIED)
    async def send_approval_email(suggestion, change):
        ...

    @filter(HISTORY_ACTOR_DISPLAY)
    async def add_names(display, editor_id):
        display["name"] = await directory.name_for(editor_id)
        return display
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(order=True)
class HookHandler:
    """A registered hook handler with priority."""

    priority: int
    callback: Callable = field(compare=False)

    async def call(self, *args: Any, **kwargs: Any) -> Any:
        """Call the handler, handling both sync and async callbacks."""
        result = self.callback(*args, **kwargs)
        if asyncio.iscoroutine(result):
            return await result
        return result


class HookRegistry:
    """Central registry for all hooks (actions and filters)."""

    def __init__(self) -> None:
        self._actions: dict[str, list[HookHandler]] = defaultdict(list)
        self._filters: dict[str, list[HookHandler]] = defaultdict(list)

    def add_action(self, hook_name: str, callback: Callable[..., Any], priority: int = 10) -> None:
        """Register an action callback. Lower priorities run first."""
        self._actions[hook_name].append(HookHandler(priority=priority, callback=callback))
        self._actions[hook_name].sort()

    def add_filter(self, hook_name: str, callback: Callable[..., T], priority: int = 10) -> None:
        """Register a filter callback. Lower priorities run first."""
        self._filters[hook_name].append(HookHandler(priority=priority, callback=callback))
        self._filters[hook_name].sort()

    def remove_action(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        return self._remove(self._actions, hook_name, callback)

    def remove_filter(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        return self._remove(self._filters, hook_name, callback)

    @staticmethod
    def _remove(registry: dict[str, list[HookHandler]], hook_name: str, callback: Callable[..., Any]) -> bool:
        handlers = registry.get(hook_name, [])
        for i, handler in enumerate(handlers):
            if handler.callback is callback:
                handlers.pop(i)
                return True
        return False

    def has_action(self, hook_name: str) -> bool:
        return bool(self._actions.get(hook_name))

    def has_filter(self, hook_name: str) -> bool:
        return bool(self._filters.get(hook_name))

    async def do_action(self, hook_name: str, *args: Any, **kwargs: Any) -> None:
        """Execute all registered action callbacks, propagating failures."""
        from palimpsest.lib.observability import span

        with span(f"hook.action:{hook_name}", hook_name=hook_name):
            for handler in list(self._actions.get(hook_name, [])):
                await handler.call(*args, **kwargs)

    async def do_action_after_commit(self, hook_name: str, *args: Any, **kwargs: Any) -> None:
        """Execute action callbacks for a transition that is already committed.

        A failing handler is logged and skipped; it cannot undo the commit, so
        it must not turn a successful operation into an error for the caller.
        """
        from palimpsest.lib.observability import span

        with span(f"hook.action:{hook_name}", hook_name=hook_name):
            for handler in list(self._actions.get(hook_name, [])):
                try:
                    await handler.call(*args, **kwargs)
                except Exception:
                    logger.warning(
                        "Post-commit hook %s failed in %r", hook_name, handler.callback, exc_info=True
                    )

    async def apply_filters(self, hook_name: str, value: T, *args: Any, **kwargs: Any) -> T:
        """Pass ``value`` through every registered filter and return the result."""
        from palimpsest.lib.observability import span

        with span(f"hook.filter:{hook_name}", hook_name=hook_name):
            for handler in list(self._filters.get(hook_name, [])):
                value = await handler.call(value, *args, **kwargs)
            return value

    def clear(self) -> None:
        """Clear all registered hooks. Useful for testing."""
        self._actions.clear()
        self._filters.clear()


# Global singleton registry
hooks = HookRegistry()


def action(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Decorator to register a function as an action handler."""

    def decorator(func: Callable) -> Callable:
        hooks.add_action(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


def filter(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Decorator to register a function as a filter handler."""

    def decorator(func: Callable) -> Callable:
        hooks.add_filter(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


# Actions (fired after the ledger transaction commits)
AFTER_SUGGESTION_APPLIED = "after_suggestion_applied"
AFTER_SUGGESTION_REJECTED = "after_suggestion_rejected"
AFTER_CHANGE_ROLLED_BACK = "after_change_rolled_back"
AFTER_MANUAL_EDIT = "after_manual_edit"

# Filters
HISTORY_ACTOR_DISPLAY = "history_actor_display"
