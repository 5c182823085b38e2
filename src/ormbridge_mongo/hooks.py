"""Observer hooks around dispatched commands and transactions."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("ormbridge.mongo.hooks")

T = TypeVar("T")


@dataclass
class HookResult(Generic[T]):
    """
    Value returned by a ``before`` observer.

    Attributes:
        value: Result to hand back to the caller instead of running the command.
        handled: If ``True``, the native command is skipped.
    """

    value: T
    handled: bool = True


@dataclass
class ExecuteContext:
    """
    Context passed to observers of a dispatched command.

    Attributes:
        model: Model name.
        collection: The resolved collection handle.
        req: ``{"command": <legacy name>, "params": [...]}``.
        res: Native result, set before ``after`` observers run.
        error: Native error, if the command failed.
        options: Call options.
    """

    model: str
    collection: Any = None
    req: dict[str, Any] = field(default_factory=dict)
    res: Any = None
    error: BaseException | None = None
    options: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class Observer(Protocol):
    """An observer may be sync or async; its return value is only read for
    ``before`` events."""

    def __call__(self, context: Any) -> Any: ...


class ObserverRegistry:
    """Named observer lists, notified in registration order."""

    def __init__(self) -> None:
        self._observers: dict[str, list[Observer]] = {}

    def observe(self, event: str, observer: Observer) -> None:
        """Register ``observer`` for ``event`` (e.g. ``"before execute"``)."""
        self._observers.setdefault(event, []).append(observer)

    def remove_observers(self, event: str) -> None:
        self._observers.pop(event, None)

    def clear(self) -> None:
        self._observers.clear()

    def has_observers(self, event: str) -> bool:
        return bool(self._observers.get(event))

    async def notify(self, event: str, context: Any) -> HookResult[Any] | None:
        """Run the observers of ``event``.

        Stops at the first observer that returns a handled :class:`HookResult`
        and returns it.
        """
        for observer in list(self._observers.get(event, [])):
            result = observer(context)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, HookResult) and result.handled:
                logger.debug("Observer short-circuited %r", event)
                return result
        return None

    async def notify_around(
        self,
        operation: str,
        context: Any,
        work: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run ``before <operation>``, the work, then ``after <operation>``.

        A handled result from a ``before`` observer replaces the work. Errors
        from the work are recorded on ``context.error`` and re-raised after
        the ``after`` observers ran.
        """
        short_circuit = await self.notify(f"before {operation}", context)
        if short_circuit is not None:
            context.res = short_circuit.value
            return short_circuit.value
        try:
            context.res = await work()
        except Exception as e:
            context.error = e
            await self.notify(f"after {operation}", context)
            raise
        await self.notify(f"after {operation}", context)
        return context.res
