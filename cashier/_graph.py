"""
Graph runner — thin sugar over nodnod.

    from cashier import _graph as G

    @G.node
    class LoadTransaction:
        @classmethod
        async def __compose__(cls, request: CommitRequest, ledger: Ledger) -> "LoadTransaction":
            ...

    node = await G.run(LoadTransaction).inject(request).inject_as(Ledger, ledger)

Note: модули с нодами НЕ используют 'from __future__ import annotations' —
nodnod читает аннотации __compose__ в runtime.
"""

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import EventLoopAgent, Node, Scope, Value
from nodnod import scalar_node as node


# ═══════════════════════════════════════════════════════════════════════════════
# Scope
# ═══════════════════════════════════════════════════════════════════════════════


class TypedScope:
    """nodnod.Scope with typed push/get."""

    __slots__ = ("_scope",)

    def __init__(self, detail: str = "cashier") -> None:
        self._scope = Scope(detail=detail)

    @property
    def inner(self) -> Scope:
        return self._scope

    def push[T](self, typ: type[T], value: T) -> None:
        self._scope.push(Value(typ, value))

    def get[T](self, typ: type[T]) -> T:
        found = self._scope.get(typ)
        if found is None:
            raise KeyError(f"{typ.__name__} was not resolved")
        return cast(T, found.value)

    async def __aenter__(self) -> "TypedScope":
        await self._scope.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._scope.__aexit__(*args)


# ═══════════════════════════════════════════════════════════════════════════════
# Run: awaitable builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Run[T]:
    """
    Resolve `target` and everything it depends on.

    Injections are keyed by type. Protocol-typed collaborators
    (Ledger, OrderStore) go through inject_as, plain values through inject.
    """

    target: type[T]
    injections: tuple[tuple[type[Any], Any], ...] = ()

    def inject(self, value: object) -> "Run[T]":
        return self.inject_as(cast(type[Any], type(value)), value)

    def inject_as[V](self, typ: type[V], value: V) -> "Run[T]":
        return Run(self.target, (*self.injections, (typ, value)))

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], self.target)})

        async with TypedScope(detail="run") as scope:
            for typ, value in self.injections:
                scope.push(typ, value)

            run_agent = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(agent, "run"),
            )
            await run_agent(scope.inner, {})
            return scope.get(self.target)


def run[T](target: type[T]) -> Run[T]:
    """Start a run for `target`."""
    return Run(target)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("node", "TypedScope", "Run", "run")
