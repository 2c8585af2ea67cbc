"""
Graph — sugar over nodnod.

    from storefront import _graph as G

    @G.node
    class SnapshotNode:
        @classmethod
        async def __compose__(cls, request: RequestNode, ctx: QuoteContext) -> "SnapshotNode":
            ...

    node = await G.compose(QuoteNode, request, ctx)

Inputs are injected under their runtime type.
"""

from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import scalar_node as node
from nodnod import Scope, Value, EventLoopAgent, Node


async def compose[T](target: type[T], *inputs: object) -> T:
    """Build an agent for target's dependency graph, inject inputs, run it."""
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})

    scope = Scope(detail="compose")
    async with scope:
        for value in inputs:
            scope.push(Value(cast(type[Any], type(value)), value))

        run = cast(
            Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
            getattr(agent, "run"),
        )
        await run(scope, {})

        result = scope.get(target)
        if result is None:
            raise KeyError(f"{target.__name__} not found in scope")
        return cast(T, result.value)


__all__ = ("node", "compose")
