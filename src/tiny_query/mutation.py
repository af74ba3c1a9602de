"""One-shot write operations with their own loading/error/data state."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, ParamSpec, TypeVar

from tiny_query.results import ensure_result
from tiny_query.types import LoadSuccess, MutationState

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")
E = TypeVar("E")


class Mutation(Generic[P, T, E]):
    """Runs a write operation and tracks its outcome.

    Mutations are not keyed, cached or shared: each instance owns one
    ``MutationState`` that every run updates in place. Unlike query
    loaders, an exception raised by the operation is caught and stored
    as the error.
    """

    def __init__(
        self,
        mutate_fn: Callable[P, Awaitable[Any]],
        *,
        on_success: Callable[[T], None] | None = None,
    ) -> None:
        self._mutate_fn = mutate_fn
        self._on_success = on_success
        self._result: MutationState[T, E] = MutationState()

    @property
    def result(self) -> MutationState[T, E]:
        return self._result

    async def mutate(self, *args: P.args, **kwargs: P.kwargs) -> MutationState[T, E]:
        """Run the operation and return the updated state."""
        state = self._result
        state.loading = True
        state.error = None
        succeeded = False
        try:
            outcome = ensure_result(await self._mutate_fn(*args, **kwargs))
            if isinstance(outcome, LoadSuccess):
                state.data = outcome.data
                succeeded = True
            else:
                state.data = None
                state.error = outcome.error
        except Exception as exc:
            logger.debug("Mutation raised %r", exc)
            state.data = None
            state.error = exc  # type: ignore[assignment]
        finally:
            state.loading = False

        if succeeded and self._on_success is not None:
            self._on_success(state.data)  # type: ignore[arg-type]
        return state


def create_mutation(
    mutate_fn: Callable[P, Awaitable[Any]],
) -> Mutation[P, Any, Any]:
    """Create a standalone mutation.

    Usage:
        save = create_mutation(save_todo)
        state = await save.mutate({"title": "Write docs"})
        if state.error is None:
            print(state.data)
    """
    return Mutation(mutate_fn)


__all__ = ["Mutation", "create_mutation"]
