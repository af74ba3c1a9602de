"""Tests for mutations."""

import asyncio

from tiny_query import (
    LoadFailure,
    LoadSuccess,
    MutationState,
    QueryClient,
    create_mutation,
    fail,
    succeed,
)


async def add(a: int, b: int) -> LoadSuccess[int]:
    return succeed(a + b)


class TestMutate:
    """Tests for Mutation.mutate()."""

    def test_initial_state(self) -> None:
        """A new mutation is idle with nothing recorded."""
        mutation = create_mutation(add)
        assert mutation.result == MutationState(loading=False, error=None, data=None)

    async def test_success(self) -> None:
        """A successful run stores the data."""
        mutation = create_mutation(add)
        state = await mutation.mutate(2, 3)
        assert state == MutationState(loading=False, error=None, data=5)
        assert mutation.result is state

    async def test_arguments_forwarded(self) -> None:
        """Positional and keyword arguments reach the operation."""
        received: list[tuple[tuple, dict]] = []

        async def save(*args: object, **kwargs: object) -> LoadSuccess[None]:
            received.append((args, kwargs))
            return succeed(None)

        await create_mutation(save).mutate("todo", done=True)
        assert received == [(("todo",), {"done": True})]

    async def test_failure_clears_data(self) -> None:
        """A failed run records the error and drops the previous data."""
        outcomes = [succeed("saved"), fail("conflict")]

        async def save() -> LoadSuccess[str] | LoadFailure[str]:
            return outcomes.pop(0)

        mutation = create_mutation(save)
        await mutation.mutate()
        assert mutation.result.data == "saved"

        state = await mutation.mutate()
        assert state == MutationState(loading=False, error="conflict", data=None)

    async def test_raised_exception_becomes_error(self) -> None:
        """An exception from the operation is caught and stored as the error."""
        boom = RuntimeError("boom")

        async def save() -> LoadSuccess[None]:
            raise boom

        state = await create_mutation(save).mutate()
        assert state.error is boom
        assert state.data is None
        assert state.loading is False

    async def test_next_run_clears_error(self) -> None:
        """Starting a run clears the previous error."""
        outcomes = [fail("nope"), succeed(1)]

        async def save() -> LoadSuccess[int] | LoadFailure[str]:
            return outcomes.pop(0)

        mutation = create_mutation(save)
        await mutation.mutate()
        assert mutation.result.error == "nope"

        state = await mutation.mutate()
        assert state.error is None
        assert state.data == 1

    async def test_loading_during_run(self) -> None:
        """loading is True while the operation is in flight."""
        release = asyncio.Event()

        async def save() -> LoadSuccess[str]:
            await release.wait()
            return succeed("done")

        mutation = create_mutation(save)
        task = asyncio.create_task(mutation.mutate())
        await asyncio.sleep(0)
        assert mutation.result.loading is True

        release.set()
        await task
        assert mutation.result.loading is False
        assert mutation.result.data == "done"


class TestClientMutation:
    """Tests for mutations created through a client."""

    async def test_success_invalidates_prefixes(self, client: QueryClient) -> None:
        """A successful mutation reloads the queries under its prefixes."""
        todos: list[str] = []

        async def load_todos() -> LoadSuccess[list[str]]:
            return succeed(list(todos))

        async def add_todo(title: str) -> LoadSuccess[str]:
            todos.append(title)
            return succeed(title)

        handle = client.create_query(["todos"], load_todos, stale_time="1h")()
        handle.subscribe()
        await client.wait_idle()
        assert handle.data == []

        mutation = client.create_mutation(add_todo, invalidates=[["todos"]])
        await mutation.mutate("Write docs")
        await client.wait_idle()

        assert handle.data == ["Write docs"]

    async def test_failure_does_not_invalidate(self, client: QueryClient) -> None:
        """A failed mutation leaves cached queries fresh."""
        calls = 0

        async def load_todos() -> LoadSuccess[int]:
            nonlocal calls
            calls += 1
            return succeed(calls)

        async def reject() -> LoadFailure[str]:
            return fail("rejected")

        handle = client.create_query(["todos"], load_todos, stale_time="1h")()
        handle.subscribe()
        await client.wait_idle()

        await client.create_mutation(reject, invalidates=[["todos"]]).mutate()
        await client.wait_idle()

        assert calls == 1
        assert handle.stale_at is not None
        assert not await handle.load()
