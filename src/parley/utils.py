"""URL helpers and concurrent fan-out."""

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from urllib.parse import quote, urlencode

import anyio

T = TypeVar("T")


def path_id(value: str | int) -> str:
    """Quote an id for use as a single URL path segment."""
    return quote(str(value), safe="")


def url_encode(data: Mapping[str, Any]) -> str:
    """Encode query parameters, skipping keys whose value is None."""
    return urlencode({k: v for k, v in data.items() if v is not None})


def query_string(data: Mapping[str, Any]) -> str:
    encoded = url_encode(data)
    return f"?{encoded}" if encoded else ""


@dataclass
class Settled(Generic[T]):
    """Outcome of one operation in a settle_all batch."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(
    operations: Iterable[Callable[[], Awaitable[T]]],
) -> list[Settled[T]]:
    """Run operations concurrently and wait for every one of them.

    Unlike a plain task group, one failure does not cancel the siblings.
    Results are returned in the order the operations were given.
    """
    ops = list(operations)
    results: list[Settled[T]] = [Settled() for _ in ops]

    async def run(index: int, op: Callable[[], Awaitable[T]]) -> None:
        try:
            results[index].value = await op()
        except Exception as e:
            results[index].error = e

    async with anyio.create_task_group() as tg:
        for index, op in enumerate(ops):
            tg.start_soon(run, index, op)

    return results
