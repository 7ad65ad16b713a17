"""Streaming query execution.

:meth:`RowStream.stream` is the single lazy interface over the store's
push-style result stream. :meth:`RowStream.collect` (all-or-nothing) and
:meth:`RowStream.push` (callbacks) are both derived from it.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from pythingy._store import TimeSeriesStore
from pythingy.exceptions import ThingyQueryError
from pythingy.models.query import Row

_logger = logging.getLogger(__name__)

RowCallback = Callable[[Row], Any]
ErrorCallback = Callable[[ThingyQueryError], Any]
CompleteCallback = Callable[[], Any]


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class RowStream:
    """Executes Flux queries against a :class:`TimeSeriesStore`."""

    def __init__(self, store: TimeSeriesStore) -> None:
        self._store = store

    async def stream(self, query: str) -> AsyncIterator[Row]:
        """Yield rows as the store delivers them.

        Any failure, before or during the stream, surfaces as a single
        :class:`ThingyQueryError`; rows already yielded stay delivered.
        """
        received = 0
        try:
            async for values in self._store.query_stream(query):
                row = Row.from_flux(values)
                received += 1
                yield row
        except ThingyQueryError as exc:
            exc.query = exc.query or query
            exc.rows_received = received
            raise
        except Exception as exc:
            raise ThingyQueryError(
                f"Query failed after {received} rows: {exc}",
                query=query,
                rows_received=received,
            ) from exc

    async def collect(self, query: str) -> list[Row]:
        """Materialize the whole result in order.

        Strict all-or-nothing: on error no rows are returned, the raised
        :class:`ThingyQueryError` records how many were read.
        """
        rows: list[Row] = []
        async for row in self.stream(query):
            rows.append(row)
        _logger.debug("Query returned %d rows", len(rows))
        return rows

    async def push(
        self,
        query: str,
        on_row: RowCallback,
        on_error: ErrorCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> None:
        """Deliver rows to *on_row* as they arrive.

        Exactly one of *on_error* / *on_complete* is called at the end.
        Without *on_error* the failure is raised instead. Callbacks may be
        plain functions or coroutines.
        """
        try:
            async for row in self.stream(query):
                await _maybe_await(on_row(row))
        except ThingyQueryError as exc:
            if on_error is None:
                raise
            _logger.debug("Query stream failed after %d rows", exc.rows_received, exc_info=True)
            await _maybe_await(on_error(exc))
            return
        if on_complete is not None:
            await _maybe_await(on_complete())
