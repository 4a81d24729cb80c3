# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for StateStream, batching and the stream operators."""

from __future__ import annotations

import asyncio

from budget_cycle.streams import (
    MutableStateStream,
    combine_latest,
    constant,
    map_stream,
    stream_batch,
    switch_map,
)


# ---------------------------------------------------------------------------
# TestStateStream
# ---------------------------------------------------------------------------


class TestStateStream:
    def test_subscriber_receives_current_value_immediately(self) -> None:
        stream = MutableStateStream(1)
        seen: list[int] = []
        stream.subscribe(seen.append)
        assert seen == [1]

    def test_only_distinct_values_are_delivered(self) -> None:
        stream = MutableStateStream(1)
        seen: list[int] = []
        stream.subscribe(seen.append)
        stream.emit(1)
        stream.emit(2)
        stream.emit(2)
        assert seen == [1, 2]

    def test_cancel_stops_delivery(self) -> None:
        stream = MutableStateStream(0)
        seen: list[int] = []
        subscription = stream.subscribe(seen.append)
        subscription.cancel()
        stream.emit(5)
        assert seen == [0]
        assert stream.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self) -> None:
        stream = MutableStateStream(0)
        seen: list[int] = []

        def explode(value: int) -> None:
            if value:
                raise RuntimeError("boom")

        stream.subscribe(explode)
        stream.subscribe(seen.append)
        stream.emit(3)
        assert seen == [0, 3]

    def test_constant_never_changes(self) -> None:
        stream = constant("fixed")
        seen: list[str] = []
        stream.subscribe(seen.append)
        assert stream.value == "fixed"
        assert seen == ["fixed"]


# ---------------------------------------------------------------------------
# TestStreamBatch
# ---------------------------------------------------------------------------


class TestStreamBatch:
    def test_delivery_is_deferred_until_batch_exits(self) -> None:
        stream = MutableStateStream(0)
        seen: list[int] = []
        stream.subscribe(seen.append)
        with stream_batch():
            stream.emit(1)
            stream.emit(2)
            assert stream.value == 2
            assert seen == [0]
        assert seen == [0, 2]

    def test_nested_batches_flush_once(self) -> None:
        stream = MutableStateStream(0)
        seen: list[int] = []
        stream.subscribe(seen.append)
        with stream_batch():
            with stream_batch():
                stream.emit(1)
            assert seen == [0]
        assert seen == [0, 1]

    def test_returning_to_previous_value_inside_batch_is_silent(self) -> None:
        stream = MutableStateStream(0)
        seen: list[int] = []
        stream.subscribe(seen.append)
        with stream_batch():
            stream.emit(1)
            stream.emit(0)
        assert seen == [0]

    def test_combined_sources_emit_once_per_batch(self) -> None:
        left = MutableStateStream(1)
        right = MutableStateStream(10)
        total = combine_latest(left, right, lambda a, b: a + b)
        seen: list[int] = []
        total.subscribe(seen.append)
        with stream_batch():
            left.emit(2)
            right.emit(20)
        assert seen == [11, 22]


# ---------------------------------------------------------------------------
# TestOperators
# ---------------------------------------------------------------------------


class TestOperators:
    def test_map_stream(self) -> None:
        source = MutableStateStream(2)
        doubled = map_stream(source, lambda value: value * 2)
        source.emit(5)
        assert doubled.value == 10

    def test_map_method(self) -> None:
        source = MutableStateStream("a")
        upper = source.map(str.upper)
        source.emit("b")
        assert upper.value == "B"

    def test_switch_map_follows_selected_inner_stream(self) -> None:
        inners = {"a": MutableStateStream(1), "b": MutableStateStream(100)}
        key = MutableStateStream("a")
        switched = switch_map(key, lambda name: inners[name])
        seen: list[int] = []
        switched.subscribe(seen.append)

        inners["a"].emit(2)
        key.emit("b")
        inners["a"].emit(3)
        inners["b"].emit(101)

        assert seen == [1, 2, 100, 101]
        assert inners["a"].subscriber_count == 0

    def test_combine_latest_without_batch_recomputes_each_change(self) -> None:
        left = MutableStateStream(1)
        right = MutableStateStream(1)
        product = combine_latest(left, right, lambda a, b: a * b)
        left.emit(3)
        right.emit(4)
        assert product.value == 12


# ---------------------------------------------------------------------------
# TestAsyncIteration
# ---------------------------------------------------------------------------


class TestAsyncIteration:
    def test_iteration_yields_current_then_latest_value(self) -> None:
        async def scenario() -> tuple[int, int, int]:
            stream = MutableStateStream(0)
            iterator = stream.__aiter__()
            first = await iterator.__anext__()
            stream.emit(1)
            stream.emit(2)
            second = await iterator.__anext__()
            await iterator.aclose()
            return first, second, stream.subscriber_count

        assert asyncio.run(scenario()) == (0, 2, 0)
