# tests/test_batch_scheduler.py
"""
Tests for booklingo.services.batch_scheduler - ordered, bounded-concurrency
batch translation.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from booklingo.config.settings import RequestOptions
from booklingo.models.types import Snippet
from booklingo.services.batch_scheduler import BatchScheduler, translate_snippets
from booklingo.services.exceptions import ConfigurationError, TranslationError

from conftest import FailingTranslator, UpperTranslator


def make_snippets(count: int, unit_id: str = "page_1") -> list[Snippet]:
    return [Snippet(index=i, text=f"snippet {i}", unit_id=unit_id) for i in range(count)]


class ScramblingTranslator:
    """Sleeps longer for earlier batches so they finish last."""

    def translate(self, texts):
        first = int(texts[0].split()[-1])
        time.sleep(max(0.0, 0.05 - first * 0.002))
        return [f"[{text}]" for text in texts]


class CountingTranslator:
    """Records the highest number of calls in flight at once."""

    def __init__(self, delay: float = 0.02):
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.total_calls = 0
        self._lock = threading.Lock()

    def translate(self, texts):
        with self._lock:
            self.in_flight += 1
            self.total_calls += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delay)
            return list(texts)
        finally:
            with self._lock:
                self.in_flight -= 1


# =============================================================================
# Tests: Construction
# =============================================================================

class TestSchedulerConfiguration:
    """Tests for option validation"""

    def test_zero_batch_size_rejected(self):
        with pytest.raises(ConfigurationError):
            BatchScheduler(batch_size=0, max_concurrency=5)

    def test_zero_concurrency_rejected(self):
        with pytest.raises(ConfigurationError):
            BatchScheduler(batch_size=10, max_concurrency=0)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            BatchScheduler(batch_size=-1, max_concurrency=1)

    def test_from_options_defaults(self):
        scheduler = BatchScheduler.from_options(RequestOptions())
        assert scheduler.batch_size == 10
        assert scheduler.max_concurrency == 5


# =============================================================================
# Tests: Batching
# =============================================================================

class TestCreateBatches:
    """Tests for contiguous partitioning"""

    def test_batch_count_is_ceiling(self):
        scheduler = BatchScheduler(batch_size=5, max_concurrency=2)
        batches = scheduler.create_batches(make_snippets(23))
        assert len(batches) == 5
        assert [len(b) for b in batches] == [5, 5, 5, 5, 3]

    def test_exact_multiple(self):
        scheduler = BatchScheduler(batch_size=4, max_concurrency=2)
        assert len(scheduler.create_batches(make_snippets(8))) == 2

    def test_concatenation_reconstructs_input(self):
        snippets = make_snippets(17)
        scheduler = BatchScheduler(batch_size=3, max_concurrency=2)
        batches = scheduler.create_batches(snippets)
        flattened = [s for batch in batches for s in batch.snippets]
        assert flattened == snippets
        assert [b.index for b in batches] == list(range(len(batches)))

    def test_batches_carry_unit_ids(self):
        snippets = make_snippets(2, unit_id="page_1") + make_snippets(1, unit_id="page_2")
        batches = BatchScheduler(batch_size=10, max_concurrency=1).create_batches(snippets)
        assert batches[0].unit_ids == ["page_1", "page_1", "page_2"]

    def test_no_snippets_no_batches(self):
        assert BatchScheduler(batch_size=3, max_concurrency=1).create_batches([]) == []

    def test_count_batches_matches_create_batches(self):
        scheduler = BatchScheduler(batch_size=5, max_concurrency=2)
        for count in (0, 1, 5, 8, 23):
            assert scheduler.count_batches(count) == len(scheduler.create_batches(make_snippets(count)))


# =============================================================================
# Tests: Run
# =============================================================================

class TestRun:
    """Tests for ordered concurrent execution"""

    def test_empty_input_returns_empty_output(self):
        port = UpperTranslator()
        assert BatchScheduler(batch_size=3, max_concurrency=2).run([], port) == []
        assert port.calls == []

    @pytest.mark.parametrize("max_concurrency", [1, 2, 5, 16])
    def test_order_preserved_despite_completion_order(self, max_concurrency):
        snippets = make_snippets(40)
        scheduler = BatchScheduler(batch_size=3, max_concurrency=max_concurrency)

        result = scheduler.run(snippets, ScramblingTranslator())

        assert len(result) == len(snippets)
        for original, translated in zip(snippets, result):
            assert translated.index == original.index
            assert translated.unit_id == original.unit_id
            assert translated.text == f"[{original.text}]"

    def test_concurrency_cap_respected(self):
        port = CountingTranslator()
        scheduler = BatchScheduler(batch_size=1, max_concurrency=5)

        scheduler.run(make_snippets(20), port)

        assert port.total_calls == 20
        assert port.max_in_flight <= 5

    def test_semaphore_bounds_concurrency(self):
        port = CountingTranslator()
        scheduler = BatchScheduler(batch_size=1, max_concurrency=2)

        with patch("booklingo.services.batch_scheduler.ThreadPoolExecutor",
                   wraps=ThreadPoolExecutor) as pool:
            scheduler.run(make_snippets(6), port)

        # One worker per batch, so only the semaphore holds the cap
        assert pool.call_args.kwargs["max_workers"] == 6
        assert port.total_calls == 6
        assert port.max_in_flight <= 2

    def test_batches_overlap(self):
        port = CountingTranslator(delay=0.05)
        BatchScheduler(batch_size=1, max_concurrency=4).run(make_snippets(8), port)
        assert port.max_in_flight > 1

    def test_one_call_per_batch(self):
        port = UpperTranslator()
        BatchScheduler(batch_size=4, max_concurrency=3).run(make_snippets(10), port)
        assert sorted(len(call) for call in port.calls) == [2, 4, 4]

    def test_failure_fails_whole_run(self):
        snippets = make_snippets(6)
        snippets[4] = Snippet(index=4, text="boom", unit_id="page_3")
        scheduler = BatchScheduler(batch_size=2, max_concurrency=3)

        with pytest.raises(TranslationError) as exc:
            scheduler.run(snippets, FailingTranslator())

        assert exc.value.batch_index == 2
        assert "page_3" in exc.value.unit_ids
        assert "Batch 2 failed" in str(exc.value)
        assert isinstance(exc.value.__cause__, RuntimeError)

    def test_failure_stops_queued_batches(self):
        snippets = [Snippet(index=0, text="boom")] + make_snippets(10)[1:]
        port = FailingTranslator()

        with pytest.raises(TranslationError):
            BatchScheduler(batch_size=1, max_concurrency=1).run(snippets, port)

        # Batches waiting for the semaphore never reach the port
        assert len(port.calls) == 1

    def test_length_mismatch_is_translation_error(self):
        class DroppingTranslator:
            def translate(self, texts):
                return list(texts)[:-1]

        with pytest.raises(TranslationError) as exc:
            BatchScheduler(batch_size=3, max_concurrency=1).run(make_snippets(3), DroppingTranslator())
        assert exc.value.batch_index == 0

    def test_port_translation_error_gets_batch_index(self):
        class RefusingTranslator:
            def translate(self, texts):
                raise TranslationError("quota exceeded")

        with pytest.raises(TranslationError) as exc:
            BatchScheduler(batch_size=2, max_concurrency=1).run(make_snippets(2), RefusingTranslator())
        assert exc.value.batch_index == 0
        assert "quota exceeded" in str(exc.value)


class TestTranslateSnippets:
    """Tests for the convenience wrapper"""

    def test_uses_options(self):
        port = UpperTranslator()
        result = translate_snippets(make_snippets(5), port, RequestOptions(batch_size=2, max_concurrency=1))
        assert [s.text for s in result] == [f"SNIPPET {i}" for i in range(5)]
        assert len(port.calls) == 3

    def test_zero_options_rejected(self):
        with pytest.raises(ConfigurationError):
            translate_snippets(make_snippets(1), UpperTranslator(), RequestOptions(batch_size=0))
