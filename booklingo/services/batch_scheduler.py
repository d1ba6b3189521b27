# booklingo/services/batch_scheduler.py
"""
Ordered, bounded-concurrency batch translation.

Snippets are cut into contiguous batches and every batch is submitted as an
independent task. Tasks finish in arbitrary order; results are keyed by batch
index and reassembled, so output[i] always corresponds to input[i].

A failing batch fails the run. There is no retry and no partial result.
"""

import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Optional, Sequence

from booklingo.config.settings import RequestOptions
from booklingo.models.types import Batch, Snippet
from booklingo.services.exceptions import ConfigurationError, TranslationError
from booklingo.services.translators import TranslationPort

# Module logger
logger = logging.getLogger(__name__)


class BatchScheduler:
    """
    Runs batches through a TranslationPort under a counting semaphore.

    Every batch gets its own worker thread; the semaphore (size =
    max_concurrency) bounds how many of them call the port at once. Batch
    tasks work on disjoint slices and share only the semaphore and the
    failure flag.
    """

    def __init__(self, batch_size: int, max_concurrency: int):
        if batch_size < 1:
            raise ConfigurationError(f"batch_size must be at least 1, got {batch_size}")
        if max_concurrency < 1:
            raise ConfigurationError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.batch_size = batch_size
        self.max_concurrency = max_concurrency

    @classmethod
    def from_options(cls, options: RequestOptions) -> "BatchScheduler":
        return cls(options.batch_size, options.max_concurrency)

    def count_batches(self, snippet_count: int) -> int:
        """Number of batches create_batches() cuts from snippet_count snippets."""
        return math.ceil(snippet_count / self.batch_size)

    def create_batches(self, snippets: Sequence[Snippet]) -> list[Batch]:
        """
        Partition snippets into contiguous batches of batch_size.

        The last batch may be shorter. Concatenating the batches in index
        order reproduces the input exactly.
        """
        return [
            Batch(index=batch_index, snippets=list(snippets[start:start + self.batch_size]))
            for batch_index, start in enumerate(range(0, len(snippets), self.batch_size))
        ]

    def run(self, snippets: Sequence[Snippet], port: TranslationPort) -> list[Snippet]:
        """
        Translate snippets, returning them in input order with new text.

        Args:
            snippets: Snippets in document order
            port: Translation capability (translate(list[str]) -> list[str])

        Returns:
            Translated snippets, same length and order as the input

        Raises:
            TranslationError: If any batch fails. Results of other batches
                are discarded; batches not yet started are not started.
        """
        snippets = list(snippets)
        if not snippets:
            return []

        batches = self.create_batches(snippets)
        semaphore = threading.BoundedSemaphore(self.max_concurrency)
        failed = threading.Event()
        results: dict[int, list[str]] = {}
        start_time = time.monotonic()

        logger.debug(
            "Scheduling %d snippets in %d batches (batch_size=%d, max_concurrency=%d)",
            len(snippets), len(batches), self.batch_size, self.max_concurrency
        )

        executor = ThreadPoolExecutor(
            max_workers=len(batches),
            thread_name_prefix="booklingo-batch",
        )
        try:
            futures = {
                executor.submit(self._run_batch, batch, port, semaphore, failed): batch
                for batch in batches
            }
            for future in as_completed(futures):
                batch = futures[future]
                results[batch.index] = future.result()
                logger.debug("Batch %d/%d done", batch.index + 1, len(batches))
        finally:
            # Batches still waiting on the semaphore see the failure flag and skip the port
            executor.shutdown(wait=True, cancel_futures=True)

        translated: list[Snippet] = []
        for batch in batches:
            texts = results[batch.index]
            translated.extend(
                replace(snippet, text=text)
                for snippet, text in zip(batch.snippets, texts)
            )

        logger.info(
            "Translated %d snippets in %d batches (%.2fs)",
            len(translated), len(batches), time.monotonic() - start_time
        )
        return translated

    @staticmethod
    def _run_batch(
        batch: Batch,
        port: TranslationPort,
        semaphore: threading.BoundedSemaphore,
        failed: threading.Event,
    ) -> Optional[list[str]]:
        with semaphore:
            if failed.is_set():
                logger.debug("Batch %d skipped after an earlier failure", batch.index)
                return None
            try:
                texts = list(port.translate(batch.texts))
            except TranslationError as e:
                failed.set()
                if e.batch_index is not None:
                    raise
                raise TranslationError(str(e), batch_index=batch.index,
                                       unit_ids=batch.unit_ids) from e
            except Exception as e:
                failed.set()
                # Ports are pluggable; any failure is a batch failure
                raise TranslationError(f"{type(e).__name__}: {e}", batch_index=batch.index,
                                       unit_ids=batch.unit_ids) from e

            if len(texts) != len(batch):
                failed.set()
                raise TranslationError(
                    f"translator returned {len(texts)} results for {len(batch)} snippets",
                    batch_index=batch.index,
                    unit_ids=batch.unit_ids,
                )
        return texts


def translate_snippets(
    snippets: Sequence[Snippet],
    port: TranslationPort,
    options: Optional[RequestOptions] = None,
) -> list[Snippet]:
    """Convenience wrapper: build a scheduler from options and run it."""
    scheduler = BatchScheduler.from_options(options or RequestOptions())
    return scheduler.run(snippets, port)
