"""Three-stage extraction pipeline: tokenize/parse, finalize, consume."""
import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Iterator, Optional

from processor.event_finalizer import EventFinalizer
from processor.models import Event, ExtractionResult
from processor.parser import GuideParser
from processor.patterns import PatternTable, build_patterns
from processor.tokenizer import DocumentSource, Tokenizer

logger = logging.getLogger(__name__)


class _EndOfStream:
    """Marks the end of a stage's output, carrying the error that ended it."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error


class ExtractionPipeline:
    """
    Extract finalized events from one guide document.

    The parser and finalizer run on worker threads and hand events on through
    single-slot queues, so each stage blocks until the next one takes the
    event. A pipeline handles exactly one document.
    """

    def __init__(
        self,
        source: DocumentSource,
        anchor: date,
        patterns: Optional[PatternTable] = None,
        encoding: Optional[str] = None,
    ):
        """
        Args:
            source: Guide markup as text, bytes, a file-like object or chunks
            anchor: Thursday the guide was published for
            patterns: Compiled pattern table (built if not given)
            encoding: Transport charset for byte sources that declare none
        """
        self.source = source
        self.anchor = anchor
        self.patterns = patterns or build_patterns()
        self.encoding = encoding
        self.error: Optional[Exception] = None
        self._drafts: queue.Queue = queue.Queue(maxsize=1)
        self._finalized: queue.Queue = queue.Queue(maxsize=1)
        self._started = False

    def events(self) -> Iterator[Event]:
        """
        Yield finalized events in document order.

        Once exhausted, ``self.error`` holds the error that stopped
        extraction early, or None.

        Raises:
            RuntimeError: If the pipeline has already been run
        """
        if self._started:
            raise RuntimeError("ExtractionPipeline can only be run once")
        self._started = True

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix='extract') as executor:
            executor.submit(self._parse_stage)
            executor.submit(self._finalize_stage)

            finished = False
            try:
                while not finished:
                    item = self._finalized.get()
                    if isinstance(item, _EndOfStream):
                        self.error = item.error
                        finished = True
                    else:
                        yield item
            finally:
                # A consumer that stops early still has to let both stages finish
                while not finished:
                    finished = isinstance(self._finalized.get(), _EndOfStream)

    def run(self) -> ExtractionResult:
        """
        Drain the pipeline.

        Returns:
            ExtractionResult with every finalized event and the error, if any
        """
        events = list(self.events())
        if self.error is None:
            logger.info(f"Extracted {len(events)} events for week of {self.anchor}")
        else:
            logger.warning(
                f"Extraction for week of {self.anchor} stopped after "
                f"{len(events)} events: {self.error}"
            )
        return ExtractionResult(events=events, error=self.error)

    def _parse_stage(self) -> None:
        error = None
        try:
            parser = GuideParser(
                Tokenizer(self.source, self.encoding), self.anchor, self.patterns,
                emit=self._drafts.put,
            )
            parser.run()
        except Exception as e:
            logger.error(f"Parsing failed: {e}", exc_info=True)
            error = e
        finally:
            self._drafts.put(_EndOfStream(error))

    def _finalize_stage(self) -> None:
        finalizer = EventFinalizer(self.patterns)
        error = None
        while True:
            draft = self._drafts.get()
            if isinstance(draft, _EndOfStream):
                error = error or draft.error
                break
            if error is not None:
                # Keep draining so the parser is never left blocked
                continue
            try:
                event = finalizer.finalize(draft)
            except Exception as e:
                logger.error(f"Finalizing failed: {e}", exc_info=True)
                error = e
                continue
            if event is not None:
                self._finalized.put(event)
        self._finalized.put(_EndOfStream(error))


def extract_events(
    source: DocumentSource,
    anchor: date,
    patterns: Optional[PatternTable] = None,
    encoding: Optional[str] = None,
) -> ExtractionResult:
    """
    Extract finalized events from a guide document.

    Args:
        source: Guide markup as text, bytes, a file-like object or chunks
        anchor: Thursday the guide was published for
        patterns: Compiled pattern table (built if not given)
        encoding: Transport charset for byte sources that declare none

    Returns:
        ExtractionResult with the events and the error that stopped
        extraction, if any
    """
    return ExtractionPipeline(source, anchor, patterns, encoding).run()
