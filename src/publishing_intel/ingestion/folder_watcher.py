"""Watchdog-based file watcher for the export data directory."""

import asyncio
import logging
from concurrent.futures import Future
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class IncomingExportHandler(FileSystemEventHandler):
    """Ingests spreadsheets dropped (or moved) into the watch directory.

    Watchdog calls back on its own thread; ingestion is handed to the
    application's event loop so it shares the loop-bound database engine.
    """

    def __init__(self, pipeline, loop: asyncio.AbstractEventLoop):
        super().__init__()
        self._pipeline = pipeline
        self._loop = loop

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._maybe_dispatch(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._maybe_dispatch(Path(event.dest_path))

    def _maybe_dispatch(self, path: Path) -> Future | None:
        if not self._pipeline.is_spreadsheet(path):
            logger.debug("Ignoring non-spreadsheet file %s", path.name)
            return None
        logger.info("New export detected: %s", path.name)
        future = asyncio.run_coroutine_threadsafe(self._pipeline.ingest_file(path), self._loop)
        future.add_done_callback(_log_result)
        return future


def _log_result(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Watched ingestion crashed: %s", exc)
        return
    result = future.result()
    logger.info("Watched ingestion of %s: %s", result.filename, result.status)


def start_watcher(pipeline, loop: asyncio.AbstractEventLoop) -> Observer:
    """Start watching the pipeline's data directory. Returns the Observer."""
    watch_path = pipeline.data_directory
    watch_path.mkdir(parents=True, exist_ok=True)

    observer = Observer()
    handler = IncomingExportHandler(pipeline, loop)
    observer.schedule(handler, str(watch_path), recursive=False)
    observer.start()
    logger.info("Watching %s", watch_path.resolve())
    return observer
