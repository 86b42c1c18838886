"""Domain services - orchestrate page and batch processing."""

import logging
import shlex
import tempfile
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from ..ports.codec import CodecPort
from ..ports.ocr import OCRPort, RecognizedPage
from ..ports.progress import ProgressPort
from ..ports.raster import RasterValidatorPort
from ..ports.storage import StoragePort
from .errors import (
    BatchAborted,
    ExternalToolError,
    ParseError,
    ScanBatchError,
    StorageError,
    ValidationError,
)
from .models import (
    BatchResult,
    BatchState,
    CancelToken,
    PageStatus,
    PageTask,
    ProgressRecord,
    RunResult,
    Stage,
    StageFailure,
    WorkItem,
)

logger = logging.getLogger(__name__)

STAGE_BY_STATUS = {
    PageStatus.PENDING: Stage.VALIDATE,
    PageStatus.VALIDATING: Stage.VALIDATE,
    PageStatus.ENCODING: Stage.CODEC,
    PageStatus.RECOGNIZING: Stage.OCR,
    PageStatus.WRITING: Stage.WRITE,
}


def stage_failure(stage: Stage, error: Exception) -> StageFailure:
    return StageFailure(
        stage=stage,
        kind=type(error).__name__,
        message=str(error),
        exit_code=getattr(error, "exit_code", None),
        stderr=getattr(error, "stderr", "") or "",
    )


class PageProcessor:
    """Runs one page through validate -> codec + OCR -> write."""

    def __init__(
        self,
        validator: RasterValidatorPort,
        codec: CodecPort,
        ocr: OCRPort,
        storage: StoragePort,
        language: str,
        max_attempts: int = 2,
        abort_on_stage_failure: bool = False,
        concurrent_stages: bool = True,
    ) -> None:
        self.validator = validator
        self.codec = codec
        self.ocr = ocr
        self.storage = storage
        self.language = language
        self.max_attempts = max_attempts
        self.abort_on_stage_failure = abort_on_stage_failure
        self.concurrent_stages = concurrent_stages

    def commands(self, task: PageTask) -> list[str]:
        """Command lines the page would run, for dry runs."""
        cmds = [
            shlex.join(self.codec.command(task.source, output, profile))
            for profile, output in task.codestreams.items()
        ]
        base = task.document.with_suffix("")
        cmds.append(shlex.join(self.ocr.command(task.source, base, self.language)))
        return cmds

    def process(self, task: PageTask, cancel: CancelToken | None = None) -> PageTask:
        """Process a page, recording every stage failure on the task.

        The task ends DONE or FAILED, or stays non-terminal if the batch was
        cancelled while it was in flight.
        """
        cancel = cancel or CancelToken()
        logger.info(f"Processing: {task.source.name} -> {task.page_id}")

        task.status = PageStatus.VALIDATING
        try:
            task.raster = self.validator.validate(task.source)
        except ValidationError as e:
            self._record(task, stage_failure(Stage.VALIDATE, e))
            return task

        # Page token: aborting one stage can stop its sibling without
        # touching the rest of the batch
        page_cancel = CancelToken(cancel)

        with tempfile.TemporaryDirectory(prefix=f"scanbatch-{task.page_id}-") as scratch:
            output_base = Path(scratch) / task.page_id
            if self.concurrent_stages:
                task.status = PageStatus.ENCODING
                with ThreadPoolExecutor(
                    max_workers=2, thread_name_prefix=f"page-{task.page_id}"
                ) as pool:
                    codec_future = pool.submit(self._encode, task, page_cancel)
                    ocr_future = pool.submit(
                        self._recognize, task, output_base, page_cancel
                    )
                    codec_failures = codec_future.result()
                    # Anything raised from here on belongs to the OCR stage
                    task.status = PageStatus.RECOGNIZING
                    recognized, ocr_failure = ocr_future.result()
            else:
                task.status = PageStatus.ENCODING
                codec_failures = self._encode(task, page_cancel)
                task.status = PageStatus.RECOGNIZING
                recognized, ocr_failure = self._recognize(task, output_base, page_cancel)

        if cancel.is_cancelled():
            logger.info(f"{task.page_id}: cancelled")
            task.status = PageStatus.PENDING
            task.failures.clear()
            return task

        for failure in codec_failures + ([ocr_failure] if ocr_failure else []):
            self._record(task, failure)
        if task.failures:
            return task

        task.status = PageStatus.WRITING
        try:
            self.storage.write_document(task.document, recognized.document)
            self.storage.write_text(task.text, recognized.document.plain_text())
        except StorageError as e:
            self._record(task, stage_failure(Stage.WRITE, e))
            return task

        task.status = PageStatus.DONE
        logger.info(f"Done: {task.page_id}")
        return task

    def _record(self, task: PageTask, failure: StageFailure) -> None:
        task.fail(failure)
        logger.error(f"{task.page_id}: {failure}")
        if failure.stderr:
            logger.debug(f"{task.page_id} {failure.stage.value} stderr:\n{failure.stderr}")

    def _attempt(
        self, task: PageTask, stage: Stage, action: Callable, cancel: CancelToken
    ) -> tuple[object, StageFailure | None]:
        """Run action with retries for external-tool failures."""
        attempt = 1
        while True:
            try:
                return action(), None
            except ParseError as e:
                failure = stage_failure(stage, e)
            except ExternalToolError as e:
                failure = stage_failure(stage, e)
                retry = e.retryable and attempt < self.max_attempts
                if retry and not cancel.is_cancelled():
                    logger.warning(
                        f"{task.page_id}: {stage.value} attempt {attempt} failed "
                        f"({e}), retrying"
                    )
                    attempt += 1
                    continue
            except (ScanBatchError, OSError) as e:
                failure = stage_failure(stage, e)

            if self.abort_on_stage_failure:
                cancel.cancel()
            return None, failure

    def _encode(self, task: PageTask, cancel: CancelToken) -> list[StageFailure]:
        failures = []
        for profile, output in task.codestreams.items():
            _, failure = self._attempt(
                task,
                Stage.CODEC,
                lambda: self.codec.encode(task.source, output, profile, cancel),
                cancel,
            )
            if failure:
                failures.append(failure)
                if cancel.is_cancelled():
                    break
        return failures

    def _recognize(
        self, task: PageTask, output_base: Path, cancel: CancelToken
    ) -> tuple[RecognizedPage | None, StageFailure | None]:
        return self._attempt(
            task,
            Stage.OCR,
            lambda: self.ocr.recognize(task.source, output_base, self.language, cancel),
            cancel,
        )


class BatchOrchestrator:
    """Discovers batches under the input root and runs their pages."""

    def __init__(
        self,
        processor: PageProcessor,
        storage: StoragePort,
        progress_for: Callable[[WorkItem], ProgressPort],
        input_root: Path,
        output_root: Path,
        extensions: list[str] | None = None,
        naming: str = "source",
        start_index: int = 1,
        digits: int = 4,
        workers: int = 1,
        skip_failed: bool = False,
        force: bool = False,
        after_batch: Callable[[WorkItem], object] | None = None,
    ) -> None:
        self.processor = processor
        self.storage = storage
        self.progress_for = progress_for
        self.input_root = input_root
        self.output_root = output_root
        self.extensions = {e.lower() for e in (extensions or [".tif", ".tiff"])}
        self.naming = str(getattr(naming, "value", naming))
        self.start_index = start_index
        self.digits = digits
        self.workers = workers
        self.skip_failed = skip_failed
        self.force = force
        self.after_batch = after_batch

    # Discovery

    def _pages_in(self, directory: Path) -> list[Path]:
        return sorted(
            (
                p
                for p in directory.iterdir()
                if p.is_file() and p.suffix.lower() in self.extensions
            ),
            key=lambda p: p.name,
        )

    def _task(self, page_id: str, source: Path, output_dir: Path) -> PageTask:
        return PageTask(
            page_id=page_id,
            source=source,
            codestreams={
                name: output_dir / f"{page_id}{suffix}"
                for name, suffix in self.processor.codec.profiles.items()
            },
            document=output_dir / f"{page_id}.xml",
            text=output_dir / f"{page_id}.txt",
        )

    def discover(self) -> list[WorkItem]:
        """WorkItems in name order, each with its pages in reading order."""
        if not self.input_root.is_dir():
            raise BatchAborted(f"Input root {self.input_root} is not a directory")

        candidates = []
        if self._pages_in(self.input_root):
            candidates.append(self.input_root)
        candidates += sorted(
            (
                d
                for d in self.input_root.iterdir()
                if d.is_dir() and not d.name.startswith(".")
            ),
            key=lambda d: d.name,
        )

        items = []
        index = self.start_index
        for directory in candidates:
            sources = self._pages_in(directory)
            if not sources:
                logger.debug(f"Skipping {directory}: no pages")
                continue

            name = directory.name
            output_dir = self.output_root / name
            pages = []
            seen: set[str] = set()
            for source in sources:
                if self.naming == "sequence":
                    page_id = f"{index:0{self.digits}d}"
                else:
                    page_id = source.stem
                    if page_id in seen:
                        page_id = source.name.replace(".", "_")
                        logger.warning(f"Duplicate page stem in {name}, using {page_id}")
                index += 1
                seen.add(page_id)
                pages.append(self._task(page_id, source, output_dir))

            items.append(
                WorkItem(
                    name=name,
                    source_dir=directory,
                    output_dir=output_dir,
                    logs_dir=self.output_root / f"{name}_logs",
                    pages=tuple(pages),
                )
            )
            logger.info(f"Discovered batch {name}: {len(pages)} pages")
        return items

    def plan(self) -> list[tuple[WorkItem, dict[str, list[str]]]]:
        """Discovered work with the commands each page would run. Runs nothing."""
        return [
            (item, {task.page_id: self.processor.commands(task) for task in item.pages})
            for item in self.discover()
        ]

    # Execution

    def run(self, cancel: CancelToken | None = None) -> RunResult:
        cancel = cancel or CancelToken()
        self.storage.prepare_root()
        items = self.discover()
        if not items:
            logger.warning(f"No pages found under {self.input_root}")

        result = RunResult()
        for item in items:
            if cancel.is_cancelled():
                break
            result.batches.append(self.run_batch(item, cancel))
        result.cancelled = cancel.is_cancelled()
        return result

    def _select(self, item: WorkItem, progress: ProgressPort) -> tuple[list[PageTask], int]:
        """Pages still to process, and how many were skipped."""
        previous = {} if self.force else progress.load()
        todo = []
        skipped = 0
        for task in item.pages:
            record = previous.get(task.page_id)
            if record is not None and record.status == PageStatus.DONE:
                if self.storage.outputs_complete(task):
                    task.status = PageStatus.DONE
                    skipped += 1
                    continue
                logger.info(
                    f"{task.page_id}: recorded done but outputs incomplete, redoing"
                )
            elif (
                record is not None
                and record.status == PageStatus.FAILED
                and self.skip_failed
            ):
                task.status = PageStatus.FAILED
                task.failures = list(record.failures)
                skipped += 1
                continue
            todo.append(task)
        return todo, skipped

    def _run_page(
        self, task: PageTask, progress: ProgressPort, cancel: CancelToken
    ) -> PageTask:
        if cancel.is_cancelled():
            return task
        try:
            self.processor.process(task, cancel)
        except Exception as e:
            logger.exception(f"{task.page_id}: processing failed: {e}")
            stage = STAGE_BY_STATUS.get(task.status, Stage.WRITE)
            task.fail(stage_failure(stage, e))
        if task.status.terminal:
            progress.append(ProgressRecord.for_task(task))
        return task

    def run_batch(self, item: WorkItem, cancel: CancelToken | None = None) -> BatchResult:
        cancel = cancel or CancelToken()
        self.storage.prepare_batch(item)
        progress = self.progress_for(item)
        todo, skipped = self._select(item, progress)

        logger.info(f"Batch {item.name}: {len(todo)} to process, {skipped} skipped")
        item.state = BatchState.RUNNING

        processed = 0
        with ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix=f"batch-{item.name}"
        ) as pool:
            futures = [pool.submit(self._run_page, task, progress, cancel) for task in todo]
            for future in as_completed(futures):
                try:
                    task = future.result()
                except StorageError as e:
                    cancel.cancel()
                    raise BatchAborted(
                        f"Cannot record progress for {item.name}: {e}"
                    ) from e
                if task.status.terminal:
                    processed += 1

        if cancel.is_cancelled():
            logger.warning(f"Batch {item.name} cancelled after {processed} pages")
            return BatchResult(item.name, item.state, processed, skipped, item.failed)

        item.state = BatchState.PARTIALLY_FAILED if item.failed else BatchState.COMPLETED
        try:
            manifest = self.storage.finalize_batch(item)
        except StorageError as e:
            raise BatchAborted(str(e)) from e
        if self.after_batch is not None:
            self.after_batch(item)

        logger.info(
            f"Batch {item.name}: {len(item.done)} done, {len(item.failed)} failed "
            f"({item.state.value})"
        )
        return BatchResult(item.name, item.state, processed, skipped, item.failed, manifest)
