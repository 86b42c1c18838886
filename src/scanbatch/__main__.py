"""CLI entry point for scanbatch."""

import logging
import signal
import sys
from pathlib import Path

import click

from .adapters.codec import GrokCodecAdapter
from .adapters.ocr import TesseractAdapter
from .adapters.process import (
    ProcessRunner,
    find_tessdata_dir,
    probe_tool,
    resolve_executable,
)
from .adapters.progress import JsonlProgressStore
from .adapters.raster import PillowRasterValidator
from .adapters.storage import FilesystemAdapter, write_previews
from .config import PageNaming, Settings, load_settings
from .domain.errors import (
    BatchAborted,
    ConfigurationError,
    ParseError,
    StorageError,
    ValidationError,
)
from .domain.models import CancelToken, PageStatus, WorkItem
from .domain.services import BatchOrchestrator, PageProcessor
from .editor import CommandInterpreter, EditorSession

logger = logging.getLogger(__name__)

PROGRESS_NAME = "progress.jsonl"
EXIT_FATAL = 2


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def fail(message: str, code: int = EXIT_FATAL) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def get_settings(ctx: click.Context) -> Settings:
    try:
        return load_settings(ctx.obj["config_path"])
    except ConfigurationError as e:
        fail(str(e))


def progress_path(item: WorkItem) -> Path:
    return item.logs_dir / PROGRESS_NAME


def build_orchestrator(
    settings: Settings, force: bool = False, skip_failed: bool | None = None
) -> BatchOrchestrator:
    """Wire adapters into a BatchOrchestrator from settings."""
    runner = ProcessRunner(settings.process.kill_grace, settings.process.poll_interval)

    grok, grok_source = resolve_executable(
        settings.codec.executable, "grk_compress", "grok"
    )
    tesseract, tess_source = resolve_executable(
        settings.ocr.executable, "tesseract", "tesseract"
    )
    tessdata = find_tessdata_dir(tesseract, settings.ocr.tessdata_dir)
    logger.debug(f"Encoder: {grok} ({grok_source}); OCR: {tesseract} ({tess_source})")

    codec = GrokCodecAdapter(
        grok,
        settings.codec.profiles,
        settings.codec.enabled,
        runner=runner,
        timeout=settings.codec.timeout,
    )
    ocr = TesseractAdapter(
        tesseract,
        runner=runner,
        timeout=settings.ocr.timeout,
        tessdata_dir=tessdata,
        extra_args=settings.ocr.extra_args,
        bounds_policy=settings.layout.bounds_policy,
        tolerance=settings.layout.tolerance,
        merge_separator=settings.layout.merge_separator,
    )
    validator = PillowRasterValidator(
        formats=settings.raster.formats,
        color_models=settings.raster.color_models,
        rejected_compressions=settings.raster.rejected_compressions,
        min_size=settings.raster.min_size,
        max_pixels=settings.raster.max_pixels,
    )
    storage = FilesystemAdapter(
        settings.paths.output,
        alto_version=settings.ocr.alto_version,
        run_info={
            "language": settings.ocr.language,
            "alto_version": settings.ocr.alto_version,
            "profiles": list(settings.codec.enabled),
            "naming": settings.batch.naming.value,
            "start_index": settings.batch.start_index,
        },
    )
    processor = PageProcessor(
        validator,
        codec,
        ocr,
        storage,
        language=settings.ocr.language,
        max_attempts=settings.batch.max_attempts,
        abort_on_stage_failure=settings.batch.abort_page_on_stage_failure,
        concurrent_stages=settings.batch.concurrent_stages,
    )

    after_batch = None
    if settings.batch.previews:
        size = settings.batch.preview_size

        def after_batch(item: WorkItem) -> int:
            return write_previews(item, size)

    return BatchOrchestrator(
        processor,
        storage,
        lambda item: JsonlProgressStore(progress_path(item)),
        input_root=settings.paths.input,
        output_root=settings.paths.output,
        extensions=settings.batch.extensions,
        naming=settings.batch.naming,
        start_index=settings.batch.start_index,
        digits=settings.batch.digits,
        workers=settings.batch.workers,
        skip_failed=settings.batch.skip_failed if skip_failed is None else skip_failed,
        force=force,
        after_batch=after_batch,
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("-c", "--config", type=click.Path(exists=True), help="Config file path")
@click.option("--log-file", type=click.Path(path_type=Path), help="Also log to this file")
@click.pass_context
def cli(
    ctx: click.Context, verbose: bool, config: str | None, log_file: Path | None
) -> None:
    """Scanbatch - scanned page batch conversion (JPEG 2000 + ALTO)."""
    setup_logging(verbose, log_file)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None


@cli.command()
@click.option(
    "-i", "--input", "input_root", type=click.Path(path_type=Path), help="Input root"
)
@click.option(
    "-o", "--output", "output_root", type=click.Path(path_type=Path), help="Output root"
)
@click.option("-w", "--workers", type=click.IntRange(min=1), help="Parallel pages")
@click.option("-l", "--lang", help="OCR language(s), e.g. ces+eng")
@click.option(
    "-p", "--profile", "profiles", multiple=True, help="Codec profile (repeatable)"
)
@click.option(
    "--naming", type=click.Choice([n.value for n in PageNaming]), help="Output names"
)
@click.option("--start-index", type=int, help="First index for sequence naming")
@click.option("--previews/--no-previews", default=None, help="Write WebP previews")
@click.option(
    "--skip-failed/--retry-failed",
    default=None,
    help="Leave pages that failed before alone",
)
@click.option("--force", is_flag=True, help="Ignore recorded progress")
@click.option("--dry-run", is_flag=True, help="Show what would run")
@click.pass_context
def run(
    ctx: click.Context,
    input_root: Path | None,
    output_root: Path | None,
    workers: int | None,
    lang: str | None,
    profiles: tuple[str, ...],
    naming: str | None,
    start_index: int | None,
    previews: bool | None,
    skip_failed: bool | None,
    force: bool,
    dry_run: bool,
) -> None:
    """Convert every batch under the input root."""
    settings = get_settings(ctx)
    if input_root:
        settings.paths.input = input_root
    if output_root:
        settings.paths.output = output_root
    if workers:
        settings.batch.workers = workers
    if lang:
        settings.ocr.language = lang
    if profiles:
        unknown = [p for p in profiles if p not in settings.codec.profiles]
        if unknown:
            fail(f"Unknown codec profile(s): {', '.join(unknown)}")
        settings.codec.enabled = list(profiles)
    if naming:
        settings.batch.naming = PageNaming(naming)
    if start_index is not None:
        settings.batch.start_index = start_index
    if previews is not None:
        settings.batch.previews = previews

    orchestrator = build_orchestrator(settings, force=force, skip_failed=skip_failed)

    if dry_run:
        try:
            plan = orchestrator.plan()
        except BatchAborted as e:
            fail(str(e))
        for item, commands in plan:
            click.echo(f"{item.name}: {len(item.pages)} pages -> {item.output_dir}")
            for page_id, cmds in commands.items():
                click.echo(f"  {page_id}:")
                for cmd in cmds:
                    click.echo(f"    {cmd}")
        return

    cancel = CancelToken()

    def on_interrupt(signum, frame) -> None:
        if cancel.is_cancelled():
            raise KeyboardInterrupt
        logger.warning("Interrupted, stopping running tools (Ctrl-C again to force)")
        cancel.cancel()

    previous = signal.signal(signal.SIGINT, on_interrupt)
    try:
        result = orchestrator.run(cancel)
    except BatchAborted as e:
        fail(str(e))
    finally:
        signal.signal(signal.SIGINT, previous)

    for batch in result.batches:
        mark = "✓" if batch.success else "✗"
        click.echo(
            f"{mark} {batch.name}: {batch.state.value} "
            f"({batch.processed} processed, {batch.skipped} skipped, "
            f"{len(batch.failed)} failed)"
        )
        for task in batch.failed:
            click.echo(f"    {task.page_id}: {task.last_error}", err=True)
    if result.cancelled:
        click.echo("Cancelled", err=True)
    sys.exit(result.exit_code)


@cli.command()
@click.option(
    "-i", "--input", "input_root", type=click.Path(path_type=Path), help="Input root"
)
@click.option(
    "-o", "--output", "output_root", type=click.Path(path_type=Path), help="Output root"
)
@click.pass_context
def status(ctx: click.Context, input_root: Path | None, output_root: Path | None) -> None:
    """Show recorded progress per batch."""
    settings = get_settings(ctx)
    if input_root:
        settings.paths.input = input_root
    if output_root:
        settings.paths.output = output_root

    try:
        items = build_orchestrator(settings).discover()
    except BatchAborted as e:
        fail(str(e))

    if not items:
        click.echo("No batches found")
        return

    for item in items:
        records = JsonlProgressStore(progress_path(item)).load()
        latest = [records[t.page_id] for t in item.pages if t.page_id in records]
        done = sum(1 for r in latest if r.status == PageStatus.DONE)
        failed = [r for r in latest if r.status == PageStatus.FAILED]
        pending = len(item.pages) - done - len(failed)
        click.echo(f"{item.name}: {done} done, {len(failed)} failed, {pending} pending")
        for record in failed:
            click.echo(f"    {record.page_id}: {record.last_error}")


@cli.command()
@click.argument(
    "paths", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path)
)
@click.pass_context
def validate(ctx: click.Context, paths: tuple[Path, ...]) -> None:
    """Check rasters without converting them."""
    settings = get_settings(ctx)
    validator = PillowRasterValidator(
        formats=settings.raster.formats,
        color_models=settings.raster.color_models,
        rejected_compressions=settings.raster.rejected_compressions,
        min_size=settings.raster.min_size,
        max_pixels=settings.raster.max_pixels,
    )
    extensions = {e.lower() for e in settings.batch.extensions}

    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files += sorted(p for p in path.rglob("*") if p.suffix.lower() in extensions)
        else:
            files.append(path)

    invalid = 0
    for f in files:
        try:
            info = validator.validate(f)
            click.echo(
                f"✓ {f}: {info.width}x{info.height} {info.color_model}/{info.bit_depth}"
            )
        except ValidationError as e:
            invalid += 1
            click.echo(f"✗ {f}: {e}", err=True)

    click.echo(f"\nValidated: {len(files) - invalid} ok, {invalid} invalid")
    if invalid:
        sys.exit(1)


@cli.command()
@click.pass_context
def tools(ctx: click.Context) -> None:
    """Report which external tools will be used."""
    settings = get_settings(ctx)
    runner = ProcessRunner(settings.process.kill_grace, settings.process.poll_interval)

    grok, grok_source = resolve_executable(
        settings.codec.executable, "grk_compress", "grok"
    )
    tesseract, tess_source = resolve_executable(
        settings.ocr.executable, "tesseract", "tesseract"
    )
    statuses = [
        probe_tool(runner, "grok", grok, grok_source, ["-h"]),
        probe_tool(runner, "tesseract", tesseract, tess_source, ["--version"]),
    ]
    for s in statuses:
        mark = "✓" if s.available else "✗"
        click.echo(f"{mark} {s.name}: {s.path} ({s.source}) {s.detail}")

    tessdata = find_tessdata_dir(tesseract, settings.ocr.tessdata_dir)
    click.echo(f"  tessdata: {tessdata or 'default'}")
    if not all(s.available for s in statuses):
        sys.exit(1)


@cli.command()
@click.argument("document", type=click.Path(exists=True, path_type=Path))
@click.option("--image", type=click.Path(exists=True, path_type=Path), help="Source raster")
@click.pass_context
def edit(ctx: click.Context, document: Path, image: Path | None) -> None:
    """Edit a page's layout document interactively."""
    settings = get_settings(ctx)
    session = EditorSession(
        document,
        image,
        alto_version=settings.ocr.alto_version,
        bounds_policy=settings.layout.bounds_policy,
        tolerance=settings.layout.tolerance,
        merge_separator=settings.layout.merge_separator,
    )
    try:
        session.open()
    except StorageError as e:
        fail(str(e))
    except ParseError as e:
        fail(f"Cannot load {document.name}: {e}")

    interpreter = CommandInterpreter(session)
    click.echo(f"Editing {document} (type help for commands)")
    try:
        while True:
            try:
                line = click.prompt(
                    "edit", prompt_suffix="> ", default="", show_default=False
                )
            except click.Abort:
                line = "quit"
            reply = interpreter.execute(line)
            if reply.lines:
                click.echo(reply.text)
            if reply.quit:
                discard = not session.dirty or click.confirm(
                    "Discard unsaved changes?", default=False
                )
                if not discard:
                    continue
                break
    finally:
        session.close()


if __name__ == "__main__":
    cli()
