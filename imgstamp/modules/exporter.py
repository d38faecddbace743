"""
Exporter Module - Render and write every selected photo for one export run
"""

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union
from loguru import logger

from imgstamp.config import settings
from imgstamp.modules.renderer import Renderer, RenderOptions
from imgstamp.modules.typography import CaptionMetadata
from imgstamp.utils.exceptions import DecodeError
from imgstamp.utils.image_utils import extension_for, image_kind, save_image

ProgressCallback = Callable[[int, int, str], None]
AssignedOutput = Union[Tuple[Path, str], Exception]


class ExportState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ExportItem:
    """One photo selected for export"""
    source_relative_path: str
    output_filename_stem: str
    caption: CaptionMetadata


@dataclass(frozen=True)
class ExportResult:
    exported_count: int
    failed_count: int
    total_count: int
    output_dir: Path


class Exporter:
    """
    Drives the Renderer over a batch at full export resolution.

    Items are processed in order. A failing item is counted and skipped, the
    run itself never aborts.
    """

    def __init__(self, renderer: Renderer = None, max_workers: int = None, dir_prefix: str = None):
        """
        Initialize Exporter

        Args:
            renderer: Renderer used for every item
            max_workers: Render threads (1 = strictly sequential)
            dir_prefix: Name prefix of the output directory
        """
        self.renderer = renderer or Renderer()
        self.max_workers = max(1, max_workers or settings.EXPORT_WORKERS)
        self.dir_prefix = dir_prefix or settings.EXPORT_DIR_PREFIX
        self._state = ExportState.IDLE

        logger.info(f"Exporter initialized (workers: {self.max_workers})")

    @property
    def state(self) -> ExportState:
        return self._state

    def resolve_output_dir(self, output_root: Path, target_size_id: str) -> Path:
        """
        Create a fresh output directory for this run

        Pattern: <root>/<prefix>_<target>, then _2, _3, ... on collision

        Args:
            output_root: Parent directory
            target_size_id: Preset id (part of the name)

        Returns:
            Created directory
        """
        output_root = Path(output_root)
        output_root.mkdir(parents=True, exist_ok=True)

        safe_target = re.sub(r"[^0-9A-Za-z_-]", "", target_size_id) or "export"
        base_name = f"{self.dir_prefix}_{safe_target}"
        candidate = output_root / base_name
        suffix = 2

        while True:
            try:
                candidate.mkdir()
                return candidate
            except FileExistsError:
                candidate = output_root / f"{base_name}_{suffix}"
                suffix += 1

    def output_path_for(self, item: ExportItem, output_dir: Path) -> Tuple[Path, str]:
        """
        Output file path and format for an item

        Keeps the item's relative sub-directory and forces the extension to the
        source's image kind.

        Raises:
            DecodeError: Source extension is not a supported image kind
        """
        relative = Path(item.source_relative_path)
        output_format = image_kind(relative)
        if output_format is None:
            raise DecodeError(item.source_relative_path, f"Unsupported image type: {relative.name}")

        sub_dir = relative.parent
        if relative.is_absolute() or ".." in relative.parts:
            sub_dir = Path()

        stem = item.output_filename_stem.strip() or relative.stem
        filename = Path(stem).name + extension_for(output_format)
        return output_dir / sub_dir / filename, output_format

    def export_batch(
        self,
        items: List[ExportItem],
        target_size_id: str,
        output_root: Path,
        source_root: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExportResult:
        """
        Export a batch of photos

        Args:
            items: Ordered selection
            target_size_id: Preset id
            output_root: Parent of the run's output directory
            source_root: Directory the items' relative paths are resolved against
            on_progress: Called once per item with (current, total, filename)

        Returns:
            ExportResult; exported_count + failed_count == total_count
        """
        if self._state == ExportState.RUNNING:
            raise RuntimeError("An export run is already in progress")

        self.renderer.config.target_size(target_size_id)

        self._state = ExportState.RUNNING
        total = len(items)
        exported = 0
        failed = 0

        try:
            output_dir = self.resolve_output_dir(output_root, target_size_id)
            logger.info(f"Exporting {total} photo(s) at {target_size_id} to {output_dir}")

            for index, (item, error) in enumerate(
                self._run(items, target_size_id, output_dir, Path(source_root)), start=1
            ):
                if error is None:
                    exported += 1
                else:
                    failed += 1
                    logger.warning(f"Export failed for {item.source_relative_path}: {error}")

                self._emit_progress(on_progress, index, total, Path(item.source_relative_path).name)
        finally:
            self._state = ExportState.COMPLETED

        logger.info(f"Export complete: {exported} exported, {failed} failed, {total} total")
        return ExportResult(
            exported_count=exported,
            failed_count=failed,
            total_count=total,
            output_dir=output_dir,
        )

    def assign_output_paths(self, items: List[ExportItem], output_dir: Path) -> List[AssignedOutput]:
        """
        Output (path, format) for every item, in input order

        Items that would land on the same file get _2, _3, ... suffixes, first
        come first served. Items without a usable output path get their error
        instead.
        """
        taken = set()
        assigned: List[AssignedOutput] = []

        for item in items:
            try:
                path, output_format = self.output_path_for(item, output_dir)
            except DecodeError as e:
                assigned.append(e)
                continue

            base = path
            suffix = 2
            # Case-insensitive so the result is the same on every filesystem
            while path.as_posix().lower() in taken:
                path = base.with_name(f"{base.stem}_{suffix}{base.suffix}")
                suffix += 1
            taken.add(path.as_posix().lower())
            assigned.append((path, output_format))

        return assigned

    def _run(self, items: List[ExportItem], target_size_id: str, output_dir: Path, source_root: Path):
        """Yield (item, error or None) in input order"""
        jobs = list(zip(items, self.assign_output_paths(items, output_dir)))

        if self.max_workers == 1:
            for item, output in jobs:
                yield item, self._export_item(item, output, target_size_id, source_root)
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [
                pool.submit(self._export_item, item, output, target_size_id, source_root)
                for item, output in jobs
            ]
            for (item, _), future in zip(jobs, futures):
                yield item, future.result()

    def _export_item(
        self,
        item: ExportItem,
        output: AssignedOutput,
        target_size_id: str,
        source_root: Path,
    ) -> Optional[Exception]:
        """Render and write one item; returns the error instead of raising it"""
        if isinstance(output, Exception):
            return output

        output_path, output_format = output
        try:
            options = RenderOptions(include_text=True, output_format=output_format)
            data = self.renderer.render(
                source_root / item.source_relative_path,
                target_size_id,
                item.caption,
                options=options,
            )
            save_image(data, output_path)
            logger.debug(f"Saved {output_path}")
            return None
        except Exception as e:
            return e

    @staticmethod
    def _emit_progress(on_progress: Optional[ProgressCallback], current: int, total: int, filename: str) -> None:
        if on_progress is None:
            return
        try:
            on_progress(current, total, filename)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")
