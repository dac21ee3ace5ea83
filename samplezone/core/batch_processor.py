"""
Batch feature extraction across many recordings.

Decoding and extraction are independent per file, so files are processed
on a thread pool. A failure is recorded against its file and never
aborts the batch.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from samplezone.core.features import FeatureExtractor
from samplezone.core.loader import SUPPORTED_FORMATS, AudioLoader
from samplezone.core.models import AudioSignal, SampleFeatures
from samplezone.utils.errors import SampleZoneError
from samplezone.utils.logging import create_logger_with_context


@dataclass
class BatchResult:
    """
    Outcome of a batch extraction.

    ``order`` lists every input identifier in input order, including
    failed ones; ``successful`` and ``failed`` are keyed by identifier.
    """
    successful: Dict[str, SampleFeatures] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)
    total_time: float = 0.0

    @property
    def total_files(self) -> int:
        return len(self.order)

    @property
    def success_count(self) -> int:
        return len(self.successful)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.total_files == 0:
            return 0.0
        return (self.success_count / self.total_files) * 100

    def successful_in_order(self) -> List[str]:
        return [ident for ident in self.order if ident in self.successful]


class FeatureBatchProcessor:
    """
    Extracts SampleFeatures for many files or signals in parallel.
    """

    AUDIO_EXTENSIONS = set(SUPPORTED_FORMATS)

    def __init__(
        self,
        extractor: Optional[FeatureExtractor] = None,
        loader: Optional[AudioLoader] = None,
        max_workers: int = 4,
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
    ):
        """
        Args:
            extractor: Feature extractor (default settings if None)
            loader: Audio loader (default settings if None)
            max_workers: Thread pool size; 1 processes sequentially
            progress_callback: Optional callback(done, total, identifier)
        """
        self.extractor = extractor or FeatureExtractor()
        self.loader = loader or AudioLoader()
        self.max_workers = max(1, max_workers)
        self.progress_callback = progress_callback
        self.logger = logging.getLogger("batch_processor")

    def process(
        self,
        inputs: Union[str, Path, Sequence[Union[str, Path]]],
        recursive: bool = False,
    ) -> BatchResult:
        """
        Extract features for files and/or directories.

        Explicit files keep their input order; directory contents are
        added sorted by path. Missing paths and unsupported suffixes are
        reported as failures.
        """
        start_time = time.time()
        result = BatchResult()
        files = self._collect_files(inputs, recursive, result)

        if not result.order:
            self.logger.warning("No audio files found to process")
            return result

        self.logger.info(f"Extracting features from {len(files)} audio files")
        self._run({str(f): (lambda f=f: self.loader.load(f)) for f in files}, result)
        result.total_time = time.time() - start_time

        self.logger.info(
            f"Batch complete: {result.success_count}/{result.total_files} succeeded "
            f"in {result.total_time:.2f}s"
        )
        return result

    def process_signals(
        self,
        signals: Sequence[AudioSignal],
        identifiers: Optional[Sequence[str]] = None,
    ) -> BatchResult:
        """Extract features for already prepared signals."""
        if identifiers is None:
            identifiers = [s.source or str(i) for i, s in enumerate(signals)]
        if len(identifiers) != len(signals) or len(set(identifiers)) != len(identifiers):
            raise ValueError("identifiers must be unique and match signals one to one")

        start_time = time.time()
        result = BatchResult(order=list(identifiers))
        self._run(
            {ident: (lambda s=s: s) for ident, s in zip(identifiers, signals)}, result
        )
        result.total_time = time.time() - start_time
        return result

    def _run(self, sources: Dict[str, Callable[[], AudioSignal]], result: BatchResult) -> None:
        total = len(result.order)
        done = result.failure_count

        if self.max_workers == 1:
            for ident, source in sources.items():
                self._record(ident, lambda: self._extract_one(ident, source), result)
                done += 1
                if self.progress_callback:
                    self.progress_callback(done, total, ident)
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._extract_one, ident, source): ident
                for ident, source in sources.items()
            }
            for future in as_completed(futures):
                ident = futures[future]
                self._record(ident, future.result, result)
                done += 1
                if self.progress_callback:
                    self.progress_callback(done, total, ident)

    def _record(self, ident: str, call: Callable[[], SampleFeatures], result: BatchResult) -> None:
        try:
            features = call()
        except SampleZoneError as e:
            result.failed[ident] = str(e)
            self.logger.error(f"Skipping {ident}: {e}")
        except Exception as e:
            result.failed[ident] = f"{type(e).__name__}: {e}"
            self.logger.exception(f"Unexpected failure for {ident}")
        else:
            result.successful[ident] = features

    def _extract_one(self, ident: str, source: Callable[[], AudioSignal]) -> SampleFeatures:
        log = create_logger_with_context("batch_processor", {"file": ident})
        signal = source()
        features = self.extractor.extract(signal)
        log.debug(f"Extracted features ({len(signal)} samples)")
        return features

    def _collect_files(
        self,
        inputs: Union[str, Path, Sequence[Union[str, Path]]],
        recursive: bool,
        result: BatchResult,
    ) -> List[Path]:
        if isinstance(inputs, (str, Path)):
            inputs = [inputs]

        files: List[Path] = []
        seen = set()

        def add(path: Path) -> None:
            key = str(path)
            if key not in seen:
                seen.add(key)
                files.append(path)
                result.order.append(key)

        for path in map(Path, inputs):
            if path.is_dir():
                for found in self._scan_directory(path, recursive):
                    add(found)
            elif path.is_file() and not self._is_audio_file(path):
                self.logger.warning(f"Skipping non-audio file: {path}")
                if str(path) not in seen:
                    seen.add(str(path))
                    result.order.append(str(path))
                    result.failed[str(path)] = f"Unsupported format: {path.suffix}"
            elif path.is_file():
                add(path)
            else:
                self.logger.warning(f"Path not found: {path}")
                if str(path) not in seen:
                    seen.add(str(path))
                    result.order.append(str(path))
                    result.failed[str(path)] = "Path not found"

        return files

    def _scan_directory(self, directory: Path, recursive: bool) -> List[Path]:
        pattern = "**/*" if recursive else "*"
        return sorted(
            path for path in directory.glob(pattern)
            if path.is_file() and self._is_audio_file(path)
        )

    def _is_audio_file(self, path: Path) -> bool:
        return path.suffix.lower() in self.AUDIO_EXTENSIONS
