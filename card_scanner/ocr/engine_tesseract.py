"""Tesseract OCR backend for card number recognition.

This module provides the backend the engine manager constructs for each tier:

- Backend construction with an explicit executable and tessdata location
- Download of remote language models into a local cache
- Asynchronous recognition of encoded image blobs on a worker pool
- Synchronous termination that releases the worker pool

Example:
    >>> backend = await create_backend("eng", 1, BackendOptions())
    >>> result = await backend.recognize(png_bytes)
    >>> print(result.text, result.confidence)
    '4111 1111 1111 1111' 87.5
    >>> backend.terminate()
"""

import asyncio
import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np
import pytesseract
import requests

from card_scanner.common.errors import EngineConstructionFailed, RecognitionCallFailed

from .config_loader import is_remote
from .types import BackendOptions, ProgressLogger, RecognitionResult

logger = logging.getLogger(__name__)

DEFAULT_TESSERACT_CMD = "tesseract"
MODEL_SUFFIX = ".traineddata"
DOWNLOAD_TIMEOUT_SECONDS = 30.0


def parse_tesseract_data(data: Dict[str, List[Any]]) -> RecognitionResult:
    """Aggregate ``image_to_data`` output into text and page confidence.

    Words are grouped into lines by (block, paragraph, line) in reading order.
    Confidence is the mean of all word confidences that Tesseract reports as
    valid (>= 0), on a 0-100 scale.

    Args:
        data: Dictionary from ``pytesseract.image_to_data(output_type=DICT)``.

    Returns:
        RecognitionResult with newline-joined lines.
    """
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    confidences: List[float] = []

    for i in range(len(data["text"])):
        text = str(data["text"][i]).strip()
        conf = float(data["conf"][i])

        # conf < 0 marks layout rows without recognized text
        if not text or conf < 0:
            continue

        key = (
            int(data["block_num"][i]),
            int(data["par_num"][i]),
            int(data["line_num"][i]),
        )
        lines.setdefault(key, []).append(text)
        confidences.append(conf)

    if not confidences:
        return RecognitionResult(text="", confidence=0.0)

    text = "\n".join(" ".join(words) for words in lines.values())
    return RecognitionResult(text=text, confidence=float(np.mean(confidences)))


def build_tesseract_config(
    tessdata_dir: Optional[Path], extra: Dict[str, Any]
) -> str:
    """Build the Tesseract command-line config string.

    ``psm`` and ``oem`` map to their flags; any other option becomes a
    ``-c key=value`` variable.
    """
    parts = []
    if tessdata_dir is not None:
        parts.append(f'--tessdata-dir "{tessdata_dir}"')

    for key, value in extra.items():
        if key == "psm":
            parts.append(f"--psm {int(value)}")
        elif key == "oem":
            parts.append(f"--oem {int(value)}")
        else:
            parts.append(f"-c {key}={value}")

    return " ".join(parts)


def download_model(url: str, destination: Path, timeout: float) -> Path:
    """Download a language model unless it is already cached.

    Raises:
        EngineConstructionFailed: If the download fails.
    """
    if destination.exists():
        logger.debug(f"Using cached model {destination}")
        return destination

    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")

    logger.info(f"Downloading language model {url}")
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in response.iter_content(chunk_size=1 << 16):
                    f.write(chunk)
    except (requests.RequestException, OSError) as e:
        partial.unlink(missing_ok=True)
        raise EngineConstructionFailed(f"Failed to download {url}: {e}") from e

    partial.replace(destination)
    return destination


def model_sources(language: str, options: BackendOptions) -> Dict[str, str]:
    """Map each requested language to the URI of its model.

    The primary (first) language comes from ``core_path`` when set; every
    other language is looked up under ``lang_path``.

    Raises:
        EngineConstructionFailed: If a language has no source.
    """
    sources: Dict[str, str] = {}
    for index, lang in enumerate(language.split("+")):
        if index == 0 and options.core_path:
            sources[lang] = options.core_path
        elif options.lang_path:
            if is_remote(options.lang_path):
                sources[lang] = f"{options.lang_path.rstrip('/')}/{lang}{MODEL_SUFFIX}"
            else:
                sources[lang] = str(Path(options.lang_path) / f"{lang}{MODEL_SUFFIX}")
        else:
            raise EngineConstructionFailed(f"No model source for language '{lang}'")
    return sources


def resolve_tessdata_dir(language: str, options: BackendOptions) -> Optional[Path]:
    """Locate (fetching if necessary) the tessdata directory for a tier.

    Returns None when the tier names no assets, leaving Tesseract's own
    default data directory in effect.

    Raises:
        EngineConstructionFailed: If a model is missing or cannot be fetched.
    """
    if not options.core_path and not options.lang_path:
        return None

    sources = model_sources(language, options)

    if not any(is_remote(uri) for uri in sources.values()):
        directories = {Path(uri).parent for uri in sources.values()}
        if len(directories) > 1:
            raise EngineConstructionFailed(
                f"Local language models must share one tessdata directory, "
                f"got {sorted(str(d) for d in directories)}"
            )
        for uri in sources.values():
            if not Path(uri).is_file():
                raise EngineConstructionFailed(f"Language model not found: {uri}")
        return directories.pop()

    if not options.cache_dir:
        raise EngineConstructionFailed("Remote models require a cache directory")

    cache_dir = Path(options.cache_dir)
    for lang, uri in sources.items():
        destination = cache_dir / f"{lang}{MODEL_SUFFIX}"
        if is_remote(uri):
            download_model(uri, destination, DOWNLOAD_TIMEOUT_SECONDS)
        elif not destination.exists():
            try:
                cache_dir.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(uri, destination)
            except OSError as e:
                raise EngineConstructionFailed(
                    f"Language model not found: {uri}"
                ) from e
    return cache_dir


class TesseractBackend:
    """Tesseract recognizer running on a private worker pool.

    Args:
        language: Tesseract language identifier.
        workers: Worker pool size.
        tessdata_dir: Model directory, or None for Tesseract's default.
        extra: Tier options (``psm``, ``oem``, ``-c`` variables).
        progress_logger: Optional progress callback.

    Example:
        >>> backend = TesseractBackend("eng", workers=1)
        >>> result = await backend.recognize(png_bytes)
        >>> backend.terminate()
    """

    def __init__(
        self,
        language: str,
        workers: int = 1,
        tessdata_dir: Optional[Path] = None,
        extra: Optional[Dict[str, Any]] = None,
        progress_logger: Optional[ProgressLogger] = None,
    ):
        self.language = language
        self.workers = workers
        self.tessdata_dir = tessdata_dir
        self.config_string = build_tesseract_config(tessdata_dir, extra or {})
        self._progress_logger = progress_logger
        self._executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="tesseract"
        )
        self._terminated = False

        logger.info(
            f"TesseractBackend ready: language={language}, workers={workers}, "
            f"config='{self.config_string}'"
        )

    @property
    def terminated(self) -> bool:
        return self._terminated

    async def recognize(self, image_blob: bytes) -> RecognitionResult:
        """Recognize text in an encoded image.

        Args:
            image_blob: Encoded image bytes (PNG, JPEG, ...).

        Returns:
            RecognitionResult with text and confidence in [0, 100].

        Raises:
            RecognitionCallFailed: If the backend is terminated, the blob
                cannot be decoded or Tesseract fails.
        """
        if self._terminated:
            raise RecognitionCallFailed("OCR worker has been terminated")

        self._report("recognizing text", 0.0)
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                self._executor, self._recognize_sync, image_blob
            )
        except RecognitionCallFailed:
            raise
        except Exception as e:
            raise RecognitionCallFailed(f"Tesseract recognition failed: {e}") from e

        self._report("recognizing text", 1.0)
        return result

    def _recognize_sync(self, image_blob: bytes) -> RecognitionResult:
        image = cv2.imdecode(np.frombuffer(image_blob, dtype=np.uint8), cv2.IMREAD_COLOR)
        if image is None:
            raise RecognitionCallFailed("Could not decode image blob")

        data = pytesseract.image_to_data(
            cv2.cvtColor(image, cv2.COLOR_BGR2RGB),
            lang=self.language,
            config=self.config_string,
            output_type=pytesseract.Output.DICT,
        )
        return parse_tesseract_data(data)

    def _report(self, status: str, progress: float) -> None:
        if self._progress_logger is not None:
            self._progress_logger({"status": status, "progress": progress})

    def terminate(self) -> None:
        """Release the worker pool. Safe to call more than once."""
        if self._terminated:
            return
        self._terminated = True
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("TesseractBackend terminated")


def _construct_backend(
    language: str, workers: int, options: BackendOptions
) -> TesseractBackend:
    pytesseract.pytesseract.tesseract_cmd = options.worker_path or DEFAULT_TESSERACT_CMD

    try:
        version = pytesseract.get_tesseract_version()
    except Exception as e:
        raise EngineConstructionFailed(
            f"Tesseract not available ({pytesseract.pytesseract.tesseract_cmd}): {e}"
        ) from e

    logger.info(f"Tesseract version {version} found")
    tessdata_dir = resolve_tessdata_dir(language, options)

    return TesseractBackend(
        language=language,
        workers=workers,
        tessdata_dir=tessdata_dir,
        extra=options.extra,
        progress_logger=options.logger,
    )


async def create_backend(
    language: str, workers: int, options: BackendOptions
) -> TesseractBackend:
    """Construct a Tesseract backend off the event loop.

    Args:
        language: Tesseract language identifier.
        workers: Worker pool size.
        options: Tier assets and progress logger.

    Returns:
        Ready TesseractBackend.

    Raises:
        EngineConstructionFailed: If Tesseract or a model is unavailable.
    """
    return await asyncio.to_thread(_construct_backend, language, workers, options)
