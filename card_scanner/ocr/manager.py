"""Recognition engine lifecycle management.

The manager owns the single OCR backend of the application. Initialization
walks an ordered list of fallback tiers:

    attempt n uses tier min(n - 1, len(tiers) - 1)

Remote tiers are probed with HEAD requests before the backend is constructed.
A failed attempt waits a fixed delay and moves to the next tier; after
``max_retries`` retries a terminal InitializationError is recorded and raised.
Only one initialization run is ever in flight. A backend that finishes
construction after ``dispose()`` is terminated instead of installed.

Example:
    >>> manager = RecognitionEngineManager(get_default_config().engine)
    >>> await manager.initialize()
    >>> result = await manager.recognize(png_bytes)
    >>> await manager.aclose()
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from card_scanner.common.errors import (
    EngineConstructionFailed,
    EngineError,
    EngineNotReady,
    InitializationError,
    RecognitionCallFailed,
    RecognitionError,
)

from .config_loader import EngineTierConfig, OCREngineConfig, get_default_config
from .engine_tesseract import create_backend
from .probe import probe_tier_assets
from .types import BackendOptions, RecognitionEngineHandle, RecognitionResult

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str, int, BackendOptions], Awaitable[Any]]
AssetProbe = Callable[[EngineTierConfig, float], Awaitable[None]]


class RecognitionEngineManager:
    """Owns the OCR backend: tiered initialization, retry, recognition, teardown.

    Args:
        config: Engine configuration. If None, uses the bundled defaults.
        backend_factory: Coroutine function building a backend from
            ``(language, workers, options)``.
        asset_probe: Coroutine function checking a tier's remote assets.

    Attributes:
        config: Engine configuration.
        handle: Current lifecycle state (backend, retry count, last error).
    """

    def __init__(
        self,
        config: Optional[OCREngineConfig] = None,
        backend_factory: BackendFactory = create_backend,
        asset_probe: AssetProbe = probe_tier_assets,
    ):
        self.config = config if config is not None else get_default_config().engine
        self.handle = RecognitionEngineHandle()
        self._backend_factory = backend_factory
        self._asset_probe = asset_probe
        self._task: Optional[asyncio.Task] = None
        self._disposed = False
        self._closed = asyncio.Event()

        logger.info(
            f"RecognitionEngineManager created: language={self.config.language}, "
            f"tiers={[tier.name for tier in self.config.tiers]}, "
            f"max_retries={self.config.max_retries}"
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def backend(self) -> Optional[Any]:
        return self.handle.backend

    @property
    def is_ready(self) -> bool:
        return self.handle.is_ready

    @property
    def initializing(self) -> bool:
        return self.handle.initializing

    @property
    def retry_count(self) -> int:
        return self.handle.retry_count

    @property
    def last_error(self) -> Optional[str]:
        return self.handle.last_error

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Begin an initialization run in the background.

        Every run starts from the first tier. Returns the in-flight run if
        there is one; a second run is never started concurrently.

        Raises:
            EngineError: If the manager has been disposed.
        """
        if self._disposed:
            raise EngineError("OCR engine manager has been disposed")

        if self._task is not None and not self._task.done():
            return self._task

        self.handle.initializing = True
        self.handle.retry_count = 0
        self.handle.tier_name = None
        self.handle.last_error = None
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._on_run_done)
        return self._task

    async def initialize(self) -> RecognitionEngineHandle:
        """Initialize the backend, retrying through the fallback tiers.

        Returns:
            The handle with an installed backend.

        Raises:
            InitializationError: If every attempt failed.
            EngineError: If the manager was disposed before completion.
        """
        if self.handle.backend is not None:
            return self.handle
        return await self.start()

    def retry(self) -> asyncio.Task:
        """Reset retry bookkeeping and start a fresh initialization run.

        An installed backend is superseded and terminated. If a run is
        already in flight it is returned unchanged.
        """
        if self._task is not None and not self._task.done():
            logger.info("OCR initialization already in progress, not restarting")
            return self._task

        self._release_backend()
        logger.info("Retrying OCR engine initialization")
        return self.start()

    def dispose(self) -> None:
        """Terminate the backend and stop any pending retries.

        Idempotent. A construction still in flight finishes on its own and
        its backend is terminated rather than installed.
        """
        if self._disposed:
            return

        self._disposed = True
        self._closed.set()
        self._release_backend()
        logger.info("RecognitionEngineManager disposed")

    async def aclose(self) -> None:
        """Dispose and wait for an in-flight initialization run to settle.

        A backend constructed by that run is terminated before this returns.
        """
        self.dispose()
        task = self._task
        if task is None or task.done():
            return
        try:
            await task
        except EngineError as e:
            logger.debug(f"Initialization run ended on close: {e}")

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    async def recognize(self, image_blob: bytes) -> RecognitionResult:
        """Recognize text in an encoded image.

        Args:
            image_blob: Encoded image bytes.

        Returns:
            RecognitionResult with text and confidence in [0, 100].

        Raises:
            EngineNotReady: If no backend is installed.
            RecognitionCallFailed: If the backend fails.
        """
        backend = self.handle.backend
        if backend is None:
            raise EngineNotReady("OCR worker not initialized")

        try:
            return await backend.recognize(image_blob)
        except RecognitionError:
            raise
        except Exception as e:
            raise RecognitionCallFailed(f"OCR processing error: {e}") from e

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self) -> RecognitionEngineHandle:
        while True:
            tier = self.config.select_tier(self.handle.retry_count)
            attempt = self.handle.retry_count + 1
            logger.info(
                f"Initializing OCR worker (attempt {attempt}, tier '{tier.name}')"
            )

            try:
                backend = await self._attempt(tier)
            except EngineError as e:
                logger.warning(
                    f"OCR initialization attempt {attempt} failed "
                    f"on tier '{tier.name}': {e}"
                )
                if self._disposed:
                    self.handle.initializing = False
                    raise EngineError("OCR engine manager was disposed") from e

                if self.handle.retry_count < self.config.max_retries:
                    self.handle.retry_count += 1
                    await self._backoff()
                    if self._disposed:
                        self.handle.initializing = False
                        raise EngineError("OCR engine manager was disposed") from e
                    continue

                error = InitializationError(attempt, str(e))
                self.handle.initializing = False
                self.handle.last_error = str(error)
                logger.error(str(error))
                raise error from e

            if self._disposed:
                logger.info("Manager disposed during initialization, releasing backend")
                backend.terminate()
                self.handle.initializing = False
                raise EngineError("OCR engine manager was disposed")

            self.handle.backend = backend
            self.handle.tier_name = tier.name
            self.handle.initializing = False
            self.handle.last_error = None
            logger.info(f"OCR worker created successfully (tier '{tier.name}')")
            return self.handle

    async def _attempt(self, tier: EngineTierConfig) -> Any:
        await self._asset_probe(tier, self.config.probe_timeout_seconds)

        options = BackendOptions(
            logger=self._log_progress,
            worker_path=tier.worker_path,
            core_path=tier.core_path,
            lang_path=tier.lang_path,
            extra=dict(tier.options),
            cache_dir=str(self.config.cache_dir),
        )
        construction = asyncio.ensure_future(
            self._backend_factory(self.config.language, self.config.workers, options)
        )
        try:
            return await asyncio.shield(construction)
        except asyncio.CancelledError:
            construction.add_done_callback(self._release_orphan)
            raise
        except EngineError:
            raise
        except Exception as e:
            raise EngineConstructionFailed(str(e) or type(e).__name__) from e

    async def _backoff(self) -> None:
        try:
            await asyncio.wait_for(
                self._closed.wait(), timeout=self.config.retry_delay_seconds
            )
        except asyncio.TimeoutError:
            pass

    def _release_backend(self) -> None:
        backend = self.handle.backend
        if backend is None:
            return
        self.handle.backend = None
        backend.terminate()

    @staticmethod
    def _release_orphan(construction: asyncio.Future) -> None:
        # Backend finished building after its run was cancelled
        if construction.cancelled() or construction.exception() is not None:
            return
        logger.info("Releasing OCR backend constructed after cancellation")
        construction.result().terminate()

    def _on_run_done(self, task: asyncio.Task) -> None:
        # Retrieve the outcome so fire-and-forget runs do not warn on exit
        if task.cancelled():
            self.handle.initializing = False
        else:
            task.exception()

    @staticmethod
    def _log_progress(message: Dict[str, Any]) -> None:
        if message.get("status") == "recognizing text":
            logger.debug(f"OCR Progress: {message.get('progress', 0.0) * 100:.1f}%")
