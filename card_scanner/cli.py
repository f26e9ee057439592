"""
Card Scanner operator console.

Opens the camera in an OpenCV window, draws the detection overlay on the live
frame and maps keys to operator actions:

    space   start / stop scanning
    c       start / stop the camera
    r       retry OCR engine initialization
    p       force video playback
    v       reveal / mask the detected number
    q, Esc  quit

Usage:
    card-scanner
    card-scanner --device 1 --log-level DEBUG
    card-scanner --config-dir ./my_config --no-autoplay
"""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np

from card_scanner.capture import CaptureSessionManager
from card_scanner.capture import get_default_config as get_default_capture_config
from card_scanner.capture import load_config as load_capture_config
from card_scanner.imaging import composite_overlay
from card_scanner.ocr import RecognitionEngineManager
from card_scanner.ocr import get_default_config as get_default_ocr_config
from card_scanner.ocr import load_config as load_ocr_config
from card_scanner.scanner import ScanOrchestrator
from card_scanner.scanner import get_default_config as get_default_scanner_config
from card_scanner.scanner import load_config as load_scanner_config
from card_scanner.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

WINDOW_NAME = "Card Scanner"
PLACEHOLDER_SIZE = (480, 640)
FRAME_INTERVAL = 1 / 30

KEY_ESC = 27

STRIP_HEIGHT = 28
TEXT_COLOR = (255, 255, 255)
ERROR_COLOR = (68, 68, 239)
NUMBER_COLOR = (129, 185, 16)


def _load(config_dir: Optional[Path], name: str, loader, default):
    if config_dir is not None:
        path = config_dir / f"{name}.yaml"
        if path.exists():
            logger.info(f"Loading {name} configuration from {path}")
            return loader(path)
    return default()


def build_orchestrator(
    config_dir: Optional[Path] = None,
    device: Optional[int] = None,
    autoplay: bool = True,
) -> ScanOrchestrator:
    """
    Build the orchestrator with its capture and engine managers.

    Args:
        config_dir: Directory with optional capture.yaml, ocr.yaml and
            scanner.yaml overriding the bundled files
        device: OpenCV device index used for every facing mode
        autoplay: Start playback as soon as the stream can play

    Returns:
        ScanOrchestrator owning both managers
    """
    capture_config = _load(
        config_dir, "capture", load_capture_config, get_default_capture_config
    ).capture
    ocr_config = _load(config_dir, "ocr", load_ocr_config, get_default_ocr_config).engine
    scanner_config = _load(
        config_dir, "scanner", load_scanner_config, get_default_scanner_config
    ).scanner

    if device is not None:
        capture_config.default_device = device
        capture_config.devices = {mode: device for mode in ("environment", "user")}
    capture_config.autoplay = autoplay

    return ScanOrchestrator(
        capture=CaptureSessionManager(capture_config),
        engine=RecognitionEngineManager(ocr_config),
        config=scanner_config,
    )


def status_lines(orchestrator: ScanOrchestrator) -> List[str]:
    """Text lines for the status strip: camera, OCR, scan state, result."""
    engine = orchestrator.engine
    if engine.is_ready:
        ocr_status = "OCR ready"
    elif engine.initializing:
        ocr_status = f"OCR loading (attempt {engine.retry_count + 1})"
    else:
        ocr_status = "OCR unavailable"

    scan_status = "Scanning" if orchestrator.state.is_scanning else "Idle"
    lines = [f"{orchestrator.capture.status} | {ocr_status} | {scan_status}"]

    if orchestrator.error:
        lines.append(f"Error: {orchestrator.error}")
    elif orchestrator.notice:
        lines.append(orchestrator.notice)

    number = orchestrator.display_number
    if number is not None:
        confidence = orchestrator.detected_card.confidence
        lines.append(f"Card: {number} ({confidence:.1f}%)")
    return lines


def render(orchestrator: ScanOrchestrator) -> np.ndarray:
    """Compose the window image: live frame, overlay and status strip."""
    frame = orchestrator.capture.sink.current_frame()
    if frame is None:
        frame = np.zeros((*PLACEHOLDER_SIZE, 3), dtype=np.uint8)
    elif frame.ndim == 3 and frame.shape[2] == 4:
        frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)

    image = composite_overlay(frame, orchestrator.overlay)

    lines = status_lines(orchestrator)
    strip = np.zeros((STRIP_HEIGHT * len(lines), image.shape[1], 3), dtype=np.uint8)
    for i, line in enumerate(lines):
        if line.startswith("Error:"):
            color = ERROR_COLOR
        elif line.startswith("Card:"):
            color = NUMBER_COLOR
        else:
            color = TEXT_COLOR
        cv2.putText(
            strip,
            line,
            (8, STRIP_HEIGHT * (i + 1) - 9),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.55,
            color,
            1,
            cv2.LINE_AA,
        )
    return np.vstack([image, strip])


async def handle_key(orchestrator: ScanOrchestrator, key: int) -> bool:
    """
    Dispatch one key press.

    Returns:
        False when the console should quit
    """
    if key in (ord("q"), KEY_ESC):
        return False

    if key == ord(" "):
        orchestrator.toggle_scanning()
    elif key == ord("c"):
        if orchestrator.capture.stream is None:
            await orchestrator.start_camera()
        else:
            orchestrator.stop_scanning()
            orchestrator.stop_camera()
    elif key == ord("r"):
        orchestrator.retry_ocr()
    elif key == ord("p"):
        await orchestrator.force_play()
    elif key == ord("v"):
        orchestrator.toggle_reveal()
    return True


async def run(orchestrator: ScanOrchestrator) -> None:
    """Drive the window until the operator quits. Closes the orchestrator once."""
    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_AUTOSIZE)
    try:
        await orchestrator.open()
        await orchestrator.start_camera()

        while True:
            cv2.imshow(WINDOW_NAME, render(orchestrator))
            key = cv2.waitKey(1) & 0xFF
            if key != 0xFF and not await handle_key(orchestrator, key):
                break
            await asyncio.sleep(FRAME_INTERVAL)
    finally:
        await orchestrator.close()
        cv2.destroyWindow(WINDOW_NAME)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the operator console."""
    parser = argparse.ArgumentParser(
        description="Scan payment card numbers from a live camera",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Keys:
  space   start / stop scanning
  c       start / stop the camera
  r       retry OCR initialization
  p       force video playback
  v       reveal / mask the detected number
  q, Esc  quit
        """,
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory with capture.yaml / ocr.yaml / scanner.yaml overrides",
    )
    parser.add_argument(
        "--device",
        type=int,
        default=None,
        help="OpenCV camera index (default: from capture config)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file",
    )
    parser.add_argument(
        "--no-autoplay",
        action="store_true",
        help="Wait for 'p' before playing the video",
    )
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_file)

    orchestrator = build_orchestrator(
        config_dir=args.config_dir,
        device=args.device,
        autoplay=not args.no_autoplay,
    )

    try:
        asyncio.run(run(orchestrator))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
