"""Unit tests for the Tesseract backend.

The tesseract binary is never invoked: pytesseract calls are patched.
"""

from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import numpy as np
import pytest
import requests

from card_scanner.common.errors import EngineConstructionFailed, RecognitionCallFailed
from card_scanner.imaging.preprocessing import encode_image
from card_scanner.ocr.engine_tesseract import (
    TesseractBackend,
    build_tesseract_config,
    create_backend,
    download_model,
    model_sources,
    parse_tesseract_data,
    resolve_tessdata_dir,
)
from card_scanner.ocr.types import BackendOptions


def _tesseract_data(rows):
    """Build an image_to_data dictionary from (block, par, line, text, conf) rows."""
    data = {"block_num": [], "par_num": [], "line_num": [], "text": [], "conf": []}
    for block, par, line, text, conf in rows:
        data["block_num"].append(block)
        data["par_num"].append(par)
        data["line_num"].append(line)
        data["text"].append(text)
        data["conf"].append(conf)
    return data


class TestParseTesseractData:
    """Test aggregation of word-level output."""

    def test_groups_words_into_lines(self):
        data = _tesseract_data(
            [
                (1, 1, 1, "4111", 90),
                (1, 1, 1, "1111", 80),
                (1, 1, 2, "VISA", 70),
            ]
        )

        result = parse_tesseract_data(data)

        assert result.text == "4111 1111\nVISA"
        assert result.confidence == pytest.approx(80.0)

    def test_skips_layout_rows(self):
        """Test that conf -1 rows and blank words are ignored."""
        data = _tesseract_data(
            [
                (1, 0, 0, "", -1),
                (1, 1, 1, "  ", 95),
                (1, 1, 1, "4111", "60.5"),
            ]
        )

        result = parse_tesseract_data(data)

        assert result.text == "4111"
        assert result.confidence == pytest.approx(60.5)

    def test_nothing_recognized(self):
        result = parse_tesseract_data(_tesseract_data([(1, 0, 0, "", -1)]))
        assert result.text == ""
        assert result.confidence == 0.0


class TestBuildTesseractConfig:
    """Test command-line config assembly."""

    def test_flags_and_variables(self):
        config = build_tesseract_config(
            Path("/data/tess"),
            {"psm": 6, "oem": "1", "tessedit_char_whitelist": "0123456789 "},
        )
        assert config.startswith('--tessdata-dir "/data/tess"')
        assert "--psm 6" in config
        assert "--oem 1" in config
        assert "-c tessedit_char_whitelist=0123456789 " in config

    def test_empty(self):
        assert build_tesseract_config(None, {}) == ""


class TestModelSources:
    """Test language to model URI mapping."""

    def test_core_path_for_primary_language(self):
        options = BackendOptions(
            core_path="https://cdn.example.com/eng.traineddata",
            lang_path="https://cdn.example.com/",
        )

        sources = model_sources("eng+deu", options)

        assert sources == {
            "eng": "https://cdn.example.com/eng.traineddata",
            "deu": "https://cdn.example.com/deu.traineddata",
        }

    def test_local_lang_path(self):
        options = BackendOptions(lang_path="assets/tessdata")
        assert model_sources("eng", options) == {
            "eng": str(Path("assets/tessdata") / "eng.traineddata")
        }

    def test_missing_source(self):
        options = BackendOptions(core_path="/models/eng.traineddata")
        with pytest.raises(EngineConstructionFailed, match="deu"):
            model_sources("eng+deu", options)


class TestResolveTessdataDir:
    """Test tessdata directory resolution per tier."""

    def test_bundled_tier(self):
        assert resolve_tessdata_dir("eng", BackendOptions()) is None

    def test_local_models(self, tmp_path):
        (tmp_path / "eng.traineddata").write_bytes(b"model")
        options = BackendOptions(
            core_path=str(tmp_path / "eng.traineddata"), lang_path=str(tmp_path)
        )

        assert resolve_tessdata_dir("eng", options) == tmp_path

    def test_local_model_missing(self, tmp_path):
        options = BackendOptions(core_path=str(tmp_path / "eng.traineddata"))
        with pytest.raises(EngineConstructionFailed, match="not found"):
            resolve_tessdata_dir("eng", options)

    @patch("card_scanner.ocr.engine_tesseract.download_model")
    def test_remote_models_downloaded_to_cache(self, mock_download, tmp_path):
        options = BackendOptions(
            core_path="https://cdn.example.com/eng.traineddata",
            cache_dir=str(tmp_path),
        )

        assert resolve_tessdata_dir("eng", options) == tmp_path
        mock_download.assert_called_once()
        assert mock_download.call_args.args[:2] == (
            "https://cdn.example.com/eng.traineddata",
            tmp_path / "eng.traineddata",
        )

    def test_remote_without_cache_dir(self):
        options = BackendOptions(core_path="https://cdn.example.com/eng.traineddata")
        with pytest.raises(EngineConstructionFailed, match="cache directory"):
            resolve_tessdata_dir("eng", options)


class TestDownloadModel:
    """Test model download into the cache."""

    def test_cached_model_not_downloaded(self, tmp_path):
        destination = tmp_path / "eng.traineddata"
        destination.write_bytes(b"cached")

        with patch("card_scanner.ocr.engine_tesseract.requests.get") as mock_get:
            assert download_model("https://x/eng.traineddata", destination, 1.0) == destination
            mock_get.assert_not_called()

    @patch("card_scanner.ocr.engine_tesseract.requests.get")
    def test_streams_to_destination(self, mock_get, tmp_path):
        response = MagicMock()
        response.iter_content.return_value = [b"abc", b"def"]
        mock_get.return_value.__enter__.return_value = response
        destination = tmp_path / "cache" / "eng.traineddata"

        download_model("https://x/eng.traineddata", destination, 1.0)

        assert destination.read_bytes() == b"abcdef"
        assert not (tmp_path / "cache" / "eng.traineddata.part").exists()

    @patch("card_scanner.ocr.engine_tesseract.requests.get")
    def test_failure_cleans_up(self, mock_get, tmp_path):
        mock_get.side_effect = requests.Timeout("timed out")
        destination = tmp_path / "eng.traineddata"

        with pytest.raises(EngineConstructionFailed, match="timed out"):
            download_model("https://x/eng.traineddata", destination, 1.0)

        assert not destination.exists()


class TestTesseractBackend:
    """Test recognition and termination."""

    @pytest.mark.asyncio
    @patch("card_scanner.ocr.engine_tesseract.pytesseract.image_to_data")
    async def test_recognize(self, mock_image_to_data, small_frame):
        mock_image_to_data.return_value = _tesseract_data(
            [
                (1, 1, 1, "4111", 88),
                (1, 1, 1, "1111", 88),
                (1, 1, 1, "1111", 88),
                (1, 1, 1, "1111", 88),
            ]
        )
        progress = Mock()
        backend = TesseractBackend("eng", extra={"psm": 6}, progress_logger=progress)

        try:
            result = await backend.recognize(encode_image(small_frame))
        finally:
            backend.terminate()

        assert result.text == "4111 1111 1111 1111"
        assert result.confidence == pytest.approx(88.0)
        assert mock_image_to_data.call_args.kwargs["lang"] == "eng"
        assert mock_image_to_data.call_args.kwargs["config"] == "--psm 6"
        progress.assert_any_call({"status": "recognizing text", "progress": 1.0})

    @pytest.mark.asyncio
    async def test_undecodable_blob(self):
        backend = TesseractBackend("eng")
        try:
            with pytest.raises(RecognitionCallFailed, match="decode"):
                await backend.recognize(b"not an image")
        finally:
            backend.terminate()

    @pytest.mark.asyncio
    @patch("card_scanner.ocr.engine_tesseract.pytesseract.image_to_data")
    async def test_tesseract_failure_wrapped(self, mock_image_to_data, small_frame):
        mock_image_to_data.side_effect = RuntimeError("tesseract crashed")
        backend = TesseractBackend("eng")
        try:
            with pytest.raises(RecognitionCallFailed, match="tesseract crashed"):
                await backend.recognize(encode_image(small_frame))
        finally:
            backend.terminate()

    @pytest.mark.asyncio
    async def test_recognize_after_terminate(self, small_frame):
        backend = TesseractBackend("eng")
        backend.terminate()
        backend.terminate()

        assert backend.terminated
        with pytest.raises(RecognitionCallFailed, match="terminated"):
            await backend.recognize(encode_image(small_frame))


class TestCreateBackend:
    """Test backend construction."""

    @pytest.mark.asyncio
    @patch("card_scanner.ocr.engine_tesseract.pytesseract.get_tesseract_version")
    async def test_missing_binary(self, mock_version):
        mock_version.side_effect = EnvironmentError("tesseract is not installed")

        with pytest.raises(EngineConstructionFailed, match="not installed"):
            await create_backend(
                "eng", 1, BackendOptions(worker_path="/nonexistent/tesseract")
            )

    @pytest.mark.asyncio
    @patch("card_scanner.ocr.engine_tesseract.pytesseract.get_tesseract_version")
    async def test_bundled_tier(self, mock_version):
        mock_version.return_value = "5.3.0"
        progress = Mock()

        backend = await create_backend(
            "eng", 2, BackendOptions(logger=progress, extra={"psm": 6})
        )
        try:
            assert isinstance(backend, TesseractBackend)
            assert backend.workers == 2
            assert backend.tessdata_dir is None
            assert backend.config_string == "--psm 6"
        finally:
            backend.terminate()
