"""Unit tests for remote asset probing."""

from unittest.mock import Mock, patch

import pytest
import requests

from card_scanner.common.errors import EngineAssetUnreachable
from card_scanner.ocr.config_loader import EngineTierConfig
from card_scanner.ocr.probe import probe_asset, probe_tier_assets

URL = "https://cdn.example.com/eng.traineddata"


class TestProbeAsset:
    """Test single-URI HEAD probes."""

    @patch("card_scanner.ocr.probe.requests.head")
    def test_reachable(self, mock_head):
        mock_head.return_value = Mock(ok=True, status_code=200)

        probe_asset(URL, timeout=3.0)

        mock_head.assert_called_once_with(URL, timeout=3.0, allow_redirects=True)

    @patch("card_scanner.ocr.probe.requests.head")
    def test_http_error_status(self, mock_head):
        mock_head.return_value = Mock(ok=False, status_code=404)

        with pytest.raises(EngineAssetUnreachable, match="HTTP 404") as exc_info:
            probe_asset(URL)

        assert exc_info.value.url == URL

    @patch("card_scanner.ocr.probe.requests.head")
    def test_transport_error(self, mock_head):
        mock_head.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(EngineAssetUnreachable, match="connection refused"):
            probe_asset(URL)


class TestProbeTierAssets:
    """Test per-tier probing."""

    @pytest.mark.asyncio
    @patch("card_scanner.ocr.probe.requests.head")
    async def test_local_tier_not_probed(self, mock_head):
        tier = EngineTierConfig(
            name="local", core_path="assets/tessdata/eng.traineddata"
        )

        await probe_tier_assets(tier)

        mock_head.assert_not_called()

    @pytest.mark.asyncio
    @patch("card_scanner.ocr.probe.requests.head")
    async def test_probes_worker_and_core(self, mock_head):
        mock_head.return_value = Mock(ok=True, status_code=200)
        tier = EngineTierConfig(
            name="cdn",
            worker_path="https://cdn.example.com/worker",
            core_path=URL,
        )

        await probe_tier_assets(tier, timeout=1.0)

        probed = [call.args[0] for call in mock_head.call_args_list]
        assert probed == ["https://cdn.example.com/worker", URL]

    @pytest.mark.asyncio
    @patch("card_scanner.ocr.probe.requests.head")
    async def test_first_failure_stops(self, mock_head):
        mock_head.return_value = Mock(ok=False, status_code=503)
        tier = EngineTierConfig(
            name="cdn",
            worker_path="https://cdn.example.com/worker",
            core_path=URL,
        )

        with pytest.raises(EngineAssetUnreachable):
            await probe_tier_assets(tier)

        assert mock_head.call_count == 1
