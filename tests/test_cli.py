"""Tests for the command-line interface."""

import json
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from radar.cli import main
from radar.consolidation import consolidate_services
from radar.exceptions import PublicIPNotFoundError
from radar.models import PublicNetworkInfo
from radar.orchestrator import DiscoveryOrchestrator

from conftest import make_service


class TestCli:
    def test_public_ip(self):
        with patch.object(DiscoveryOrchestrator, "get_public_ip", AsyncMock(return_value="93.184.216.34")):
            result = CliRunner().invoke(main, ["public-ip"])

        assert result.exit_code == 0
        assert result.output.strip() == "93.184.216.34"

    def test_public_ip_not_found(self):
        failure = AsyncMock(side_effect=PublicIPNotFoundError("no source"))
        with patch.object(DiscoveryOrchestrator, "get_public_ip", failure):
            result = CliRunner().invoke(main, ["public-ip"])

        assert result.exit_code == 1

    def test_scan_json(self):
        records = consolidate_services([
            make_service("10.0.0.5", 80, "http"),
            make_service("10.0.0.5", 22, "ssh"),
        ])
        with patch.object(DiscoveryOrchestrator, "run_full_scan", AsyncMock(return_value=records)):
            result = CliRunner().invoke(main, ["scan", "--json"])

        assert result.exit_code == 0
        [device] = json.loads(result.output)
        assert device["address"] == "10.0.0.5"
        assert device["open_ports"] == {"22": "ssh", "80": "http"}

    def test_public_json(self):
        info = PublicNetworkInfo(ip="73.1.2.3", asn="7922", isp="Comcast")
        with patch.object(DiscoveryOrchestrator, "get_public_network_info", AsyncMock(return_value=info)):
            result = CliRunner().invoke(main, ["public", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output[result.output.index("{"):])["isp"] == "Comcast"
