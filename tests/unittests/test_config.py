"""Tests for client configuration and argument parsing."""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from config import ClientConfig, build_parser
from retrieval import BackfillPolicy


def parse(*argv) -> ClientConfig:
    return ClientConfig.from_args(build_parser().parse_args(list(argv)))


class TestClientConfig:

    def test_defaults(self):
        config = parse()
        assert config.host == "127.0.0.1"
        assert config.port == 3000
        assert config.output == "packets.json"
        assert config.output_format == "json"
        assert config.error_log == "error_log.txt"
        assert config.connect_timeout is None
        assert config.read_timeout is None
        assert config.backfill_policy is BackfillPolicy.REUSE_CONNECTION
        assert config.check_extra_frames is True

    def test_all_options(self):
        config = parse('--host', 'exchange', '--port', '4000', '--output', 'out.csv',
                       '--error-log', 'err.txt', '--connect-timeout', '2',
                       '--read-timeout', '5.5', '--fresh-connection-per-resend',
                       '--no-extra-frame-check', '-v')
        assert config.host == "exchange"
        assert config.port == 4000
        assert config.output_format == "csv"
        assert config.error_log == "err.txt"
        assert config.connect_timeout == 2.0
        assert config.read_timeout == 5.5
        assert config.backfill_policy is BackfillPolicy.CONNECTION_PER_REQUEST
        assert config.check_extra_frames is False
        assert config.verbose is True

    def test_explicit_format_wins(self):
        assert parse('--output', 'out.txt', '--format', 'csv').output_format == "csv"

    def test_bad_port(self):
        with pytest.raises(ValueError):
            ClientConfig(port=0)
        with pytest.raises(ValueError):
            ClientConfig(port=70000)

    def test_bad_timeout(self):
        with pytest.raises(ValueError):
            ClientConfig(read_timeout=0)
        with pytest.raises(ValueError):
            ClientConfig(connect_timeout=-1)

    def test_bad_format(self):
        with pytest.raises(ValueError):
            ClientConfig(output_format="xml")

    def test_retriever_kwargs(self):
        config = ClientConfig(read_timeout=3.0, check_extra_frames=False)
        kwargs = config.retriever_kwargs()
        assert kwargs["read_timeout"] == 3.0
        assert kwargs["connect_timeout"] is None
        assert kwargs["check_extra_frames"] is False
        assert kwargs["backfill_policy"] is BackfillPolicy.REUSE_CONNECTION


class TestBuildParser:

    def test_epilog_names_entry_point(self):
        epilog = build_parser().epilog
        assert "python fetch_packets.py" in epilog
        assert "abx_client.py" not in epilog

