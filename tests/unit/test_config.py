"""
Unit tests for ServerConfig.
"""

import logging

import pytest

from tcpserver.config import ServerConfig, ProtocolMode


class TestDefaults:

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.backlog == 5
        assert config.buffer_size == 1024
        assert config.mode == ProtocolMode.ECHO
        assert config.read_timeout is None
        assert config.poll_interval == 0.1

    def test_defaults_validate(self):
        ServerConfig().validate()

    def test_level(self):
        assert ServerConfig(log_level="debug").level == logging.DEBUG
        assert ServerConfig().level == logging.INFO


class TestValidate:

    @pytest.mark.parametrize("kwargs", [
        {"port": -1},
        {"port": 65536},
        {"backlog": 0},
        {"buffer_size": 0},
        {"accept_timeout": 0},
        {"read_timeout": 0},
        {"read_timeout": -1.0},
        {"poll_interval": 0},
        {"log_level": "VERBOSE"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ServerConfig(**kwargs).validate()

    def test_port_zero_is_allowed(self):
        ServerConfig(port=0).validate()

    def test_mode_string_is_coerced(self):
        config = ServerConfig(mode="http")
        config.validate()

        assert config.mode is ProtocolMode.HTTP

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            ServerConfig(mode="gopher").validate()


class TestFromEnv:

    def test_defaults_without_env(self, monkeypatch):
        for name in ("TCP_HOST", "TCP_PORT", "TCP_MODE", "TCP_READ_TIMEOUT", "TCP_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.mode == ProtocolMode.ECHO
        assert config.read_timeout is None

    def test_reads_env(self, monkeypatch):
        monkeypatch.setenv("TCP_HOST", "127.0.0.1")
        monkeypatch.setenv("TCP_PORT", "9001")
        monkeypatch.setenv("TCP_MODE", "HTTP")
        monkeypatch.setenv("TCP_READ_TIMEOUT", "2.5")
        monkeypatch.setenv("TCP_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.host == "127.0.0.1"
        assert config.port == 9001
        assert config.mode == ProtocolMode.HTTP
        assert config.read_timeout == 2.5
        assert config.log_level == "DEBUG"
