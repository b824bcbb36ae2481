"""Tests for Config, FailureManager, Logger helpers and the entry point."""

import json
import logging

import pytest

import main
from utils.config import Config
from utils.failures import (
    ConfigError, DecodeError, FailureManager, FramingError, TransportError, UnknownRecordTypeError,
)
from utils.logger import Logger


def write_config(directory, name, data):
    (directory / name).write_text(json.dumps(data))


@pytest.fixture
def quiet_config_dir(tmp_path):
    write_config(tmp_path, "logging.json", {"logging": {"level": "DEBUG", "to_file": False}})
    return tmp_path


class TestConfig:

    def test_merges_files_in_order(self, tmp_path):
        write_config(tmp_path, "a.json", {"transport": {"type": "serial", "serial": {"baud_rate": 9600}}})
        write_config(tmp_path, "b.json", {"transport": {"serial": {"device": "/dev/ttyS1"}}})

        config = Config(str(tmp_path))

        assert config.get('transport.type') == "serial"
        assert config.get_int('transport.serial.baud_rate') == 9600
        assert config.get('transport.serial.device') == "/dev/ttyS1"

    def test_env_overrides(self, tmp_path, monkeypatch):
        write_config(tmp_path, "server.json", {"server": {"port": 8080}})
        monkeypatch.setenv("HERMES_HTTP_PORT", "9999")
        monkeypatch.setenv("HERMES_TRANSPORT", "udp")

        config = Config(str(tmp_path))

        assert config.get_int('server.port') == 9999
        assert config.get('transport.type') == "udp"

    def test_typed_getters_fall_back(self, tmp_path):
        write_config(tmp_path, "x.json", {"pipeline": {"frame_length": "oops", "enabled": "yes"}})
        config = Config(str(tmp_path))

        assert config.get_int('pipeline.frame_length', 72) == 72
        assert config.get_bool('pipeline.enabled') is True
        assert config.get_float('pipeline.missing', 0.5) == 0.5
        assert config.get('nope.nothing', "default") == "default"

    def test_invalid_file_is_skipped(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json")
        write_config(tmp_path, "ok.json", {"server": {"path": "/data"}})

        assert Config(str(tmp_path)).get('server.path') == "/data"

    def test_set_creates_sections(self, tmp_path):
        config = Config(str(tmp_path))
        config.set('transport.udp.port', 7000)
        assert config.get_int('transport.udp.port') == 7000

    def test_shipped_configs(self):
        config = Config()
        assert config.get_int('pipeline.queue_capacity') == 20
        assert config.get('server.path') == "/data"
        assert config.get_int('transport.serial.baud_rate') == 115200


class TestFailureManager:

    def test_counts_by_type(self):
        failures = FailureManager({'threshold': 3, 'window_seconds': 60})
        failures.record_failure(FramingError("bad tail"))
        failures.record_failure(FramingError("bad tail"))
        failures.record_failure(UnknownRecordTypeError(5))

        assert failures.count("FramingError") == 2
        assert failures.count("UnknownRecordTypeError") == 1
        assert failures.count("DecodeError") == 0

    def test_alert_fires_once_at_threshold(self, caplog):
        failures = FailureManager({'threshold': 3, 'window_seconds': 60})

        with caplog.at_level(logging.WARNING, logger="FailureManager"):
            for _ in range(5):
                failures.record_failure(FramingError("bad tail"))

        alerts = [r for r in caplog.records if "Resilience Alert" in r.getMessage()]
        assert len(alerts) == 1
        assert "FramingError" in alerts[0].getMessage()

    def test_history_is_capped(self):
        failures = FailureManager({'max_history': 5})
        for i in range(12):
            failures.record_failure(DecodeError(f"frame {i}"))

        history = failures.get_recent_history(100)
        assert len(history) == 5
        assert history[-1].message == "frame 11"

    def test_unknown_record_type_is_a_decode_error(self):
        error = UnknownRecordTypeError(42)
        assert isinstance(error, DecodeError)
        assert error.tag == 42

    def test_foreign_exceptions_are_counted_but_not_kept(self):
        failures = FailureManager()
        failures.record_failure(ValueError("not ours"))

        assert failures.count("ValueError") == 1
        assert failures.get_recent_history() == []


class TestLogger:

    @pytest.mark.parametrize("value, expected", [
        ("5MB", 5 * 1024 * 1024),
        ("512KB", 512 * 1024),
        ("1000", 1000),
        ("lots", 5 * 1024 * 1024),
    ])
    def test_parse_size(self, value, expected):
        assert Logger._parse_size(value) == expected


class TestEntryPoint:

    def test_args_override_config(self, tmp_path):
        args = main.parse_args([
            "--transport", "udp", "--udp-port", "9100",
            "--http-port", "8181", "--frame-length", "68", "--queue-capacity", "5",
        ])
        config = Config(str(tmp_path))
        main.apply_args(config, args)

        assert config.get('transport.type') == "udp"
        assert config.get_int('transport.udp.port') == 9100
        assert config.get_int('server.port') == 8181
        assert config.get_int('pipeline.frame_length') == 68
        assert config.get_int('pipeline.queue_capacity') == 5

    def test_reader_wires_udp_pipeline(self, quiet_config_dir):
        from Handlers.UDP_Handler import UDPHandler

        config = Config(str(quiet_config_dir))
        main.apply_args(config, main.parse_args(["--transport", "udp", "--frame-length", "68"]))
        reader = main.HermesReader(config)

        assert isinstance(reader.source, UDPHandler)
        assert reader.ingest_stage.synchronizer.frame_length == 68
        assert reader.frame_queue.capacity == 20

    def test_unknown_transport_is_fatal(self, quiet_config_dir):
        config = Config(str(quiet_config_dir))
        config.set('transport.type', "carrier-pigeon")

        with pytest.raises(ConfigError) as exc:
            main.HermesReader(config)
        assert exc.value.critical

    def test_unopenable_transport_exits_nonzero(self, quiet_config_dir, monkeypatch):
        from Handlers.Serial_Handler import SerialHandler

        monkeypatch.setattr(SerialHandler, "start", lambda self: False)
        code = main.main([
            "--config-dir", str(quiet_config_dir),
            "--transport", "serial", "--device", "/dev/does-not-exist",
        ])
        assert code == 1

    def test_transport_error_is_critical(self, quiet_config_dir, monkeypatch):
        from Handlers.Serial_Handler import SerialHandler

        monkeypatch.setattr(SerialHandler, "start", lambda self: False)
        config = Config(str(quiet_config_dir))
        reader = main.HermesReader(config)

        with pytest.raises(TransportError) as exc:
            reader.start()
        assert exc.value.critical

    def test_stop_reports_recent_failures(self, quiet_config_dir, caplog):
        config = Config(str(quiet_config_dir))
        config.set('transport.type', "udp")
        reader = main.HermesReader(config)
        reader.failures.record_failure(FramingError("Frame not terminated by sentinel"))

        with caplog.at_level(logging.INFO, logger="HermesReader"):
            reader.stop()

        messages = [r.getMessage() for r in caplog.records if r.name == "HermesReader"]
        assert any("FramingError: Frame not terminated by sentinel" in m for m in messages)
        assert reader.stop_event.is_set()
