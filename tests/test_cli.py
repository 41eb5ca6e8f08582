"""Tests for configuration loading, app wiring and the command line."""

import json
import shutil

import pytest
import yaml
from click.testing import CliRunner
from pydantic import ValidationError

from rollcall.app import build_synchronizer
from rollcall.cli import cli
from rollcall.config import read_config
from rollcall.transports.broadcast import BroadcastChannel
from rollcall.transports.polling import PollingTransport


@pytest.fixture
def event_dir(tmp_path, participants_csv, staff_csv):
    shutil.copy(participants_csv, tmp_path / "participants.csv")
    shutil.copy(staff_csv, tmp_path / "staff.csv")
    return tmp_path


def write_config(event_dir, **overrides):
    data = {
        "name": "camp",
        "participants_csv": "participants.csv",
        "staff_csv": "staff.csv",
        "cache_path": "state/cache.json",
        "channel_dir": "channels",
        "export_dir": "reports",
        "log_level": "WARNING",
    }
    data.update(overrides)
    path = event_dir / "event.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestConfig:

    def test_sample_config_loads(self, sample_config_path):
        config = read_config(sample_config_path)
        assert config.name == "sample-event"
        assert config.participants_csv.is_absolute()
        assert config.missing_paths() == []
        assert config.poll_interval == 5.0
        assert config.heartbeat_timeout == 15.0

    def test_relative_paths_resolve_against_config_dir(self, event_dir):
        config = read_config(write_config(event_dir))
        assert config.cache_path == (event_dir / "state" / "cache.json").resolve()
        assert config.channel_dir == (event_dir / "channels").resolve()

    def test_absolute_paths_and_urls_are_left_alone(self, event_dir, tmp_path_factory):
        elsewhere = tmp_path_factory.mktemp("elsewhere") / "cache.json"
        config = read_config(
            write_config(
                event_dir,
                cache_path=str(elsewhere),
                remote_url="https://example-rtdb.firebaseio.com",
                remote_path="events/checkin",
            )
        )
        assert config.cache_path == elsewhere
        assert config.remote_url == "https://example-rtdb.firebaseio.com"
        assert config.remote_path == "events/checkin"
        assert config.export_dir == (event_dir / "reports").resolve()

    def test_missing_required_setting(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: x\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            read_config(path)

    def test_missing_csv_is_reported_not_raised(self, event_dir):
        config = read_config(write_config(event_dir, staff_csv="gone.csv"))
        assert config.missing_paths() == ["staff_csv"]


class TestBuildSynchronizer:

    def test_local_cache_has_no_primary_transport(self, event_dir):
        sync = build_synchronizer(read_config(write_config(event_dir)))
        assert sync.transport is None
        assert sync.cache.path.name == "cache.json"

    def test_transport_override(self, event_dir):
        config = read_config(write_config(event_dir))
        sync = build_synchronizer(config, "broadcast")
        assert isinstance(sync.transport, BroadcastChannel)

    def test_polling_needs_remote_url(self, event_dir):
        config = read_config(write_config(event_dir, transport="polling"))
        with pytest.raises(ValueError):
            build_synchronizer(config)

        config = read_config(
            write_config(event_dir, transport="polling", remote_url="https://db.example", poll_interval=2)
        )
        sync = build_synchronizer(config)
        assert isinstance(sync.transport, PollingTransport)
        assert sync.transport.poll_interval == 2


class TestCli:

    def test_bootstrap_and_export(self, event_dir):
        config_path = write_config(event_dir)
        result = CliRunner().invoke(
            cli, ["--config", str(config_path), "--no-interactive", "--export"]
        )

        assert result.exit_code == 0, result.output
        assert "Event loaded: camp" in result.output
        assert "Real-Time Check-In Status" in result.output

        report = json.loads((event_dir / "reports" / "camp_report.json").read_text())
        assert report["summary"]["totalParticipants"] == 3
        assert report["summary"]["shirtsNeeded"] == 4

        cache = json.loads((event_dir / "state" / "cache.json").read_text())
        assert "roseCity_participants" in cache

    def test_second_run_loads_from_cache(self, event_dir):
        config_path = write_config(event_dir)
        runner = CliRunner()
        runner.invoke(cli, ["--config", str(config_path), "--no-interactive"])

        (event_dir / "participants.csv").unlink()
        result = runner.invoke(cli, ["--config", str(config_path), "--no-interactive"])
        assert result.exit_code == 0, result.output
        assert "No roster loaded." not in result.output

    def test_missing_csv_renders_empty_dashboard(self, event_dir):
        config_path = write_config(event_dir, participants_csv="gone.csv")
        result = CliRunner().invoke(cli, ["--config", str(config_path), "--no-interactive"])
        assert result.exit_code == 0, result.output
        assert "No roster loaded." in result.output

    def test_remote_transport_without_url_is_rejected(self, event_dir):
        config_path = write_config(event_dir)
        result = CliRunner().invoke(
            cli, ["--config", str(config_path), "--transport", "remote", "--no-interactive"]
        )
        assert result.exit_code == 2
        assert "remote_url" in result.output

    def test_invalid_config_is_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: x\n", encoding="utf-8")
        result = CliRunner().invoke(cli, ["--config", str(path), "--no-interactive"])
        assert result.exit_code == 2
        assert "Invalid config" in result.output
