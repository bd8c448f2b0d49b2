"""
Tests for the command-line interface.
"""

from typer.testing import CliRunner

from bookingengine import __version__
from bookingengine.cli.app import app

runner = CliRunner()

CONFIG = """\
timezone: "America/Argentina/Buenos_Aires"
schedule:
  monday: {enabled: true, startTime: "09:00", endTime: "12:00"}
  sunday: {enabled: false}
"""

DATA = """\
bookings:
  - service_name: Facial
    start: "2024-11-25 10:00"
    duration_minutes: 60
    status: CONFIRMED
    customer: {name: Ana, email: ana@example.com, contact: "555"}
blocks:
  - reason: Holiday
    start: "2024-11-26 00:00"
    end: "2024-11-27 00:00"
"""


def _write_files(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(CONFIG, encoding="utf-8")
    data_file = tmp_path / "data.yaml"
    data_file.write_text(DATA, encoding="utf-8")
    return config_file, data_file


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_slots(tmp_path):
    config_file, data_file = _write_files(tmp_path)

    result = runner.invoke(
        app,
        ["slots", "2024-11-25", "--duration", "60", "--config", str(config_file), "--data", str(data_file)],
    )

    assert result.exit_code == 0
    assert "09:00 - 10:00" in result.output
    assert "11:00 - 12:00" in result.output
    assert "10:00 - 11:00" not in result.output
    assert "2 available slot(s)" in result.output


def test_slots_on_closed_day(tmp_path):
    config_file, _ = _write_files(tmp_path)

    result = runner.invoke(app, ["slots", "2024-12-01", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "No available slots found" in result.output


def test_slots_with_invalid_date(tmp_path):
    config_file, _ = _write_files(tmp_path)

    result = runner.invoke(app, ["slots", "25.11.2024", "--config", str(config_file)])

    assert result.exit_code == 1


def test_missing_config_file(tmp_path):
    result = runner.invoke(app, ["slots", "2024-11-25", "--config", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_hours(tmp_path):
    config_file, _ = _write_files(tmp_path)

    result = runner.invoke(app, ["hours", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "Monday" in result.output
    assert "09:00 - 12:00" in result.output
    assert "closed" in result.output


def test_calendar(tmp_path):
    config_file, data_file = _write_files(tmp_path)

    result = runner.invoke(
        app,
        ["calendar", "2024-11-25", "2024-11-26", "--config", str(config_file), "--data", str(data_file)],
    )

    assert result.exit_code == 0
    assert "BOOKING" in result.output
    assert "BLOCK" in result.output
    assert "Holiday" in result.output


def test_fixture_with_list_root(tmp_path):
    config_file, data_file = _write_files(tmp_path)
    data_file.write_text("- not\n- a mapping\n", encoding="utf-8")

    result = runner.invoke(
        app, ["slots", "2024-11-25", "--config", str(config_file), "--data", str(data_file)]
    )

    assert result.exit_code == 1
    assert "mapping" in result.output
