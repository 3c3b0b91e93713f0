"""
Tests for the Typer CLI.
"""

import json

from typer.testing import CliRunner

from onspot.cli.app import app

runner = CliRunner()


def _setup(tmp_path):
    data = {
        "crown-onspot": {"launchRegion": {"postalCode": ["560001"]}},
        "business": {
            "b1": {
                "businessRefId": "b1",
                "businessId": "corner-bakery",
                "displayName": "Corner Bakery",
                "location": {"geoPoint": {"latitude": 12.9721, "longitude": 77.5933}, "postalCode": "560001"},
            }
        },
        "user": {"u1": {"userId": "u1", "displayName": "Ravi"}},
    }
    data_file = tmp_path / "data.json"
    data_file.write_text(json.dumps(data), encoding="utf-8")
    config_file = tmp_path / "config.yaml"
    config_file.write_text("data_file: data.json\nlog_level: WARNING\n", encoding="utf-8")
    return config_file, data_file


def test_availability_lists_businesses(tmp_path):
    config_file, _ = _setup(tmp_path)

    result = runner.invoke(app, ["availability", "12.9716", "77.5946", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "Corner Bakery" in result.output


def test_request_is_persisted(tmp_path):
    config_file, data_file = _setup(tmp_path)

    result = runner.invoke(app, ["request", "b1", "u1", "--config", str(config_file)])

    assert result.exit_code == 0
    saved = json.loads(data_file.read_text(encoding="utf-8"))
    assert saved["user"]["u1"]["businessOSD"] == [{"businessRefId": "b1", "status": "PENDING"}]
    assert len(saved["notification"]) == 1


def test_duplicate_request_exits_with_error(tmp_path):
    config_file, _ = _setup(tmp_path)

    runner.invoke(app, ["request", "b1", "u1", "--config", str(config_file)])
    result = runner.invoke(app, ["request", "b1", "u1", "--config", str(config_file)])

    assert result.exit_code == 1
    assert "401" in result.output


def test_check_region(tmp_path):
    config_file, _ = _setup(tmp_path)

    inside = runner.invoke(app, ["check-region", "560001", "--config", str(config_file)])
    outside = runner.invoke(app, ["check-region", "110001", "--config", str(config_file)])

    assert inside.exit_code == 0
    assert "launch region" in inside.output
    assert "outside" in outside.output


def test_missing_config_exits(tmp_path):
    result = runner.invoke(app, ["availability", "1", "1", "--config", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1


def test_availability_reads_naive_at_in_configured_timezone(tmp_path):
    config_file, data_file = _setup(tmp_path)
    data = json.loads(data_file.read_text(encoding="utf-8"))
    data["business"]["b1"].update(
        {
            "passiveOpenEnable": False,
            "openingTime": {"hour": 9, "minute": 0, "zone": 0},
            "closingTime": {"hour": 17, "minute": 0, "zone": 0},
        }
    )
    data_file.write_text(json.dumps(data), encoding="utf-8")
    config_file.write_text(
        "data_file: data.json\nlog_level: WARNING\ntimezone: Asia/Kolkata\n", encoding="utf-8"
    )

    # 21:30 in Kolkata is 16:00 UTC, inside the 09:00-17:00 UTC window.
    local = runner.invoke(
        app, ["availability", "12.9716", "77.5946", "--at", "2024-11-25T21:30", "--config", str(config_file)]
    )
    # An explicit offset still wins over the configured zone.
    utc = runner.invoke(
        app, ["availability", "12.9716", "77.5946", "--at", "2024-11-25T21:30:00+00:00", "--config", str(config_file)]
    )

    assert local.exit_code == 0
    assert "Corner Bakery" in local.output
    assert utc.exit_code == 0
    assert "Corner Bakery" not in utc.output
