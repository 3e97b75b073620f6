"""
Unit tests for the delay file (DelayStore).
"""

import os

import pytest
from unittest.mock import patch

from core.delay_config import DelayStore, format_delay, normalize_delay


# ==================== FORMAT TESTS ====================

@pytest.mark.unit
@pytest.mark.parametrize("value,text", [
    (0.2, "0.200"),
    (-0.15, "-0.150"),
    (0.0, "0.000"),
    (-0.0, "0.000"),
    (-0.0004, "0.000"),
    (1.2346, "1.235"),
])
def test_format_delay(value, text):
    assert format_delay(value) == text


@pytest.mark.unit
def test_normalize_delay_folds_negative_zero():
    """-0.0 never survives normalization."""
    assert str(normalize_delay(-0.0)) == "0.0"
    assert str(normalize_delay(-0.0001)) == "0.0"


# ==================== LOAD TESTS ====================

@pytest.mark.unit
def test_load_missing_file_writes_default(tmp_path):
    """First use creates the file with 0.200."""
    path = tmp_path / "state" / "delay"
    store = DelayStore(path)

    assert store.load() == 0.2
    assert path.read_text() == "0.200\n"


@pytest.mark.unit
def test_load_existing_value(tmp_path):
    path = tmp_path / "delay"
    path.write_text("-0.350\n")

    assert DelayStore(path).load() == -0.35


@pytest.mark.unit
def test_load_accepts_value_without_newline(tmp_path):
    path = tmp_path / "delay"
    path.write_text("0.5")

    assert DelayStore(path).load() == 0.5


@pytest.mark.unit
def test_load_corrupt_file_resets_to_default(tmp_path):
    """Non-numeric content is replaced by the default."""
    path = tmp_path / "delay"
    path.write_text("not a number\n")

    assert DelayStore(path, default=0.1).load() == 0.1
    assert path.read_text() == "0.100\n"


@pytest.mark.unit
@pytest.mark.parametrize("text", ["inf", "-inf", "nan", "1e999"])
def test_load_non_finite_value_resets_to_default(tmp_path, text):
    """A value that is not a finite number counts as corrupt."""
    path = tmp_path / "delay"
    path.write_text(text + "\n")

    assert DelayStore(path).load() == 0.2
    assert path.read_text() == "0.200\n"


@pytest.mark.unit
def test_load_undecodable_file_resets_to_default(tmp_path, caplog):
    path = tmp_path / "delay"
    path.write_bytes(b"\xff\xfe\x00garbage")

    assert DelayStore(path).load() == 0.2
    assert path.read_text() == "0.200\n"
    assert "unreadable" in caplog.text


@pytest.mark.unit
def test_load_permission_error_resets_to_default(tmp_path):
    path = tmp_path / "delay"
    path.write_text("0.400\n")

    with patch("core.delay_config.Path.read_text", side_effect=PermissionError("denied")):
        assert DelayStore(path).load() == 0.2

    assert path.read_text() == "0.200\n"


@pytest.mark.unit
def test_load_directory_in_place_of_file(tmp_path):
    """Neither readable nor replaceable: the default is used without raising."""
    path = tmp_path / "delay"
    path.mkdir()

    assert DelayStore(path).load() == 0.2
    assert path.is_dir()
    assert sorted(os.listdir(tmp_path)) == ["delay"]


# ==================== SAVE TESTS ====================

@pytest.mark.unit
def test_save_writes_three_decimals(tmp_path):
    path = tmp_path / "delay"
    DelayStore(path).save(0.30000000000000004)

    assert path.read_text() == "0.300\n"


@pytest.mark.unit
def test_save_leaves_no_temp_files(tmp_path):
    store = DelayStore(tmp_path / "delay")
    store.save(0.1)
    store.save(0.2)

    assert sorted(os.listdir(tmp_path)) == ["delay"]


@pytest.mark.unit
def test_save_failure_keeps_previous_value(tmp_path):
    """A failed replace leaves the old file intact and removes the temp file."""
    path = tmp_path / "delay"
    store = DelayStore(path)
    store.save(0.2)

    with patch("core.delay_config.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            store.save(0.9)

    assert path.read_text() == "0.200\n"
    assert sorted(os.listdir(tmp_path)) == ["delay"]


@pytest.mark.unit
def test_save_then_load(tmp_path):
    store = DelayStore(tmp_path / "delay")
    store.save(-0.125)

    assert DelayStore(tmp_path / "delay").load() == -0.125
