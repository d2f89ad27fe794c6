"""Tests for block-list persistence."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from model_failover.core.state import load_state, reset_state, save_state
from model_failover.shared.types import BlockEntry, LimitState


class TestStatePersistence:
    def setup_method(self):
        self._tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self._tmpdir, "state.json")

    def teardown_method(self):
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    def test_missing_file_is_empty(self):
        assert load_state(self.path).limited == {}

    def test_round_trip(self):
        state = LimitState(limited={
            "openai/gpt-5.2": BlockEntry(last_hit_at=100, next_available_at=3700, reason="429"),
            "google/gemini-2.5-pro": BlockEntry(last_hit_at=200, next_available_at=900),
        })
        save_state(self.path, state)
        loaded = load_state(self.path)
        assert loaded == state

    def test_wire_format_uses_camel_case(self):
        state = LimitState(limited={"a": BlockEntry(last_hit_at=1, next_available_at=2)})
        save_state(self.path, state)
        with open(self.path) as f:
            data = json.load(f)
        assert data == {"limited": {"a": {"lastHitAt": 1, "nextAvailableAt": 2}}}

    def test_output_is_indented(self):
        save_state(self.path, LimitState())
        text = Path(self.path).read_text()
        assert text == '{\n  "limited": {}\n}\n'

    def test_creates_parent_directories(self):
        nested = os.path.join(self._tmpdir, "a", "b", "state.json")
        save_state(nested, LimitState())
        assert os.path.exists(nested)

    def test_no_temp_files_left_behind(self):
        save_state(self.path, LimitState())
        save_state(self.path, LimitState())
        assert os.listdir(self._tmpdir) == ["state.json"]

    def test_failed_write_keeps_old_file(self):
        save_state(self.path, LimitState(limited={"a": BlockEntry(last_hit_at=1, next_available_at=2)}))
        with patch("model_failover.core.state.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                save_state(self.path, LimitState())
        assert "a" in load_state(self.path).limited
        assert os.listdir(self._tmpdir) == ["state.json"]

    def test_corrupt_json_is_empty(self):
        Path(self.path).write_text("{not json")
        assert load_state(self.path).limited == {}

    def test_wrong_shape_is_empty(self):
        Path(self.path).write_text('["limited"]')
        assert load_state(self.path).limited == {}
        Path(self.path).write_text('{"limited": 5}')
        assert load_state(self.path).limited == {}

    def test_malformed_entry_is_skipped(self):
        Path(self.path).write_text(json.dumps({"limited": {
            "good": {"lastHitAt": 1, "nextAvailableAt": 2},
            "bad": {"lastHitAt": "never"},
        }}))
        state = load_state(self.path)
        assert list(state.limited) == ["good"]

    def test_snake_case_keys_also_accepted(self):
        Path(self.path).write_text(json.dumps({"limited": {
            "a": {"last_hit_at": 1, "next_available_at": 2},
        }}))
        assert load_state(self.path).limited["a"].next_available_at == 2

    def test_reset_state(self):
        save_state(self.path, LimitState())
        assert reset_state(self.path) is True
        assert reset_state(self.path) is False
        assert not os.path.exists(self.path)

    def test_home_relative_path(self):
        with patch("pathlib.Path.home", return_value=Path(self._tmpdir)):
            save_state("~/nested/state.json", LimitState())
            assert os.path.exists(os.path.join(self._tmpdir, "nested", "state.json"))
            assert load_state("~/nested/state.json").limited == {}
