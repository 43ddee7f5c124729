"""Tests for API key storage."""

import os
import json
import stat
import tempfile
import pytest
from pathlib import Path
from unittest.mock import patch

from rugved.state.credentials import FileCredentialStore, MemoryCredentialStore


class TestMemoryCredentialStore:
    def test_get_set_clear(self):
        store = MemoryCredentialStore()
        assert store.get() is None

        store.set("  abc123 ")
        assert store.get() == "abc123"

        store.clear()
        assert store.get() is None

    def test_rejects_empty_key(self):
        store = MemoryCredentialStore("existing")
        with pytest.raises(ValueError):
            store.set("   ")
        assert store.get() == "existing"


class TestFileCredentialStore:
    """Test the on-disk key file."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp_dir.name) / "rugved" / "credentials.json"
        self.store = FileCredentialStore(path=self.path, env_var="RUGVED_TEST_KEY")

    def teardown_method(self):
        """Clean up after tests."""
        self.tmp_dir.cleanup()

    def test_set_writes_private_file(self):
        with patch.dict(os.environ, {}, clear=True):
            self.store.set("secret")

            assert self.store.get() == "secret"
        with open(self.path) as f:
            assert json.load(f) == {"rugved_api_key": "secret"}
        assert stat.S_IMODE(os.stat(self.path).st_mode) == 0o600

    def test_set_replaces_previous_key(self):
        self.store.set("first")
        self.store.set("second")
        assert self.store.get() == "second"

    def test_missing_file_without_env(self):
        with patch.dict(os.environ, {}, clear=True):
            assert self.store.get() is None

    def test_env_fallback(self):
        with patch.dict(os.environ, {"RUGVED_TEST_KEY": "from-env"}):
            assert self.store.get() == "from-env"

    def test_file_wins_over_env(self):
        self.store.set("from-file")
        with patch.dict(os.environ, {"RUGVED_TEST_KEY": "from-env"}):
            assert self.store.get() == "from-file"

    def test_corrupt_file_falls_back(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json")

        with patch.dict(os.environ, {"RUGVED_TEST_KEY": "from-env"}):
            assert self.store.get() == "from-env"

    def test_clear_removes_file(self):
        self.store.set("secret")
        self.store.clear()

        assert not self.path.exists()
        with patch.dict(os.environ, {}, clear=True):
            assert self.store.get() is None

    def test_clear_without_file(self):
        self.store.clear()
        assert not self.path.exists()

    def test_rejects_empty_key(self):
        with pytest.raises(ValueError, match="empty"):
            self.store.set("")
        assert not self.path.exists()

    @pytest.mark.parametrize("content", ["[]", '"secret"', '{"rugved_api_key": 7}'])
    def test_wrong_shape_file_falls_back(self, content):
        self.path.parent.mkdir(parents=True)
        self.path.write_text(content)

        with patch.dict(os.environ, {"RUGVED_TEST_KEY": "from-env"}):
            assert self.store.get() == "from-env"
        with patch.dict(os.environ, {}, clear=True):
            assert self.store.get() is None
