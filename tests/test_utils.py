from __future__ import annotations

import os
from unittest.mock import patch

from bunqsys.core.utils.env import load_env_file_if_present


class TestLoadEnvFileIfPresent:
    def test_load_existing_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_content = """
# bunq credentials
BUNQ_ACCESS_TOKEN=access_123
BUNQ_API_URL=http://127.0.0.1:8080/v1
EMPTY_LINE=

QUOTED_VALUE="quoted_string"
SINGLE_QUOTED='single_quoted'
"""
        env_file.write_text(env_content)

        with patch.dict(os.environ, clear=True):
            result = load_env_file_if_present(env_file)

            assert result == {
                "BUNQ_ACCESS_TOKEN": "access_123",
                "BUNQ_API_URL": "http://127.0.0.1:8080/v1",
                "EMPTY_LINE": "",
                "QUOTED_VALUE": "quoted_string",
                "SINGLE_QUOTED": "single_quoted",
            }
            assert os.environ["BUNQ_ACCESS_TOKEN"] == "access_123"
            assert os.environ["QUOTED_VALUE"] == "quoted_string"

    def test_nonexistent_file_returns_empty_dict(self, tmp_path):
        assert load_env_file_if_present(tmp_path / "nonexistent.env") == {}

    def test_export_prefix(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("export BUNQ_CLIENT_ID=cid\n")

        with patch.dict(os.environ, clear=True):
            assert load_env_file_if_present(env_file) == {"BUNQ_CLIENT_ID": "cid"}
            assert os.environ["BUNQ_CLIENT_ID"] == "cid"

    def test_existing_variables_are_kept(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("BUNQ_ENVIRONMENT=production\n")

        with patch.dict(os.environ, {"BUNQ_ENVIRONMENT": "sandbox"}, clear=True):
            result = load_env_file_if_present(env_file)

            assert result == {"BUNQ_ENVIRONMENT": "production"}
            assert os.environ["BUNQ_ENVIRONMENT"] == "sandbox"

    def test_override(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("BUNQ_ENVIRONMENT=production\n")

        with patch.dict(os.environ, {"BUNQ_ENVIRONMENT": "sandbox"}, clear=True):
            load_env_file_if_present(env_file, override=True)
            assert os.environ["BUNQ_ENVIRONMENT"] == "production"

    def test_malformed_lines_are_ignored(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("no equals sign here\n# COMMENTED=1\nVALID=yes\n")

        with patch.dict(os.environ, clear=True):
            assert load_env_file_if_present(env_file) == {"VALID": "yes"}

    def test_accepts_string_path(self, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("KEY=value")

        with patch.dict(os.environ, clear=True):
            assert load_env_file_if_present(str(env_file)) == {"KEY": "value"}
