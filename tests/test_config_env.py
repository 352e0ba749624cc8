"""
Tests for layered .env loading.
"""

import os

from agileboard.core.config.env import (
    SHELL_SOURCE,
    credential_sources,
    load_layered_env,
    read_env_file,
)


class TestLoadLayeredEnv:
    def test_project_overrides_user(self, tmp_path, monkeypatch):
        # Registered with monkeypatch so teardown removes the loaded value
        monkeypatch.setenv("AB_TEST_VALUE", "")
        monkeypatch.delenv("AB_TEST_VALUE")
        user_env = tmp_path / "user.env"
        user_env.write_text("AB_TEST_VALUE=user\n")
        project_env = tmp_path / "project.env"
        project_env.write_text("AB_TEST_VALUE=project\n")

        exported = load_layered_env(user_env_paths=[user_env], project_env_paths=[project_env])

        assert os.environ["AB_TEST_VALUE"] == "project"
        assert exported == {"AB_TEST_VALUE": project_env}

    def test_os_environment_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AB_TEST_VALUE", "shell")
        project_env = tmp_path / "project.env"
        project_env.write_text("AB_TEST_VALUE=project\n")

        exported = load_layered_env(user_env_paths=[], project_env_paths=[project_env])

        assert os.environ["AB_TEST_VALUE"] == "shell"
        assert exported == {}

    def test_missing_files_are_ignored(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AB_TEST_VALUE", raising=False)
        exported = load_layered_env(
            user_env_paths=[tmp_path / "none.env"], project_env_paths=[tmp_path / "nope.env"]
        )
        assert "AB_TEST_VALUE" not in os.environ
        assert exported == {}

    def test_default_paths(self, tmp_path):
        # isolated_env points XDG_CONFIG_HOME at tmp_path / "xdg"
        user_env = tmp_path / "xdg" / "agileboard" / ".env"
        user_env.parent.mkdir(parents=True)
        user_env.write_text("SUPABASE_URL=https://user.supabase.co\nSUPABASE_KEY=user-key\n")
        project = tmp_path / "project"
        project.mkdir()
        (project / ".env").write_text("SUPABASE_KEY=project-key\n")
        (project / ".env.local").write_text("SUPABASE_KEY=local-key\n")

        exported = load_layered_env(project_dir=project)

        assert os.environ["SUPABASE_URL"] == "https://user.supabase.co"
        assert os.environ["SUPABASE_KEY"] == "local-key"
        assert exported == {"SUPABASE_URL": user_env, "SUPABASE_KEY": project / ".env.local"}


class TestReadEnvFile:
    def test_skips_keys_without_value(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text("SUPABASE_URL=https://abc.supabase.co\nBARE\n")
        assert read_env_file(path) == {"SUPABASE_URL": "https://abc.supabase.co"}

    def test_directory_is_not_a_file(self, tmp_path):
        assert read_env_file(tmp_path) == {}


class TestCredentialSources:
    def test_reports_file_shell_and_unset(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SUPABASE_KEY", "shell-key")
        env_file = tmp_path / ".env"

        sources = credential_sources({"SUPABASE_URL": env_file})

        assert sources == {"SUPABASE_URL": str(env_file), "SUPABASE_KEY": SHELL_SOURCE}

    def test_unset(self):
        assert credential_sources({}) == {"SUPABASE_URL": None, "SUPABASE_KEY": None}
