"""Tests for configuration loading, environment overrides and saving."""

import json
import os
import stat
import pytest
from unittest.mock import patch


class TestDefaults:
    def test_engine_config_defaults(self):
        from lifeqa.common.config import EngineConfig
        cfg = EngineConfig()
        assert cfg.llm.provider == "openai"
        assert cfg.llm.model == "gpt-4o"
        assert cfg.embedding.model == "text-embedding-3-small"
        assert cfg.retrieval.top_k == 10
        assert cfg.retrieval.top_k_count_query == 50
        assert cfg.retrieval.top_k_circle == 20
        assert cfg.retrieval.top_k_activity == 20
        assert cfg.context.max_length == 8000

    def test_llm_model_follows_provider(self):
        from lifeqa.common.config import LLMConfig
        cfg = LLMConfig(provider="anthropic", anthropic_api_key="sk-ant")
        assert cfg.model == "claude-sonnet-4-20250514"
        assert cfg.api_key == "sk-ant"

        cfg = LLMConfig(provider="nope")
        assert cfg.model == ""
        assert cfg.api_key == ""

    def test_missing_file_gives_defaults(self, tmp_path):
        from lifeqa.common.config import load_config
        with patch("lifeqa.common.config.CONFIG_PATH", tmp_path / "missing.json"), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.retrieval.top_k == 10
        assert cfg.llm.openai_api_key == ""


class TestLoadConfig:
    def test_load_from_file(self, tmp_path):
        from lifeqa.common.config import load_config
        config_data = {
            "llm": {"provider": "google", "google_api_key": "g-file", "google_model": "gemini-1.5-pro"},
            "retrieval": {"top_k": 7, "top_k_count_query": 70},
            "context": {"max_length": 4000},
        }
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps(config_data))

        with patch("lifeqa.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.llm.provider == "google"
        assert cfg.llm.model == "gemini-1.5-pro"
        assert cfg.retrieval.top_k == 7
        assert cfg.retrieval.top_k_count_query == 70
        assert cfg.retrieval.top_k_circle == 20
        assert cfg.context.max_length == 4000

    def test_malformed_file_logs_warning(self, tmp_path, caplog):
        import logging
        from lifeqa.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with patch("lifeqa.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True), \
             caplog.at_level(logging.WARNING, logger="lifeqa.common.config"):
            cfg = load_config()

        assert cfg.retrieval.top_k == 10
        assert "Failed to load config file" in caplog.text

    def test_env_var_overrides(self, tmp_path):
        from lifeqa.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"retrieval": {"top_k": 7}}))

        env = {
            "OPENAI_API_KEY": "sk-env",
            "LIFEQA_LLM_PROVIDER": "openai",
            "LIFEQA_LLM_MODEL": "gpt-4o-mini",
            "LIFEQA_TOP_K": "12",
            "LIFEQA_TOP_K_COUNT": "60",
            "LIFEQA_CONTEXT_MAX_LENGTH": "6000",
            "LIFEQA_EMBEDDING_MODEL": "text-embedding-3-large",
        }
        with patch("lifeqa.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.llm.openai_api_key == "sk-env"
        assert cfg.llm.model == "gpt-4o-mini"
        assert cfg.retrieval.top_k == 12
        assert cfg.retrieval.top_k_count_query == 60
        assert cfg.context.max_length == 6000
        assert cfg.embedding.model == "text-embedding-3-large"

    def test_embedding_inherits_openai_key(self, tmp_path):
        from lifeqa.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        with patch("lifeqa.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {"OPENAI_API_KEY": "sk-env"}, clear=True):
            cfg = load_config()

        assert cfg.embedding.api_key == "sk-env"
        assert "embedding_api_key" in cfg._env_sourced_keys

    def test_gemini_api_key_env_var(self, tmp_path):
        """GEMINI_API_KEY should also set google_api_key."""
        from lifeqa.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        with patch("lifeqa.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {"GEMINI_API_KEY": "gem-key"}, clear=True):
            cfg = load_config()

        assert cfg.llm.google_api_key == "gem-key"


class TestSaveConfig:
    def test_save_config_omits_env_keys(self, tmp_path):
        from lifeqa.common.config import load_config, save_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        env = {"ANTHROPIC_API_KEY": "sk-from-env", "OPENAI_API_KEY": "sk-openai-env"}
        with patch("lifeqa.common.config.CONFIG_PATH", config_file), \
             patch("lifeqa.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["anthropic_api_key"] == ""
        assert saved["llm"]["openai_api_key"] == ""
        assert saved["embedding"]["api_key"] == ""

    def test_save_config_keeps_file_keys(self, tmp_path):
        from lifeqa.common.config import load_config, save_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"llm": {"openai_api_key": "sk-file"}}))

        with patch("lifeqa.common.config.CONFIG_PATH", config_file), \
             patch("lifeqa.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["openai_api_key"] == "sk-file"
        assert saved["retrieval"]["top_k_count_query"] == 50

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_saved_file_is_private(self, tmp_path):
        from lifeqa.common.config import EngineConfig, save_config
        config_file = tmp_path / "config.json"

        with patch("lifeqa.common.config.CONFIG_PATH", config_file), \
             patch("lifeqa.common.config.CONFIG_DIR", tmp_path):
            save_config(EngineConfig())

        assert stat.S_IMODE(config_file.stat().st_mode) == 0o600
