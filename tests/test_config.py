"""Tests for milton.config."""
import os
import unittest
from pathlib import Path
from unittest.mock import patch

from milton import config as config_module
from milton.config import DEFAULT_MODELS, Config, load_config
from milton.errors import ConfigError
from milton.prompts import SYSTEM_PROMPT, compose_prompt


class TestConfig(unittest.TestCase):
    def test_defaults(self):
        config = Config({})
        self.assertEqual(config.data_dir, Path.home() / ".milton")
        self.assertEqual(config.model_timeout_seconds, 60.0)
        self.assertEqual(config.max_workers, 8)
        self.assertEqual(config.log_level, "INFO")
        self.assertEqual(config.system_prompt, SYSTEM_PROMPT)
        self.assertEqual(len(config.model_descriptors), len(DEFAULT_MODELS))

    def test_model_descriptors(self):
        config = Config({"models": [
            {"name": "A", "model_id": "vendor/a"},
            {"model_id": "vendor/b"},
        ]})
        names = [m.name for m in config.model_descriptors]
        self.assertEqual(names, ["A", "vendor/b"])

    def test_duplicate_names_rejected(self):
        config = Config({"models": [
            {"name": "A", "model_id": "vendor/a"},
            {"name": "A", "model_id": "vendor/b"},
        ]})
        with self.assertRaises(ConfigError):
            config.model_descriptors

    def test_missing_model_id_rejected(self):
        with self.assertRaises(ConfigError):
            Config({"models": [{"name": "A"}]}).model_descriptors

    def test_api_key_from_named_env(self):
        config = Config({"openrouter": {"api_key_env": "MILTON_TEST_KEY"}})
        with patch.dict(os.environ, {"MILTON_TEST_KEY": "secret"}):
            self.assertEqual(config.openrouter_api_key, "secret")

    def test_env_overrides(self):
        env = {
            "MILTON_DATA_DIR": "/tmp/milton-test",
            "MILTON_MODEL_TIMEOUT": "12.5",
            "MILTON_MAX_WORKERS": "not-a-number",
            "MILTON_LOG_LEVEL": "debug",
        }
        with patch.object(config_module, "USER_CONFIG_PATH", Path("/nonexistent/milton.yaml")), \
                patch.dict(os.environ, env):
            config = Config(load_config())
        self.assertEqual(config.data_dir, Path("/tmp/milton-test"))
        self.assertEqual(config.model_timeout_seconds, 12.5)
        self.assertEqual(config.max_workers, 8)
        self.assertEqual(config.log_level, "DEBUG")


class TestComposePrompt(unittest.TestCase):
    def test_with_context(self):
        prompt = compose_prompt(" Will it rain? ", "Forecast says 80%")
        self.assertIn("Question: Will it rain?", prompt)
        self.assertIn("Additional Context: Forecast says 80%", prompt)

    def test_without_context(self):
        prompt = compose_prompt("Will it rain?", None)
        self.assertNotIn("Additional Context", prompt)


if __name__ == "__main__":
    unittest.main()
