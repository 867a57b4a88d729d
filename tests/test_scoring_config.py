import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.scoring import clear_scoring_config_cache, get_scoring_config, get_scoring_value  # noqa: E402


class ScoringConfigTests(unittest.TestCase):
    def tearDown(self):
        clear_scoring_config_cache()

    def test_loader_and_value_lookup(self):
        config = get_scoring_config()
        self.assertIsInstance(config, dict)
        self.assertEqual(get_scoring_value("notifications.hr_score_threshold"), 80)
        self.assertEqual(get_scoring_value("uploads.max_bytes"), 5 * 1024 * 1024)
        self.assertIn("python", get_scoring_value("fallback.skill_vocabulary"))

    def test_missing_path_returns_default(self):
        self.assertEqual(get_scoring_value("fallback.nope", "x"), "x")
        self.assertEqual(get_scoring_value("notifications.hr_score_threshold.deeper", 1), 1)
        self.assertIsNone(get_scoring_value(""))

    def test_path_override_from_environment(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "scoring.yaml")
            with open(path, "w", encoding="utf-8") as handle:
                handle.write("notifications:\n  hr_score_threshold: 65\n")
            with patch.dict(os.environ, {"SCORING_CONFIG_PATH": path}):
                self.assertEqual(get_scoring_value("notifications.hr_score_threshold"), 65)

    def test_non_mapping_config_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "scoring.yaml")
            with open(path, "w", encoding="utf-8") as handle:
                handle.write("- just\n- a list\n")
            with patch.dict(os.environ, {"SCORING_CONFIG_PATH": path}):
                with self.assertRaises(RuntimeError):
                    get_scoring_config()


if __name__ == "__main__":
    unittest.main()
