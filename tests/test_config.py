import unittest
from pathlib import Path

from rightsguard.config import default_app_data_dir, load_config


class ConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = load_config({"RIGHTSGUARD_HOME": "/srv/rg"})
        self.assertEqual(config.app_data_dir, Path("/srv/rg"))
        self.assertEqual(config.debug_endpoint, "http://127.0.0.1:9222")
        self.assertEqual(config.attach_attempts, 15)
        self.assertEqual(config.attach_interval_seconds, 0.2)
        self.assertEqual(config.launch_backoff_seconds, (2.0, 3.0, 5.0))
        self.assertFalse(config.auto_submit)
        self.assertEqual(config.pinned_strategy, "")
        self.assertEqual(config.files_dir, Path("/srv/rg/files"))
        self.assertEqual(config.browser_profile_dir, Path("/srv/rg/chrome-profile"))
        self.assertEqual(config.status_path, Path("/srv/rg/status.json"))

    def test_environment_overrides(self) -> None:
        config = load_config(
            {
                "RIGHTSGUARD_HOME": "/srv/rg",
                "RIGHTSGUARD_DEBUG_PORT": "9333",
                "RIGHTSGUARD_CONNECTION_STRATEGY": "Ephemeral",
                "RIGHTSGUARD_LAUNCH_BACKOFF_SECONDS": "1; 4",
                "RIGHTSGUARD_AUTO_SUBMIT": "yes",
                "RIGHTSGUARD_BROWSER_ARGS": "--lang=zh-CN --mute-audio",
            }
        )
        self.assertEqual(config.debug_port, 9333)
        self.assertEqual(config.pinned_strategy, "ephemeral")
        self.assertEqual(config.launch_backoff_seconds, (1.0, 4.0))
        self.assertTrue(config.auto_submit)
        self.assertEqual(config.extra_browser_args, ("--lang=zh-CN", "--mute-audio"))

    def test_invalid_values_raise_value_error(self) -> None:
        with self.assertRaises(ValueError):
            load_config({"RIGHTSGUARD_HOME": "/srv/rg", "RIGHTSGUARD_CONNECTION_STRATEGY": "grid"})
        with self.assertRaises(ValueError):
            load_config({"RIGHTSGUARD_HOME": "/srv/rg", "RIGHTSGUARD_LAUNCH_BACKOFF_SECONDS": "-1"})
        with self.assertRaises(ValueError):
            load_config({"RIGHTSGUARD_HOME": "/srv/rg", "RIGHTSGUARD_DEBUG_PORT": "abc"})

    def test_default_app_data_dir_per_platform(self) -> None:
        self.assertEqual(
            default_app_data_dir({"APPDATA": "C:/Users/z/AppData/Roaming"}, platform="win32"),
            Path("C:/Users/z/AppData/Roaming") / "RightsGuard",
        )
        self.assertEqual(
            default_app_data_dir({"HOME": "/Users/z"}, platform="darwin"),
            Path("/Users/z/Library/Application Support/RightsGuard"),
        )
        self.assertEqual(
            default_app_data_dir({"HOME": "/home/z"}, platform="linux"),
            Path("/home/z/.config/rights-guard"),
        )
        self.assertEqual(
            default_app_data_dir({"HOME": "/home/z", "XDG_CONFIG_HOME": "/cfg"}, platform="linux"),
            Path("/cfg/rights-guard"),
        )


if __name__ == "__main__":
    unittest.main()
