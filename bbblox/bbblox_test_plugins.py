import sys
import unittest
from argparse import Namespace
from pathlib import Path
from tempfile import TemporaryDirectory

from tomllib import TOMLDecodeError

sys.path.append(str(Path(__file__).parent.parent))

from bbblox import bbblox_plugins
from bbblox.bbblox_consts import DEFAULT_CONFIG


class TestInstallerPlugins(unittest.TestCase):
    """Test suite for the TOML configuration of bbblox-installer."""

    def setUp(self):
        """Create the test directory and configuration file path."""
        self.tmp = TemporaryDirectory()
        self.test_file = Path(self.tmp.name).joinpath("bbblox.toml")

    def tearDown(self):
        """Delete the test files."""
        self.tmp.cleanup()

    def test_set_config_toml(self):
        """Test set_config_toml overrides only the keys in the file."""
        self.test_file.write_text(
            "[bbblox]\n"
            'installer_url = "https://foo/Installer.exe"\n'
            'app_name = "Foo"\n'
            "settle_delay = 10\n",
            encoding="utf-8",
        )

        result = bbblox_plugins.set_config_toml(Namespace(config=str(self.test_file)))

        self.assertEqual(result.installer_url, "https://foo/Installer.exe")
        self.assertEqual(result.app_name, "Foo")
        self.assertEqual(result.settle_delay, 10, "Expected ints for float values")
        self.assertEqual(
            result.dotnet_url,
            DEFAULT_CONFIG.dotnet_url,
            "Expected defaults for missing keys",
        )

    def test_set_config_toml_notable(self):
        """Test set_config_toml without the [bbblox] table."""
        self.test_file.write_text('[foo]\napp_name = "Foo"\n', encoding="utf-8")

        with self.assertRaisesRegex(ValueError, "bbblox"):
            bbblox_plugins.set_config_toml(Namespace(config=str(self.test_file)))

    def test_set_config_toml_unknown(self):
        """Test set_config_toml for a key that is not a setting."""
        self.test_file.write_text('[bbblox]\nfoo = "bar"\n', encoding="utf-8")

        with self.assertRaisesRegex(ValueError, "foo"):
            bbblox_plugins.set_config_toml(Namespace(config=str(self.test_file)))

    def test_set_config_toml_empty(self):
        """Test set_config_toml for an empty string value."""
        self.test_file.write_text('[bbblox]\napp_id = ""\n', encoding="utf-8")

        with self.assertRaisesRegex(ValueError, "empty"):
            bbblox_plugins.set_config_toml(Namespace(config=str(self.test_file)))

    def test_set_config_toml_type(self):
        """Test set_config_toml for values of the wrong type."""
        for line in ("min_uid = 1000.5", 'settle_delay = "5"', "min_uid = true"):
            self.test_file.write_text(f"[bbblox]\n{line}\n", encoding="utf-8")

            with self.assertRaises(ValueError, msg=line):
                bbblox_plugins.set_config_toml(Namespace(config=str(self.test_file)))

    def test_set_config_toml_err(self):
        """Test set_config_toml for an invalid TOML file."""
        self.test_file.write_text("[bbblox\n", encoding="utf-8")

        with self.assertRaises(TOMLDecodeError):
            bbblox_plugins.set_config_toml(Namespace(config=str(self.test_file)))

    def test_set_config_toml_nofile(self):
        """Test set_config_toml when the configuration file does not exist."""
        with self.assertRaises(FileNotFoundError):
            bbblox_plugins.set_config_toml(Namespace(config=str(self.test_file)))

    def test_set_config_toml_noconfig(self):
        """Test set_config_toml when the arguments have no config."""
        with self.assertRaises(AttributeError):
            bbblox_plugins.set_config_toml(Namespace(foo="bar"))


if __name__ == "__main__":
    unittest.main()
