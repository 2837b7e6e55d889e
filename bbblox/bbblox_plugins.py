from argparse import Namespace
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

from bbblox.bbblox_consts import DEFAULT_CONFIG, AppConfig


def set_config_toml(args: Namespace, base: AppConfig = DEFAULT_CONFIG) -> AppConfig:
    """Read key/values in a TOML file and apply them over the defaults.

    Keys of the [bbblox] table are the field names of AppConfig, e.g.:

    [bbblox]
    installer_url = "https://example.org/Installer.exe"
    settle_delay = 10
    """
    try:
        # Ignore. tomllib requires 3.11+
        import tomllib  # noqa: PLC0415
    except ModuleNotFoundError:
        err: str = "tomllib requires Python 3.11"
        raise ModuleNotFoundError(err)

    # User configuration
    toml: dict[str, Any]
    # Configuration file path
    config_path: Path
    # Name of the configuration file
    config: str = getattr(args, "config", "")

    if not config:
        err: str = f"Property 'config' does not exist in type '{type(args)}'"
        raise AttributeError(err)

    config_path = Path(config).expanduser()

    if not config_path.is_file():
        err: str = f"Path to configuration is not a file: '{config}'"
        raise FileNotFoundError(err)

    with config_path.open(mode="rb") as file:
        toml = tomllib.load(file)

    _check_toml(toml, base)

    return replace(base, **toml["bbblox"])


def _check_toml(toml: dict[str, Any], base: AppConfig) -> dict[str, Any]:
    """Check for unknown, empty or mistyped values in the configuration file."""
    # Required table in configuration file
    table: str = "bbblox"
    types: dict[str, type] = {
        field.name: type(getattr(base, field.name)) for field in fields(base)
    }

    if table not in toml:
        err: str = f"Table '{table}' in TOML is not defined."
        raise ValueError(err)

    for key, val in toml[table].items():
        if key not in types:
            err: str = f"Unknown key in table '[{table}]': '{key}'"
            raise ValueError(err)

        # Raise an error for empty values
        if not val and isinstance(val, str):
            err: str = (
                f"Value is empty for '{key}'.\n"
                f"Please specify a value or remove the entry: '{key}={val}'"
            )
            raise ValueError(err)

        # Integers are accepted where a float is expected
        expected: type = types[key]
        if isinstance(val, bool) or not (
            isinstance(val, expected) or (expected is float and isinstance(val, int))
        ):
            err: str = f"Value for '{key}' is not of type '{expected.__name__}': {val!r}"
            raise ValueError(err)

    return toml
