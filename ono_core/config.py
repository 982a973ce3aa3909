# ==========================================
# CONFIGURATION
# ==========================================
"""
Build configuration, read from `ono.json` in the project directory.

    {
      "pages_dir": "pages",
      "output_dir": "dist",
      "transform": "babel",
      "babel_path": "vendor/babel.min.js",
      "jobs": 4
    }
"""
import json
import os
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

DEFAULT_CONFIG_FILE = "ono.json"


class BuildConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pages_dir: str = "pages"
    output_dir: str = "dist"
    public_dir: str = "public"
    assets_dir: str = "assets"
    hash_assets: bool = True
    transform: Literal["identity", "babel"] = "identity"
    babel_path: Optional[str] = None
    jsx_factory: str = "h"
    jsx_fragment: str = "Fragment"
    doctype: bool = True
    jobs: int = Field(default=1, ge=1)
    verbose: bool = False


def load_config(path=None, **overrides) -> BuildConfig:
    """
    Load the build configuration.

    Args:
        path: Config file; defaults to ono.json in the working directory
        **overrides: Values that win over the file (e.g. from the command line)

    Returns:
        BuildConfig; defaults when no file exists and no path was given

    Raises:
        ConfigError: If the file is missing (explicit path), not valid
            JSON, or does not validate
    """
    config_path = path or DEFAULT_CONFIG_FILE
    data = {}

    if os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON: {e.msg}",
                path=config_path,
                line_number=e.lineno,
                column=e.colno,
            )
        if not isinstance(data, dict):
            raise ConfigError("The configuration must be a JSON object", path=config_path)
    elif path is not None:
        raise ConfigError("Configuration file not found", path=config_path)

    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return BuildConfig(**data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}", path=config_path)
