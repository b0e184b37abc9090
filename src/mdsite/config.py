"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "MDSITE_"


class Settings(BaseModel):
    app_name:         str = "mdsite"
    content_dir:      str = Field(default="site",        description="Directory of source Markdown documents")
    output_dir:       str = Field(default="_site",       description="Directory for rendered HTML + JSON files")
    asset_dir:        str = Field(default="site/assets", description="Directory bare asset names resolve against")
    image_output_dir: str = Field(default="_site/img",   description="Directory for generated image variants")
    image_url_path:   str = Field(default="/img/",       description="URL prefix of generated image variants")
    image_widths:     list[int] = Field(default=[655, 1310, 1965], min_length=1)
    image_formats:    list[str] = Field(default=["webp", "jpeg", "avif"], min_length=1)
    default_sizes:    str = Field(
        default="(min-width: 40ch) 90vw, (min-width: 65ch) 90vw, 100vw",
        description="sizes attribute used when a shortcode omits one",
    )
    max_concurrency:  int = Field(default=4, ge=1, description="Max images decoded/encoded at once")
    parser_config:    str = Field(default="default", description="MarkdownIt preset name")

    @field_validator("image_widths", "image_formats", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value


def _read_config_file(path: Path) -> dict[str, Any]:
    """Parse a YAML settings file; a missing file is an empty mapping."""
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid {path}: expected a mapping of settings, got {type(data).__name__}")
    unknown = sorted(set(data) - set(Settings.model_fields))
    if unknown:
        raise ValueError(f"Invalid {path}: unknown setting(s) {', '.join(map(str, unknown))}")
    return data


def _env_values() -> dict[str, str]:
    """Collect MDSITE_<FIELD> variables; empty values count as unset."""
    values = {}
    for name in Settings.model_fields:
        raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}", "").strip()
        if raw:
            values[name] = raw
    return values


def load_config(
    overrides: Optional[dict[str, Any]] = None,
    config_file: str | Path = CONFIG_FILE,
    ) -> Settings:
    """Build Settings from, lowest to highest precedence: config_file, MDSITE_* env vars, non-None overrides.

    Raises ValueError for an unreadable or malformed file and for values the schema rejects.
    """
    data = _read_config_file(Path(config_file))
    data.update(_env_values())
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
