"""Read and write gh-trs config files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from urllib.parse import urlparse

import yaml

from gh_trs.config.types import Config
from gh_trs.errors import ConfigError, ContentUnfetchable, GhTrsError
from gh_trs.remote import fetch_raw_content
from gh_trs.trs.api import TrsEndpoint

logger = logging.getLogger(__name__)

YAML_SUFFIXES = {"", ".yml", ".yaml"}
JSON_SUFFIXES = {".json"}


def is_remote(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https", "ftp")


def output_format(path: Path | str) -> str:
    """Return "yaml" or "json" for an output path, judged by its extension."""
    suffix = Path(path).suffix.lower()
    if suffix in YAML_SUFFIXES:
        return "yaml"
    if suffix in JSON_SUFFIXES:
        return "json"
    raise ConfigError(f"Unsupported output file extension: {suffix}")


def parse_config(text: str, location: str) -> Config:
    """Parse config text. JSON is read with the YAML loader."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {location}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config at {location} is not a mapping")
    return Config.from_dict(data)


def read_config(location: str) -> Config:
    """Read a config from a local path or a remote URL.

    Args:
        location: File path, or http(s) URL of a YAML/JSON config.

    Returns:
        Parsed Config.

    Raises:
        ConfigError: If the config cannot be read or is malformed.
    """
    if is_remote(location):
        try:
            text = fetch_raw_content(location)
        except ContentUnfetchable as e:
            raise ConfigError(f"Failed to read config {location}: {e.message}")
    else:
        path = Path(location)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read config {location}: {e}")
    return parse_config(text, location)


def dump_config(config: Config, fmt: str = "yaml") -> str:
    data = config.to_dict()
    if fmt == "json":
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def write_config(config: Config, path: Path | str) -> Path:
    """Write a config as YAML or JSON, chosen by the file extension."""
    out = Path(path)
    content = dump_config(config, output_format(out))
    try:
        out.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to write config {out}: {e}")
    return out


def find_config_locs_from_trs(trs_location: str, endpoint: TrsEndpoint | None = None) -> list[str]:
    """List the gh-trs-config.json URL of every version published at a TRS."""
    endpoint = endpoint or TrsEndpoint(trs_location)
    service_info = endpoint.get_service_info()
    if service_info is None or not service_info.is_gh_trs():
        raise GhTrsError(f"{endpoint.url} is not a gh-trs 2.0.1 TRS endpoint")
    tools = endpoint.get_tools() or []
    locations = [f"{v.url}/gh-trs-config.json" for tool in tools for v in tool.versions]
    logger.debug("Found config locations: %s", locations)
    return locations
