"""``runorch init``: write a starter runorch.yaml."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from rich.console import Console

from runorch.config.loader import YAMLConfigLoader

console = Console()

_EMPTY_REGIONS = "regions: {}\n"


def parse_region_options(options: Sequence[str]) -> dict[str, str]:
    """Turn ``name=url`` options into a region map.

    Raises:
        ValueError: an option lacks ``=`` or has an empty side.
    """
    regions: dict[str, str] = {}
    for option in options:
        name, sep, endpoint = option.partition("=")
        name, endpoint = name.strip(), endpoint.strip().rstrip("/")
        if not sep or not name or not endpoint:
            raise ValueError(f"Invalid region '{option}'; expected NAME=URL")
        regions[name] = endpoint
    return regions


def render_template(regions: dict[str, str] | None = None) -> str:
    """Bundled template text with ``regions`` filled in when given."""
    text = YAMLConfigLoader.template_path().read_text(encoding="utf-8")
    if not regions:
        return text
    block = yaml.safe_dump({"regions": regions}, default_flow_style=False, sort_keys=False)
    return text.replace(_EMPTY_REGIONS, block, 1)


def init_config_command(path: str = ".", force: bool = False, regions: Sequence[str] = ()) -> Path:
    """Write runorch.yaml into ``path`` and return the written file.

    Raises:
        FileExistsError: the file exists and ``force`` is not set.
        ValueError: a region option is malformed.
    """
    region_map = parse_region_options(regions)
    output_path = Path(path).resolve() / YAMLConfigLoader.DEFAULT_FILENAME
    if output_path.exists() and not force:
        raise FileExistsError(f"Config already exists: {output_path} (use --force to overwrite)")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_template(region_map), encoding="utf-8")
    console.print(f"[green]Created[/green] {output_path} (regions: {', '.join(region_map) or 'none'})")
    return output_path
