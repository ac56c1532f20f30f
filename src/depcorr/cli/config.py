"""
Configuration file support for the depcorr CLI.

Supports YAML and JSON config files with CLI argument override.

Example config (YAML):

    data:
      matrix: CRISPRGeneEffect.csv
      cell_lines_as_rows: true
      mutations: OmicsSomaticMutationsMatrixHotspot.csv
      lineages: Model.csv
    filters:
      correlation_cutoff: 0.5
      min_slope: 0.1
      min_n: 50
      p_value_threshold: 0.05
    cell_lines:
      lineage: Lung
      hotspot_gene: KRAS
      hotspot_level: "1+2"
"""

import json
from argparse import Namespace
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from depcorr.core.context import HOTSPOT_LEVELS


@dataclass
class DataConfig:
    """Input file locations."""
    matrix: Optional[Path] = None
    cell_lines_as_rows: bool = False
    bundle: Optional[Path] = None
    mutations: Optional[Path] = None
    lineages: Optional[Path] = None
    gene_stats: Optional[Path] = None


@dataclass
class FilterConfig:
    """Thresholds for the correlation and differential sweeps."""
    correlation_cutoff: float = 0.5
    min_slope: float = 0.0
    min_n: Optional[int] = None
    p_value_threshold: float = 0.05


@dataclass
class CellLineConfig:
    """Cell-line restriction."""
    lineage: Optional[str] = None
    subtype: Optional[str] = None
    hotspot_gene: Optional[str] = None
    hotspot_level: str = "all"


@dataclass
class AnalysisConfig:
    """
    Complete configuration schema shared by the depcorr subcommands.

    Mirrors the CLI argument structure for consistency.
    """
    output: Optional[Path] = None
    data: DataConfig = field(default_factory=DataConfig)
    filters: FilterConfig = field(default_factory=FilterConfig)
    cell_lines: CellLineConfig = field(default_factory=CellLineConfig)


# config section -> {config key: argparse dest}
_SECTION_MAPPINGS = {
    'data': {
        'matrix': 'matrix',
        'cell_lines_as_rows': 'cell_lines_as_rows',
        'bundle': 'bundle',
        'mutations': 'mutations',
        'lineages': 'lineages',
        'gene_stats': 'gene_stats',
    },
    'filters': {
        'correlation_cutoff': 'cutoff',
        'min_slope': 'min_slope',
        'min_n': 'min_n',
        'p_value_threshold': 'p_threshold',
    },
    'cell_lines': {
        'lineage': 'lineage',
        'subtype': 'subtype',
        'hotspot_gene': 'filter_hotspot',
        'hotspot_level': 'filter_level',
    },
}

_PATH_ARGS = {'output', 'matrix', 'bundle', 'mutations', 'lineages', 'gene_stats'}

# option string -> argparse dest, for options whose names differ from their dest
_OPTION_DESTS = {
    '-o': 'output',
    '-m': 'matrix',
    '-g': 'genes',
}


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("run.yaml"))
        >>> print(config['filters']['correlation_cutoff'])
        0.5
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def config_from_dict(config: Dict[str, Any]) -> AnalysisConfig:
    """
    Build a typed AnalysisConfig from a loaded config dictionary.

    Raises:
        ValueError: If a section contains unknown keys
    """
    sections = {
        'data': DataConfig,
        'filters': FilterConfig,
        'cell_lines': CellLineConfig,
    }
    kwargs: Dict[str, Any] = {}
    for name, cls in sections.items():
        values = config.get(name) or {}
        unknown = set(values) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown keys in '{name}' section: {', '.join(sorted(unknown))}")
        values = {
            k: (Path(v) if k in _PATH_ARGS and v is not None else v)
            for k, v in values.items()
        }
        kwargs[name] = cls(**values)
    if config.get('output') is not None:
        kwargs['output'] = Path(config['output'])
    return AnalysisConfig(**kwargs)


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value

    if config_value is not None:
        return config_value

    return cli_value


def _explicit_dests(cli_args: Optional[List[str]]) -> set:
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            explicit.add(arg[2:].split('=', 1)[0].replace('-', '_'))
        elif arg in _OPTION_DESTS:
            explicit.add(_OPTION_DESTS[arg])
    return explicit


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    cli_args: Optional[List[str]] = None,
) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Keys whose argparse destination does not exist on ``args`` (e.g.
    ``p_value_threshold`` for the correlate command) are ignored.

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values)
                  If None, assumes all args are defaults

    Returns:
        Updated Namespace with merged values
    """
    explicit_args = _explicit_dests(cli_args)
    merged = Namespace(**vars(args))

    if 'output' in config and hasattr(merged, 'output'):
        value = Path(config['output']) if config['output'] is not None else None
        merged.output = _merge_value(merged.output, value, 'output' in explicit_args)

    for section, mapping in _SECTION_MAPPINGS.items():
        values = config.get(section) or {}
        for key, dest in mapping.items():
            if key not in values or not hasattr(merged, dest):
                continue
            value = values[key]
            if dest in _PATH_ARGS and value is not None:
                value = Path(value)
            setattr(merged, dest, _merge_value(getattr(merged, dest), value, dest in explicit_args))

    return merged


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Parameters:
        config: Configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    config_from_dict(config)

    filters = config.get('filters') or {}
    if 'correlation_cutoff' in filters:
        cutoff = filters['correlation_cutoff']
        if not isinstance(cutoff, (int, float)) or not 0 <= cutoff <= 1:
            raise ValueError(f"correlation_cutoff must be in [0, 1], got: {cutoff}")

    if 'min_slope' in filters:
        slope = filters['min_slope']
        if not isinstance(slope, (int, float)) or slope < 0:
            raise ValueError(f"min_slope must be a non-negative number, got: {slope}")

    if filters.get('min_n') is not None:
        min_n = filters['min_n']
        if isinstance(min_n, bool) or not isinstance(min_n, int) or min_n < 3:
            raise ValueError(f"min_n must be an integer >= 3, got: {min_n}")

    if 'p_value_threshold' in filters:
        p = filters['p_value_threshold']
        if not isinstance(p, (int, float)) or not 0 < p <= 1:
            raise ValueError(f"p_value_threshold must be in (0, 1], got: {p}")

    cell_lines = config.get('cell_lines') or {}
    level = cell_lines.get('hotspot_level')
    if level is not None and str(level) not in HOTSPOT_LEVELS:
        raise ValueError(
            f"Invalid hotspot_level '{level}'. Choose from: {', '.join(HOTSPOT_LEVELS)}"
        )
