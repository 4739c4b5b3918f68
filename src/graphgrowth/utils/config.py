"""Configuration management and validation."""

import yaml
import json
from pathlib import Path
from typing import Dict, Any, List, Union

from graphgrowth.core.types import CountType, ThresholdSpec, ValidationResult
from graphgrowth.core.exceptions import ConfigurationError
from graphgrowth.modules.grouping import GROUP_BY_CHOICES
from graphgrowth.modules.ordering import LINKAGE_METHODS


ORDER_METHODS = ("cluster", "natural")
TABLE_MODES = ("presence", "count")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def create_default_configuration() -> Dict[str, Any]:
    """
    Create default configuration.

    Returns:
        Default configuration dictionary
    """
    return {
        "pipeline": {
            "name": "graph_growth",
            "version": "1.0.0",
            "description": "Pangenome graph coverage and growth analysis"
        },
        "resources": {
            "threads": 0
        },
        "counting": {
            "count_type": "node",
            "include_uncovered": False
        },
        "grouping": {
            "group_by": "path",
            "grouping_file": None,
            "subset_file": None,
            "exclude_file": None
        },
        "growth": {
            "coverage": "1",
            "quorum": "0",
            "add_hist": False
        },
        "ordering": {
            "order_file": None,
            "method": "cluster",
            "linkage": "average",
            "optimal_leaf_ordering": False
        },
        "table": {
            "mode": "presence",
            "include_uncovered": True,
            "add_total": False
        },
        "logging": {
            "level": "INFO",
            "file": None
        }
    }


def load_configuration(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load and validate configuration from file.

    The loaded values are merged over the defaults.

    Args:
        config_path: Path to configuration file (YAML or JSON)

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigurationError: Invalid configuration
        FileNotFoundError: Configuration file not found
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            if config_path.suffix.lower() in ['.yaml', '.yml']:
                config = yaml.safe_load(f)
            elif config_path.suffix.lower() == '.json':
                config = json.load(f)
            else:
                raise ConfigurationError(
                    f"Unsupported config file format: {config_path.suffix}",
                    config_path=config_path
                )

    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Error parsing configuration file: {e}", config_path=config_path)

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a mapping", config_path=config_path)

    try:
        return merge_configurations(create_default_configuration(), config)
    except ConfigurationError as e:
        raise ConfigurationError(str(e), config_path=config_path)


def _check_choice(errors: List[str], section: Dict[str, Any], key: str,
                  choices: tuple, where: str) -> None:
    value = section.get(key)
    if value is not None and value not in choices:
        errors.append(f"{where}.{key} must be one of {', '.join(choices)}, got {value!r}")


def validate_configuration_schema(config: Dict[str, Any]) -> ValidationResult:
    """
    Check section types, enumerated choices and thresholds.

    Args:
        config: Configuration dictionary

    Returns:
        ValidationResult with validation status
    """
    errors = []
    warnings = []

    defaults = create_default_configuration()
    for section in defaults:
        if section not in config:
            warnings.append(f"Missing '{section}' configuration - using defaults")
        elif not isinstance(config[section], dict):
            errors.append(f"'{section}' must be a dictionary")

    unknown = [s for s in config if s not in defaults]
    if unknown:
        warnings.append(f"Unknown configuration sections ignored: {', '.join(unknown)}")

    if errors:
        return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

    resources = config.get("resources", {})
    threads = resources.get("threads", 0)
    if isinstance(threads, bool) or not isinstance(threads, int) or threads < 0:
        errors.append(f"resources.threads must be a non-negative integer, got {threads!r}")

    counting = config.get("counting", {})
    try:
        CountType.parse(counting.get("count_type", "node"))
    except ConfigurationError as e:
        errors.append(f"counting.count_type: {e}")

    _check_choice(errors, config.get("grouping", {}), "group_by", GROUP_BY_CHOICES, "grouping")

    growth = config.get("growth", {})
    try:
        parse_thresholds(growth.get("coverage", "1"), growth.get("quorum", "0"))
    except ConfigurationError as e:
        errors.append(f"growth: {e}")

    ordering = config.get("ordering", {})
    _check_choice(errors, ordering, "method", ORDER_METHODS, "ordering")
    _check_choice(errors, ordering, "linkage", LINKAGE_METHODS, "ordering")

    _check_choice(errors, config.get("table", {}), "mode", TABLE_MODES, "table")

    level = config.get("logging", {}).get("level")
    if level is not None and str(level).upper() not in LOG_LEVELS:
        errors.append(f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {level!r}")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        details={"sections": sorted(config)}
    )


def merge_configurations(
    base_config: Dict[str, Any],
    override_config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Merge configuration dictionaries with validation.

    Args:
        base_config: Base configuration
        override_config: Override parameters

    Returns:
        Merged configuration
    """
    def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    merged = merge_dicts(base_config, override_config)

    validation_result = validate_configuration_schema(merged)
    if not validation_result.is_valid:
        raise ConfigurationError(
            f"Configuration validation failed: {validation_result.errors}"
        )

    return merged


def save_configuration(config: Dict[str, Any], output_path: Union[str, Path]) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration dictionary
        output_path: Output file path

    Raises:
        ConfigurationError: Error saving configuration
    """
    output_path = Path(output_path)

    try:
        with open(output_path, 'w') as f:
            if output_path.suffix.lower() in ['.yaml', '.yml']:
                yaml.dump(config, f, default_flow_style=False, indent=2)
            elif output_path.suffix.lower() == '.json':
                json.dump(config, f, indent=2)
            else:
                raise ConfigurationError(f"Unsupported output format: {output_path.suffix}")

    except (yaml.YAMLError, TypeError, OSError) as e:
        raise ConfigurationError(f"Error saving configuration: {e}", config_path=output_path)


def _split_values(values: Union[str, int, float, List[Any], None]) -> List[str]:
    if values is None:
        return []
    if isinstance(values, (list, tuple)):
        return [str(v).strip() for v in values]
    return [v.strip() for v in str(values).split(",") if v.strip()]


def parse_thresholds(
    coverage: Union[str, int, List[Any], None] = "1",
    quorum: Union[str, float, List[Any], None] = "0"
) -> List[ThresholdSpec]:
    """
    Build threshold specs from coverage and quorum lists.

    The lists are paired by position; a list of length one is repeated to
    the length of the other.

    Args:
        coverage: Comma separated coverage thresholds, e.g. '1,2'
        quorum: Comma separated quorum thresholds, e.g. '0,0.5'

    Returns:
        List of ThresholdSpec

    Raises:
        ConfigurationError: Lists of different lengths or invalid values
    """
    coverages = _split_values(coverage) or ["1"]
    quorums = _split_values(quorum) or ["0"]

    if len(coverages) == 1:
        coverages = coverages * len(quorums)
    if len(quorums) == 1:
        quorums = quorums * len(coverages)
    if len(coverages) != len(quorums):
        raise ConfigurationError(
            f"Coverage list ({len(coverages)} values) and quorum list "
            f"({len(quorums)} values) differ in length"
        )

    specs = []
    for l_value, q_value in zip(coverages, quorums):
        try:
            l_int = int(l_value)
        except ValueError:
            raise ConfigurationError(
                f"Coverage threshold must be a non-negative integer, got {l_value!r}"
            )
        specs.append(ThresholdSpec(coverage=l_int, quorum=q_value))
    return specs
