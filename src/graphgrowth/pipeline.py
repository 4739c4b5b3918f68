"""Main pipeline orchestration module."""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
import psutil
import time

from graphgrowth import __version__
from graphgrowth.core.types import CountType, ThresholdSpec, ValidationResult
from graphgrowth.core.exceptions import ConfigurationError, ValidationError
from graphgrowth.utils.config import validate_configuration_schema, parse_thresholds
from graphgrowth.modules.graph import GraphModel
from graphgrowth.modules.grouping import GroupIndex
from graphgrowth.modules.coverage import calc_histograms, count_coverage
from graphgrowth.modules.growth import calc_all_growths, ordered_growth
from graphgrowth.modules.ordering import dissimilarity_matrix, optimize_order
from graphgrowth.modules.table import build_coverage_table
from graphgrowth.modules.inputs import read_graph_tables, read_grouping, read_name_list
from graphgrowth.modules.output import (
    read_histogram_table, write_coverage_table, write_dissimilarity_table,
    write_growth_table, write_histogram_table
)

logger = logging.getLogger(__name__)


def _timed(stage: str, func: Callable[..., Dict[str, Any]], *args: Any) -> Dict[str, Any]:
    """Run one command body and record its runtime in the results."""
    start_time = time.time()
    results = {
        "command": stage,
        "start_time": start_time,
        "pipeline_version": __version__
    }
    logger.info(f"Starting {stage}")

    try:
        results.update(func(*args))
    except Exception as e:
        end_time = time.time()
        results["end_time"] = end_time
        results["runtime_seconds"] = end_time - start_time
        results["error"] = str(e)
        logger.error(f"{stage} failed after {end_time - start_time:.1f} seconds: {e}")
        raise

    end_time = time.time()
    results["end_time"] = end_time
    results["runtime_seconds"] = end_time - start_time
    logger.info(f"{stage} completed in {results['runtime_seconds']:.2f} seconds")
    return results


def _threads(config: Dict[str, Any]) -> int:
    return config.get("resources", {}).get("threads", 0)


def _count_types(config: Dict[str, Any]) -> List[CountType]:
    return CountType.parse(config.get("counting", {}).get("count_type", "node")).expand()


def _include_uncovered(config: Dict[str, Any]) -> bool:
    return bool(config.get("counting", {}).get("include_uncovered", False))


def _threshold_specs(config: Dict[str, Any]) -> List[ThresholdSpec]:
    growth = config.get("growth", {})
    return parse_thresholds(growth.get("coverage", "1"), growth.get("quorum", "0"))


def load_graph(graph_dir: Union[str, Path], config: Dict[str, Any]) -> GraphModel:
    """
    Load the graph tables and validate them against the configuration.

    Raises:
        ValidationError: Inputs are inconsistent
    """
    graph = read_graph_tables(graph_dir)
    validation_result = validate_pipeline_inputs(graph, config)
    for warning in validation_result.warnings:
        logger.warning(warning)
    if not validation_result.is_valid:
        raise ValidationError(
            f"Input validation failed with {len(validation_result.errors)} error(s)",
            errors=validation_result.errors,
            stage="validation"
        )
    logger.info("Input validation passed")
    return graph


def validate_pipeline_inputs(graph: GraphModel, config: Dict[str, Any]) -> ValidationResult:
    """
    Validation of graph and configuration before counting.

    Args:
        graph: Loaded graph model
        config: Pipeline configuration

    Returns:
        ValidationResult with validation status and details
    """
    errors = []
    warnings = []
    details = {}

    config_validation = validate_configuration_schema(config)
    errors.extend(config_validation.errors)
    warnings.extend(config_validation.warnings)

    if config_validation.is_valid:
        count_types = _count_types(config)
        graph_validation = graph.validate(count_types)
        errors.extend(graph_validation.errors)
        warnings.extend(graph_validation.warnings)
        details.update(graph_validation.details)

    if not graph.path_names:
        warnings.append("Graph has no paths; all results will be empty")

    # Check system resources
    memory_gb = psutil.virtual_memory().total // (1024**3)
    if memory_gb < 4:
        warnings.append(f"Low system memory: {memory_gb}GB")
    details["system_memory_gb"] = memory_gb

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        details=details
    )


def build_group_index(graph: GraphModel, config: Dict[str, Any]) -> GroupIndex:
    """
    Group the graph's paths according to the grouping section.

    Args:
        graph: Graph model
        config: Pipeline configuration

    Returns:
        GroupIndex over the selected paths
    """
    grouping_config = config.get("grouping", {})
    grouping_file = grouping_config.get("grouping_file")
    subset_file = grouping_config.get("subset_file")
    exclude_file = grouping_config.get("exclude_file")

    return GroupIndex(
        graph.path_names,
        grouping=read_grouping(grouping_file) if grouping_file else None,
        group_by=grouping_config.get("group_by", "path"),
        subset=read_name_list(subset_file) if subset_file else None,
        exclude=read_name_list(exclude_file) if exclude_file else None
    )


def _hist(graph_dir, output_file, config):
    graph = load_graph(graph_dir, config)
    groups = build_group_index(graph, config)
    histograms = calc_histograms(
        graph, groups, _count_types(config), _threads(config), _include_uncovered(config)
    )
    output = write_histogram_table(
        list(histograms.values()), output_file,
        comments=[f"graphgrowth {__version__} hist", f"groups: {len(groups)}"]
    )
    return {
        "n_groups": len(groups),
        "histograms": histograms,
        "output_files": {"hist": str(output)}
    }


def _growth(hist_file, output_file, config):
    histograms, comments = read_histogram_table(hist_file)
    specs = _threshold_specs(config)
    curves = []
    for hist in histograms:
        curves.extend(calc_all_growths(hist, specs, _threads(config)))
    add_hist = config.get("growth", {}).get("add_hist", False)
    output = write_growth_table(
        curves, output_file,
        histograms=histograms if add_hist else None,
        comments=comments + [f"graphgrowth {__version__} growth"]
    )
    return {
        "n_groups": histograms[0].n_groups,
        "curves": curves,
        "output_files": {"growth": str(output)}
    }


def _histgrowth(graph_dir, output_file, config):
    graph = load_graph(graph_dir, config)
    groups = build_group_index(graph, config)
    histograms = calc_histograms(
        graph, groups, _count_types(config), _threads(config), _include_uncovered(config)
    )
    specs = _threshold_specs(config)
    curves = []
    for hist in histograms.values():
        curves.extend(calc_all_growths(hist, specs, _threads(config)))
    add_hist = config.get("growth", {}).get("add_hist", False)
    output = write_growth_table(
        curves, output_file,
        histograms=list(histograms.values()) if add_hist else None,
        comments=[f"graphgrowth {__version__} histgrowth", f"groups: {len(groups)}"]
    )
    return {
        "n_groups": len(groups),
        "histograms": histograms,
        "curves": curves,
        "output_files": {"growth": str(output)}
    }


def resolve_group_order(
    graph: GraphModel,
    groups: GroupIndex,
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Decide the group order: an order file, clustering, or natural order.

    The chosen order is applied to the group index.

    Returns:
        Dictionary with 'order' (group ids) and, where known, the
        'binding' of an order file
    """
    ordering = config.get("ordering", {})
    resolved = {}

    if ordering.get("order_file"):
        binding = groups.bind_order(read_name_list(ordering["order_file"]))
        order = binding.group_ids
        resolved["binding"] = binding
        logger.info(f"Using order file with {len(order)} of {len(groups)} groups")
    elif ordering.get("method", "cluster") == "cluster":
        count_type = _count_types(config)[0]
        coverage = count_coverage(graph, groups, count_type, _threads(config))
        order, _ = optimize_order(
            coverage,
            method=ordering.get("linkage", "average"),
            optimal=ordering.get("optimal_leaf_ordering", False),
            labels=groups.labels
        )
    elif ordering.get("method") == "natural":
        order = list(range(len(groups)))
    else:
        raise ConfigurationError(f"Unknown ordering method: {ordering.get('method')}")

    groups.apply_order(order)
    resolved["order"] = order
    return resolved


def _ordered_histgrowth(graph_dir, output_file, config):
    graph = load_graph(graph_dir, config)
    groups = build_group_index(graph, config)
    resolved = resolve_group_order(graph, groups, config)
    order = resolved["order"]

    specs = _threshold_specs(config)
    include_uncovered = _include_uncovered(config)
    add_hist = config.get("growth", {}).get("add_hist", False)

    partial = len(order) < len(groups)
    if add_hist and partial:
        logger.info(f"Histograms cover the {len(order)} ordered groups only")

    histograms = {}
    curves = []
    for count_type in _count_types(config):
        coverage = count_coverage(graph, groups, count_type, _threads(config))
        curves.extend(ordered_growth(coverage, order, specs, include_uncovered))
        if add_hist:
            ordered = coverage.select_groups(order) if partial else coverage
            histograms[count_type] = ordered.histogram(include_uncovered)

    labels = groups.labels
    output = write_growth_table(
        curves, output_file,
        histograms=list(histograms.values()) if add_hist else None,
        comments=[f"graphgrowth {__version__} ordered-histgrowth",
                  f"order: {','.join(labels[g] for g in order)}"]
    )
    results = {
        "n_groups": len(groups),
        "order": [labels[g] for g in order],
        "curves": curves,
        "output_files": {"growth": str(output)}
    }
    if "binding" in resolved:
        results["order_complete"] = resolved["binding"].is_complete
        results["unknown_order_labels"] = resolved["binding"].unknown_labels
        results["unordered_labels"] = resolved["binding"].unordered_labels
    return results


def _table(graph_dir, output_file, config):
    count_type = CountType.parse(config.get("counting", {}).get("count_type", "node"))
    if count_type is CountType.ALL:
        raise ConfigurationError("The coverage table needs one count type: node, edge or bp")
    graph = load_graph(graph_dir, config)
    groups = build_group_index(graph, config)
    table_config = config.get("table", {})
    table = build_coverage_table(
        graph, groups, count_type,
        mode=table_config.get("mode", "presence"),
        include_uncovered=table_config.get("include_uncovered", True),
        add_total=table_config.get("add_total", False),
        threads=_threads(config)
    )
    output = write_coverage_table(table, output_file)
    return {
        "n_groups": len(groups),
        "n_items": len(table),
        "output_files": {"table": str(output)}
    }


def _similarity(graph_dir, output_file, config):
    graph = load_graph(graph_dir, config)
    groups = build_group_index(graph, config)
    count_type = _count_types(config)[0]
    coverage = count_coverage(graph, groups, count_type, _threads(config))

    ordering = config.get("ordering", {})
    if ordering.get("method", "cluster") == "cluster":
        order, matrix = optimize_order(
            coverage,
            method=ordering.get("linkage", "average"),
            optimal=ordering.get("optimal_leaf_ordering", False),
            labels=groups.labels
        )
    else:
        matrix = dissimilarity_matrix(coverage, groups.labels)
        order = list(range(len(groups)))

    labels = [groups.labels[g] for g in order]
    output = write_dissimilarity_table(matrix, output_file, order=labels)
    return {
        "n_groups": len(groups),
        "order": labels,
        "output_files": {"similarity": str(output)}
    }


def _info(graph_dir, config):
    graph = load_graph(graph_dir, config)
    groups = build_group_index(graph, config)
    info = graph.info()
    info["group_count"] = len(groups)
    info["paths_per_group"] = {g.label: len(g.paths) for g in groups.groups}
    return {"info": info}


def run_hist(graph_dir: Union[str, Path], output_file: Union[str, Path],
             config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Coverage histograms of the configured count types.

    Args:
        graph_dir: Directory with the graph tables
        output_file: Histogram TSV to write
        config: Pipeline configuration

    Returns:
        Dictionary containing results and metadata
    """
    return _timed("hist", _hist, graph_dir, output_file, config)


def run_growth(hist_file: Union[str, Path], output_file: Union[str, Path],
               config: Dict[str, Any]) -> Dict[str, Any]:
    """Averaged growth curves from a previously written histogram TSV."""
    return _timed("growth", _growth, hist_file, output_file, config)


def run_histgrowth(graph_dir: Union[str, Path], output_file: Union[str, Path],
                   config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Histograms and averaged growth curves in one pass.

    Args:
        graph_dir: Directory with the graph tables
        output_file: Growth TSV to write
        config: Pipeline configuration

    Returns:
        Dictionary containing results and metadata
    """
    return _timed("histgrowth", _histgrowth, graph_dir, output_file, config)


def run_ordered_histgrowth(graph_dir: Union[str, Path], output_file: Union[str, Path],
                           config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Exact growth curves along one group order.

    The order comes from ordering.order_file when set, otherwise from
    hierarchical clustering or the natural group order.

    Args:
        graph_dir: Directory with the graph tables
        output_file: Growth TSV to write
        config: Pipeline configuration

    Returns:
        Dictionary containing results and metadata
    """
    return _timed("ordered-histgrowth", _ordered_histgrowth, graph_dir, output_file, config)


def run_table(graph_dir: Union[str, Path], output_file: Union[str, Path],
              config: Dict[str, Any]) -> Dict[str, Any]:
    """Per-item, per-group coverage table."""
    return _timed("table", _table, graph_dir, output_file, config)


def run_similarity(graph_dir: Union[str, Path], output_file: Union[str, Path],
                   config: Dict[str, Any]) -> Dict[str, Any]:
    """Group dissimilarity matrix, rows in cluster order."""
    return _timed("similarity", _similarity, graph_dir, output_file, config)


def run_info(graph_dir: Union[str, Path], config: Dict[str, Any]) -> Dict[str, Any]:
    """Graph and grouping summary."""
    return _timed("info", _info, graph_dir, config)


def setup_logging(level: str, log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Setup logging configuration.

    Args:
        level: Logging level
        log_file: Optional log file path
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file) if log_file else logging.NullHandler()
        ],
        force=True
    )
