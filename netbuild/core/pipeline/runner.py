from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from netbuild.core.build.attributes import ResolvedAttributes, check_mapping, resolve
from netbuild.core.build.config import BuildConfig
from netbuild.core.build.connectivity import analyze_connectivity
from netbuild.core.build.crossings import simplify_crossings
from netbuild.core.build.elevation import assign_elevations
from netbuild.core.build.errors import (
    BuildError,
    InvalidGeometryForElement,
    NetworkValidationError,
    ValidationIssue,
)
from netbuild.core.build.items import LineItem, PointItem
from netbuild.core.build.normalize import NormalizedLayer, check_geometry_types
from netbuild.core.build.projection import resolve_reprojection, transform_feature, working_crs
from netbuild.core.build.schema import ELEMENT_KINDS
from netbuild.core.build.topology import build_topology
from netbuild.core.build.validate import raise_on_errors, validate_network
from netbuild.core.io.inp_reader import update_inp_with_reprojected_data
from netbuild.core.io.inp_writer import network_geometry, write_inp
from netbuild.core.models.feature import GeometryFeature, feature_from_geojson
from netbuild.core.models.geometry import InvalidGeometry, LineString, Point
from netbuild.core.models.network import NetworkGraph
from netbuild.core.pipeline.events import (
    STAGE_CONNECTIVITY,
    STAGE_CROSSINGS,
    STAGE_ELEVATIONS,
    STAGE_FINISHED,
    STAGE_GRAPH,
    STAGE_INP,
    STAGE_MULTIPART,
    STAGE_READ_CONFIG,
    STAGE_VALIDATE,
    BuildEvent,
    BuildResult,
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    raise_for_event,
)

logger = logging.getLogger(__name__)


@dataclass
class _BuildState:
    raw: Union[BuildConfig, Dict[str, Any]]
    config: Optional[BuildConfig] = None
    layers: Dict[str, List[GeometryFeature]] = field(default_factory=dict)
    resolved: Dict[str, List[ResolvedAttributes]] = field(default_factory=dict)
    crs: Optional[str] = None
    points: List[PointItem] = field(default_factory=list)
    lines: List[LineItem] = field(default_factory=list)
    network: Optional[NetworkGraph] = None
    warnings: List[ValidationIssue] = field(default_factory=list)
    inp: str = ""


# ============================================================
# Stages
# ============================================================

def _read_config(state: _BuildState) -> None:
    cfg = state.raw if isinstance(state.raw, BuildConfig) else BuildConfig.from_dict(state.raw)
    state.config = cfg

    for kind in ELEMENT_KINDS:
        layer = cfg.assigned_data.get(kind)
        if not layer:
            continue
        raw_features = layer if isinstance(layer, list) else (layer.get("features") or [])
        features = []
        for i, f in enumerate(raw_features):
            try:
                features.append(feature_from_geojson(f, i))
            except InvalidGeometry as e:
                gtype = str(((f or {}).get("geometry") or {}).get("type"))
                raise InvalidGeometryForElement(kind, gtype, i) from e
        state.layers[kind] = features
        logger.info("Read %d %s feature(s)", len(features), kind)


def _validate(state: _BuildState) -> None:
    cfg = state.config
    assert cfg is not None

    for kind, features in state.layers.items():
        check_geometry_types(kind, features)

    pair = resolve_reprojection(cfg.projection)
    if pair is not None:
        src, tgt = pair
        state.crs = tgt
        state.layers = {k: [transform_feature(f, src, tgt) for f in fs] for k, fs in state.layers.items()}
    else:
        state.crs = working_crs(cfg.projection)

    for kind, features in state.layers.items():
        mapping = check_mapping(kind, cfg.mapping_for(kind))
        state.resolved[kind] = [resolve(f, kind, mapping, cfg.settings, f.index) for f in features]


def _convert_multipart(state: _BuildState) -> None:
    for kind in ELEMENT_KINDS:
        features = state.layers.get(kind)
        if not features:
            continue
        attrs_by_index = {f.index: a for f, a in zip(features, state.resolved[kind])}
        for part in NormalizedLayer(features):
            attrs = attrs_by_index[part.index]
            if isinstance(part.geometry, Point):
                state.points.append(PointItem(kind, part, attrs))
            elif isinstance(part.geometry, LineString):
                state.lines.append(LineItem(kind, part, attrs, part.geometry.coordinates))
            else:
                raise InvalidGeometryForElement(kind, type(part.geometry).__name__, part.label)
    logger.info("Normalized into %d point(s) and %d line(s)", len(state.points), len(state.lines))


def _simplify_crossings(state: _BuildState) -> None:
    cfg = state.config
    assert cfg is not None
    anchors = [p.coord for p in state.points]
    before = len(state.lines)
    state.lines, issues = simplify_crossings(state.lines, anchors, cfg.options.snap_tolerance)
    state.warnings.extend(issues)
    logger.info("Crossing simplification: %d line(s) -> %d", before, len(state.lines))


def _build_graph(state: _BuildState) -> None:
    cfg = state.config
    assert cfg is not None
    network = build_topology(
        state.points,
        state.lines,
        tolerance=cfg.options.snap_tolerance,
        allow_self_loops=cfg.options.allow_self_loops,
        crs=state.crs,
        metric=cfg.settings.metric,
    )
    issues = validate_network(network)
    raise_on_errors(issues)
    state.warnings.extend(network.issues)
    state.warnings.extend(i for i in issues if i.level != "error")
    state.network = network


def _connectivity(state: _BuildState) -> None:
    assert state.network is not None
    report = analyze_connectivity(state.network)
    state.warnings.extend(report.issues)


def _elevations(state: _BuildState) -> None:
    assert state.network is not None
    assign_elevations(state.network)


def _generate_inp(state: _BuildState) -> None:
    cfg = state.config
    assert cfg is not None and state.network is not None
    state.network.issues[:] = state.warnings
    precision = cfg.options.decimal_precision
    if cfg.options.base_inp:
        coordinates, vertices = network_geometry(state.network)
        state.inp = update_inp_with_reprojected_data(cfg.options.base_inp, coordinates, vertices, precision)
    else:
        state.inp = write_inp(state.network, cfg.settings, decimal_precision=precision, title=cfg.options.title)


def _finished(state: _BuildState) -> None:
    logger.info("Build finished with %d warning(s)", len(state.warnings))


_STEPS: Tuple[Tuple[str, Callable[[_BuildState], None]], ...] = (
    (STAGE_READ_CONFIG, _read_config),
    (STAGE_VALIDATE, _validate),
    (STAGE_MULTIPART, _convert_multipart),
    (STAGE_CROSSINGS, _simplify_crossings),
    (STAGE_GRAPH, _build_graph),
    (STAGE_CONNECTIVITY, _connectivity),
    (STAGE_ELEVATIONS, _elevations),
    (STAGE_INP, _generate_inp),
    (STAGE_FINISHED, _finished),
)


# ============================================================
# Runner
# ============================================================

def run_build(config: Union[BuildConfig, Dict[str, Any]]) -> Iterator[BuildEvent]:
    """
    Run one build as a lazy sequence of events.

    One ProgressEvent per stage, then exactly one CompleteEvent or ErrorEvent.
    No state survives between calls.
    """
    state = _BuildState(raw=config)
    for stage, step in _STEPS:
        yield ProgressEvent(stage)
        try:
            step(state)
        except BuildError as e:
            if e.stage is None:
                e.stage = stage
            logger.error("Build failed: %s", e.describe())
            yield ErrorEvent(e.describe(), stage, e)
            return
        except NetworkValidationError as e:
            logger.error("Build failed during %s: %s", stage, e)
            yield ErrorEvent(f"[{stage}] {e}", stage, e)
            return
        except Exception as e:
            logger.exception("Unexpected failure during %s", stage)
            yield ErrorEvent(f"[{stage}] Unexpected error: {e}", stage, e)
            return

    assert state.network is not None
    yield CompleteEvent(inp_file=state.inp, warnings=list(state.warnings), network=state.network)


def build_inp(
    config: Union[BuildConfig, Dict[str, Any]],
    on_progress: Optional[Callable[[str], None]] = None,
) -> BuildResult:
    """
    Synchronous build. Raises the typed BuildError on failure.
    """
    for event in run_build(config):
        if isinstance(event, ProgressEvent):
            if on_progress is not None:
                on_progress(event.task)
        elif isinstance(event, CompleteEvent):
            assert event.network is not None
            return BuildResult(inp_file=event.inp_file, network=event.network, warnings=event.warnings)
        else:
            raise_for_event(event)
    raise RuntimeError("Build ended without a terminal event")
