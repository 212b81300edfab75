"""Feature catalog parser."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import Feature, FeatureKind, Priority, Size

logger = logging.getLogger(__name__)

_NO_DEPENDENCIES = {"", "none", "tbd", "-", "n/a"}
_SEPARATOR_CELL = re.compile(r"^:?-{2,}:?$")


@dataclass
class CatalogParseResult:
    """Parsed catalog plus the rows that were dropped."""

    features: list[Feature] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class CatalogError(Exception):
    """Feature catalog cannot be read."""

    pass


def load_catalog(catalog_path: Path) -> CatalogParseResult:
    """Load a feature catalog from markdown or YAML.

    Args:
        catalog_path: Path to the catalog file (.md, .yml or .yaml)

    Returns:
        CatalogParseResult with features in file order

    Raises:
        CatalogError: If the file is missing or not parseable at all
    """
    if not catalog_path.exists():
        raise CatalogError(f"Feature catalog not found: {catalog_path}")

    with open(catalog_path, "r") as f:
        content = f.read()

    if catalog_path.suffix.lower() in (".yml", ".yaml"):
        result = parse_catalog_yaml(content)
    else:
        result = parse_catalog_markdown(content)

    logger.info(
        f"Parsed {len(result.features)} features from {catalog_path} "
        f"({len(result.warnings)} warnings)"
    )
    return result


def parse_catalog_markdown(content: str) -> CatalogParseResult:
    """Parse the feature table from markdown content.

    Expected columns: | ID | Name | Priority | Type | Size | Dependencies |

    Rows with an invalid priority or size are dropped with a warning.
    """
    result = CatalogParseResult()
    seen: set[str] = set()

    for line_no, line in enumerate(content.splitlines(), start=1):
        line = line.strip()
        if not line.startswith("|"):
            continue

        cells = [c.strip() for c in line.strip("|").split("|")]
        if len(cells) < 6:
            continue
        if all(_SEPARATOR_CELL.match(c) for c in cells if c):
            continue
        if cells[0].upper() == "ID" or cells[1].lower() == "feature name":
            continue

        feature_id, name, raw_priority, raw_kind, raw_size, raw_deps = cells[:6]

        if feature_id.upper() == "TBD" or name.upper() == "TBD":
            continue

        try:
            priority = Priority(raw_priority.upper())
        except ValueError:
            _drop(result, f"line {line_no}: {feature_id} has invalid priority {raw_priority!r}")
            continue

        try:
            size = Size(raw_size.upper())
        except ValueError:
            _drop(result, f"line {line_no}: {feature_id} has invalid size {raw_size!r}")
            continue

        if feature_id in seen:
            _drop(result, f"line {line_no}: duplicate feature id {feature_id}")
            continue
        seen.add(feature_id)

        result.features.append(
            Feature(
                id=feature_id,
                name=name,
                priority=priority,
                size=size,
                kind=_parse_kind(raw_kind),
                dependencies=_split_dependencies(raw_deps),
            )
        )

    return result


def parse_catalog_yaml(content: str) -> CatalogParseResult:
    """Parse a YAML catalog.

    Accepts either a top-level list of feature mappings or a mapping with a
    ``features`` list. ``type``/``depends_on`` are accepted as aliases.

    Raises:
        CatalogError: If the document is not valid YAML or has no feature list
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise CatalogError(f"Invalid YAML catalog: {e}")

    if isinstance(data, dict):
        data = data.get("features")
    if data is None:
        return CatalogParseResult()
    if not isinstance(data, list):
        raise CatalogError("YAML catalog must be a list of features")

    result = CatalogParseResult()
    seen: set[str] = set()

    for index, entry in enumerate(data, start=1):
        if not isinstance(entry, dict):
            _drop(result, f"entry {index}: not a mapping")
            continue

        entry = dict(entry)
        if "type" in entry and "kind" not in entry:
            entry["kind"] = _parse_kind(str(entry.pop("type")))
        elif "kind" in entry:
            entry["kind"] = _parse_kind(str(entry["kind"]))
        if "depends_on" in entry and "dependencies" not in entry:
            entry["dependencies"] = entry.pop("depends_on")
        deps = entry.get("dependencies")
        if isinstance(deps, str):
            entry["dependencies"] = _split_dependencies(deps)
        elif deps is None:
            entry["dependencies"] = []
        for key in ("priority", "size"):
            if isinstance(entry.get(key), str):
                entry[key] = entry[key].strip().upper()
        entry.pop("dependent_count", None)

        try:
            feature = Feature(**entry)
        except ValidationError as e:
            label = entry.get("id", f"entry {index}")
            _drop(result, f"{label}: invalid feature ({e.error_count()} errors)")
            continue

        if feature.id in seen:
            _drop(result, f"entry {index}: duplicate feature id {feature.id}")
            continue
        seen.add(feature.id)
        result.features.append(feature)

    return result


def _parse_kind(raw: str) -> FeatureKind:
    if raw.strip().lower() == FeatureKind.COMMON.value:
        return FeatureKind.COMMON
    return FeatureKind.PROPRIETARY


def _split_dependencies(raw: str) -> list[str]:
    if raw.strip().lower() in _NO_DEPENDENCIES:
        return []
    return [d.strip() for d in raw.split(",") if d.strip()]


def _drop(result: CatalogParseResult, message: str) -> None:
    logger.warning(f"Dropped catalog entry: {message}")
    result.warnings.append(message)
