"""
ID extraction from backup snapshots, live Overpass answers and notes
documents.

Backups are GeoJSON FeatureCollections (optionally gzip-compressed) whose
features carry the boundary id in a property, by default "country_id".
IDs are normalized to int when they are numeric so that both sides compare
equal regardless of how they were serialized.
"""

import gzip
import json
import logging
import os
from pathlib import Path
from typing import Any, Hashable
from xml.etree import ElementTree

logger = logging.getLogger(__name__)


def normalize_id(value: Any) -> Hashable:
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return int(text)
    return text


def resolve_backup_file(path: str | os.PathLike) -> Path:
    """
    Return the backup file to read, accepting a .gz sibling.

    Raises:
        FileNotFoundError: If neither the file nor its .gz variant exists
    """
    path = Path(path)
    if path.exists():
        return path

    compressed = path.with_name(path.name + ".gz")
    if compressed.exists():
        return compressed

    raise FileNotFoundError(f"Backup file not found: {path} (or {compressed.name})")


def read_backup_ids(path: str | os.PathLike, id_property: str = "country_id") -> set[Hashable]:
    """
    Read boundary IDs from a GeoJSON backup

    Args:
        path: Backup file (.geojson or .geojson.gz)
        id_property: Feature property holding the id

    Returns:
        Set of IDs; features without the property are ignored

    Raises:
        FileNotFoundError: If the backup does not exist
        ValueError: If the file is not a GeoJSON FeatureCollection
    """
    backup_file = resolve_backup_file(path)
    opener = gzip.open if backup_file.suffix == ".gz" else open

    with opener(backup_file, "rt", encoding="utf-8") as f:
        try:
            document = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Backup {backup_file} is not valid JSON: {e}") from e

    features = document.get("features") if isinstance(document, dict) else None
    if not isinstance(features, list):
        raise ValueError(f"Backup {backup_file} is not a GeoJSON FeatureCollection")

    ids = set()
    skipped = 0
    for feature in features:
        properties = (feature.get("properties") or {}) if isinstance(feature, dict) else {}
        value = properties.get(id_property)
        if value is None or value == "":
            skipped += 1
            continue
        ids.add(normalize_id(value))

    if skipped:
        logger.debug(f"{skipped} feature(s) in {backup_file.name} have no {id_property}")
    logger.info(f"Read {len(ids)} ID(s) from backup {backup_file}")
    return ids


def read_id_list(path: str | os.PathLike) -> set[Hashable]:
    """Read one id per line, ignoring blanks and # comments."""
    ids = set()
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.split("#", 1)[0].strip()
            if line:
                ids.add(normalize_id(line))
    return ids


def extract_live_ids(response: dict[str, Any], element_type: str | None = "relation") -> set[Hashable]:
    """
    IDs of the elements in an Overpass JSON answer

    Args:
        response: Decoded Overpass answer with an "elements" list
        element_type: Only keep elements of this type (None keeps all)
    """
    ids = set()
    for element in response.get("elements", []):
        if element_type is not None and element.get("type") != element_type:
            continue
        if "id" in element:
            ids.add(normalize_id(element["id"]))
    return ids


def read_document_ids(path: str | os.PathLike, record_tag: str = "note") -> set[Hashable]:
    """
    IDs of the records in a notes document

    Planet dumps carry the id as an attribute of the record element, API
    answers as an <id> child element. Records without an id are ignored.

    Raises:
        ElementTree.ParseError: If the document is not well-formed XML
    """
    ids = set()
    for _event, element in ElementTree.iterparse(path, events=("end",)):
        if element.tag != record_tag:
            continue
        value = element.get("id")
        if value is None:
            value = element.findtext("id")
        if value is not None and value.strip():
            ids.add(normalize_id(value))
        element.clear()
    return ids
