"""
Drawing ingestion: DXF/DWG files to ``DXFData``.

ezdxf reads the file and every modelspace entity is turned into a loosely
typed record using the usual DXF JSON field names (``start``/``end``,
``center``/``radius``, ``vertices``, ``position`` ...). Records produced by a DWG decoder use different names;
``convert_dwg_database`` maps the most common ones onto the same schema.

Neither path validates geometry: anything odd simply becomes a record with
fewer usable fields, and the entity normalizer deals with it.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
import logging
import os
import shlex
import subprocess

import ezdxf
from ezdxf import recover
from ezdxf.lldxf.const import DXFStructureError


logger = logging.getLogger(__name__)

DWG_CONVERTER_ENV = "DWG_CONVERTER_CMD"
DWG_CONVERTER_TIMEOUT = 300


class DrawingLoadError(Exception):
    """The drawing could not be read or converted."""


@dataclass
class DXFData:
    """Decoded drawing as consumed by the room detector."""
    entities: list[dict] = field(default_factory=list)
    blocks: dict[str, Any] = field(default_factory=dict)
    header: dict[str, Any] = field(default_factory=dict)
    tables: dict[str, Any] = field(default_factory=dict)


def _xy(vec) -> dict[str, float]:
    return {"x": float(vec[0]), "y": float(vec[1])}


def _plain(value: Any) -> Any:
    """JSON-friendly copy of a header value."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if hasattr(value, "x") and hasattr(value, "y"):
        return {"x": float(value.x), "y": float(value.y)}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return str(value)


def entity_to_record(entity) -> dict[str, Any]:
    """Record for one ezdxf entity, in DXF-parser field naming."""
    dxftype = entity.dxftype()
    record: dict[str, Any] = {
        "type": dxftype,
        "layer": entity.dxf.get("layer", "0"),
        "handle": entity.dxf.get("handle"),
    }

    if dxftype == "LINE":
        record["start"] = _xy(entity.dxf.start)
        record["end"] = _xy(entity.dxf.end)
    elif dxftype in ("CIRCLE", "ARC"):
        record["center"] = _xy(entity.dxf.center)
        record["radius"] = float(entity.dxf.radius)
        if dxftype == "ARC":
            record["startAngle"] = float(entity.dxf.start_angle)
            record["endAngle"] = float(entity.dxf.end_angle)
    elif dxftype == "LWPOLYLINE":
        record["vertices"] = [{"x": float(x), "y": float(y)} for x, y in entity.get_points("xy")]
        record["closed"] = bool(entity.closed)
    elif dxftype == "POLYLINE":
        record["vertices"] = [_xy(p) for p in entity.points()]
        record["closed"] = bool(entity.is_closed)
    elif dxftype == "POINT":
        record["position"] = _xy(entity.dxf.location)
    elif dxftype == "TEXT":
        record["startPoint"] = _xy(entity.dxf.insert)
        record["text"] = entity.dxf.get("text", "")
    elif dxftype == "MTEXT":
        record["position"] = _xy(entity.dxf.insert)
        record["text"] = entity.plain_text()
    elif dxftype == "INSERT":
        record["position"] = _xy(entity.dxf.insert)
        record["name"] = entity.dxf.name
    elif dxftype == "ELLIPSE":
        record["center"] = _xy(entity.dxf.center)
        record["majorAxisEndpoint"] = _xy(entity.dxf.major_axis)
        record["axisRatio"] = float(entity.dxf.ratio)
    elif dxftype == "SPLINE":
        record["controlPoints"] = [_xy(p) for p in entity.control_points]
        record["fitPoints"] = [_xy(p) for p in entity.fit_points]

    return record


def _records(entities) -> list[dict]:
    records = []
    for entity in entities:
        try:
            records.append(entity_to_record(entity))
        except Exception:
            # One unreadable entity must not lose the whole drawing.
            logger.warning("Skipping unreadable %s entity", entity.dxftype(), exc_info=True)
    return records


def document_to_dxf_data(doc) -> DXFData:
    """Convert an ezdxf document into DXFData."""
    data = DXFData(entities=_records(doc.modelspace()))

    for block in doc.blocks:
        # Layout blocks (*Model_Space, *Paper_Space) and anonymous blocks
        # are not user blocks.
        if block.name.startswith("*"):
            continue
        data.blocks[block.name] = {
            "name": block.name,
            "position": _xy(block.block.dxf.base_point),
            "entities": _records(block),
        }

    for name in doc.header.varnames():
        data.header[name] = _plain(doc.header.get(name))

    data.tables["layers"] = {
        layer.dxf.name: {
            "color": layer.color,
            "on": layer.is_on(),
            "frozen": layer.is_frozen(),
        }
        for layer in doc.layers
    }
    return data


def read_document(dxf_path: Path):
    """
    Read a DXF with ezdxf, falling back to its recover mode.

    Raises DrawingLoadError when neither works.
    """
    try:
        return ezdxf.readfile(str(dxf_path))
    except IOError as exc:
        raise DrawingLoadError(f"Not a DXF file or a generic I/O error: {dxf_path}") from exc
    except DXFStructureError:
        logger.warning("Invalid DXF structure in %s, trying recover mode", dxf_path)

    try:
        doc, auditor = recover.readfile(str(dxf_path))
    except (IOError, DXFStructureError) as exc:
        raise DrawingLoadError(f"Invalid or corrupted DXF file: {dxf_path}") from exc
    if auditor.has_errors:
        logger.warning("Recovered %s with %d unfixed errors", dxf_path, len(auditor.errors))
    return doc


def load_dxf(dxf_path: Path) -> DXFData:
    return document_to_dxf_data(read_document(dxf_path))


def _converter_command(dwg_path: Path, dxf_path: Path) -> str:
    template = os.environ.get(DWG_CONVERTER_ENV, "").strip()
    if not template:
        raise DrawingLoadError(f"{DWG_CONVERTER_ENV} is not set, so DWG uploads cannot be read.")
    try:
        return template.format(input=shlex.quote(str(dwg_path)), output=shlex.quote(str(dxf_path)))
    except (KeyError, IndexError) as exc:
        raise DrawingLoadError(
            f"{DWG_CONVERTER_ENV} may only use the {{input}} and {{output}} placeholders"
        ) from exc


def convert_dwg_to_dxf(dwg_path: Path, dxf_path: Path) -> Path:
    """
    Run the configured DWG converter and return the DXF it wrote.

    The command comes from the ``DWG_CONVERTER_CMD`` environment variable,
    e.g. ``dwg2dxf {input} {output}``. Paths are shell-quoted before they
    are substituted.
    """
    command = _converter_command(dwg_path, dxf_path)
    logger.info("Converting %s to DXF", dwg_path.name)
    try:
        subprocess.run(
            command, shell=True, check=True, capture_output=True, text=True, timeout=DWG_CONVERTER_TIMEOUT
        )
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or exc.stdout or "").strip() or f"exit status {exc.returncode}"
        raise DrawingLoadError(f"Converter could not turn {dwg_path.name} into DXF: {detail}") from exc
    except subprocess.TimeoutExpired as exc:
        raise DrawingLoadError(
            f"Converter gave up on {dwg_path.name} after {DWG_CONVERTER_TIMEOUT}s"
        ) from exc

    if not dxf_path.is_file():
        raise DrawingLoadError(f"Converter exited cleanly but wrote no {dxf_path.name}")
    return dxf_path


def drawing_dxf_path(path: Path) -> Path:
    """DXF file for ``path``, converting a DWG next to it first."""
    if path.suffix.lower() == ".dwg":
        return convert_dwg_to_dxf(path, path.with_suffix(".dxf"))
    return path


def load_drawing(path: Path) -> DXFData:
    """Load a DXF or DWG drawing."""
    return load_dxf(drawing_dxf_path(path))


def convert_dwg_record(raw: Mapping[str, Any], index: int) -> dict[str, Any]:
    """
    Map one DWG-decoder record onto the DXF-parser schema.

    The original fields are all kept; the canonical names are added next to
    them.
    """
    record = dict(raw)
    record["type"] = raw.get("type") or raw.get("objectType") or "UNKNOWN"
    record["layer"] = raw.get("layer") or raw.get("layerName") or "0"
    record["handle"] = raw.get("handle") or raw.get("objectHandle") or f"dwg_{index}"

    dwg_type = raw.get("type")
    if dwg_type == "LINE" and raw.get("startPoint") and raw.get("endPoint"):
        record["start"] = raw["startPoint"]
        record["end"] = raw["endPoint"]
    if dwg_type == "INSERT" and raw.get("insertionPoint"):
        record["position"] = raw["insertionPoint"]
    return record


def convert_dwg_database(database: Mapping[str, Any]) -> DXFData:
    """Build DXFData from the database object a DWG decoder returns."""
    entities = database.get("entities")
    if entities is None:
        entities = (database.get("modelSpace") or {}).get("entities") or []
    return DXFData(
        entities=[convert_dwg_record(raw, i) for i, raw in enumerate(entities) if isinstance(raw, Mapping)],
        blocks=dict(database.get("blocks") or {}),
        header=dict(database.get("header") or {}),
        tables=dict(database.get("tables") or {}),
    )
