"""
Layer-name cleanup and visibility filtering.

Layer names coming out of DWG files with an unexpected code page often decode
to strings of U+FFFD replacement characters. Those are collapsed into a
display-safe form so the layer list stays usable, and the same normalized name
is used to decide whether an entity is visible.
"""

from typing import Iterable, Optional
import re

from .entities import Entity


# Names made only of replacement characters, ASCII word characters,
# underscores, dashes and whitespace are considered garbled.
_GARBLED_NAME_RE = re.compile(r"^[�_\-\s\w]+$", re.ASCII)
_REPLACEMENT_RUN_RE = re.compile(r"�+")
_UNDERSCORE_RUN_RE = re.compile(r"_{2,}")

DEFAULT_LAYER = "0"


def normalize_layer_name(name) -> str:
    """
    Return a display-safe version of a layer name.

    Runs of replacement characters become "Layer", repeated underscores are
    collapsed and surrounding whitespace is stripped. Names containing any
    other character are returned as they are.
    """
    if not isinstance(name, str):
        return DEFAULT_LAYER

    if not _GARBLED_NAME_RE.match(name):
        return name

    cleaned = _REPLACEMENT_RUN_RE.sub("Layer", name)
    cleaned = _UNDERSCORE_RUN_RE.sub("_", cleaned)
    return cleaned.strip()


def available_layers(entities: Iterable[Entity]) -> list[str]:
    """Sorted unique normalized layer names of ``entities``."""
    return sorted({normalize_layer_name(e.layer) for e in entities})


def filter_visible(entities: Iterable[Entity], visible_layers: Optional[Iterable[str]]) -> list[Entity]:
    """
    Keep entities whose normalized layer is visible.

    ``visible_layers=None`` means every layer is visible, which is the state
    right after a drawing is loaded. An empty collection hides everything.
    Requested names are normalized too, so raw DXF layer names work.
    """
    entities = list(entities)
    if visible_layers is None:
        return entities

    visible = {normalize_layer_name(name) for name in visible_layers}
    return [e for e in entities if normalize_layer_name(e.layer) in visible]
