"""Simplification of raw Figma API node trees.

The raw REST payloads are large and deeply nested. Clients only need the
structure, text, geometry and styling, so nodes are reduced to a small set
of keys and repeated style values are hoisted into ``globalVars.styles``
and referenced by id.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GlobalVars(BaseModel):
    """Values shared across nodes, referenced by id."""

    styles: dict[str, Any] = Field(default_factory=dict)


class SimplifiedDesign(BaseModel):
    """A Figma file or node selection in simplified form."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    last_modified: str = Field(default="", alias="lastModified")
    thumbnail_url: str = Field(default="", alias="thumbnailUrl")
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    global_vars: GlobalVars = Field(default_factory=GlobalVars, alias="globalVars")

    def metadata(self) -> dict[str, Any]:
        """Everything except nodes and globalVars."""
        return self.model_dump(by_alias=True, exclude={"nodes", "global_vars"})


class _StyleCollector:
    """Deduplicates style values into generated ids."""

    def __init__(self, global_vars: GlobalVars) -> None:
        self._styles = global_vars.styles
        self._ids: dict[str, str] = {}

    def ref(self, prefix: str, value: Any) -> str:
        key = json.dumps(value, sort_keys=True)
        style_id = self._ids.get(key)
        if style_id is None:
            digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:6].upper()
            style_id = f"{prefix}_{digest}"
            self._ids[key] = style_id
            self._styles[style_id] = value
        return style_id


def _color(paint: dict[str, Any]) -> str | dict[str, Any]:
    color = paint.get("color")
    if paint.get("type") == "SOLID" and color:
        r, g, b = (round(color.get(channel, 0) * 255) for channel in ("r", "g", "b"))
        alpha = color.get("a", 1) * paint.get("opacity", 1)
        if alpha >= 1:
            return f"#{r:02X}{g:02X}{b:02X}"
        return f"rgba({r}, {g}, {b}, {round(alpha, 2)})"
    simplified = {"type": paint.get("type")}
    if "imageRef" in paint:
        simplified["imageRef"] = paint["imageRef"]
    if "gradientStops" in paint:
        simplified["gradientStops"] = paint["gradientStops"]
    return simplified


def _visible_paints(paints: list[dict[str, Any]] | None) -> list[Any]:
    return [_color(paint) for paint in paints or [] if paint.get("visible", True)]


def _text_style(style: dict[str, Any]) -> dict[str, Any]:
    keys = ("fontFamily", "fontWeight", "fontSize", "lineHeightPx", "letterSpacing", "textAlignHorizontal")
    return {key: style[key] for key in keys if key in style}


def simplify_node(node: dict[str, Any], styles: _StyleCollector) -> dict[str, Any] | None:
    """Reduce one raw node (and its subtree). Returns None for hidden nodes."""
    if not node.get("visible", True):
        return None

    simplified: dict[str, Any] = {
        "id": node.get("id"),
        "name": node.get("name"),
        "type": node.get("type"),
    }

    if node.get("type") == "TEXT" and "characters" in node:
        simplified["text"] = node["characters"]
        if node.get("style"):
            simplified["textStyle"] = styles.ref("style", _text_style(node["style"]))

    box = node.get("absoluteBoundingBox")
    if box:
        simplified["boundingBox"] = {key: box.get(key) for key in ("x", "y", "width", "height")}

    fills = _visible_paints(node.get("fills"))
    if fills:
        simplified["fills"] = styles.ref("fill", fills)

    strokes = _visible_paints(node.get("strokes"))
    if strokes:
        stroke_style: dict[str, Any] = {"colors": strokes}
        if "strokeWeight" in node:
            stroke_style["strokeWeight"] = node["strokeWeight"]
        simplified["strokes"] = styles.ref("stroke", stroke_style)

    if node.get("opacity", 1) != 1:
        simplified["opacity"] = node["opacity"]

    if node.get("cornerRadius"):
        simplified["borderRadius"] = f"{node['cornerRadius']}px"

    children = [
        child
        for child in (simplify_node(raw, styles) for raw in node.get("children", []))
        if child is not None
    ]
    if children:
        simplified["children"] = children

    return simplified


def _simplify_roots(roots: list[dict[str, Any]], design: SimplifiedDesign) -> SimplifiedDesign:
    styles = _StyleCollector(design.global_vars)
    for root in roots:
        node = simplify_node(root, styles)
        if node is not None:
            design.nodes.append(node)
    return design


def simplify_file(data: dict[str, Any]) -> SimplifiedDesign:
    """Simplify a ``GET /files/:key`` response."""
    design = SimplifiedDesign(
        name=data.get("name", ""),
        last_modified=data.get("lastModified", ""),
        thumbnail_url=data.get("thumbnailUrl", ""),
    )
    document = data.get("document") or {}
    return _simplify_roots(document.get("children", []), design)


def simplify_nodes(data: dict[str, Any]) -> SimplifiedDesign:
    """Simplify a ``GET /files/:key/nodes`` response."""
    design = SimplifiedDesign(
        name=data.get("name", ""),
        last_modified=data.get("lastModified", ""),
        thumbnail_url=data.get("thumbnailUrl", ""),
    )
    roots = [
        entry["document"]
        for entry in (data.get("nodes") or {}).values()
        if entry and entry.get("document")
    ]
    return _simplify_roots(roots, design)
