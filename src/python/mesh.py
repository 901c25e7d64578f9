"""3D model conversion.

EasyEDA serves two mesh encodings per model: a Wavefront OBJ with inline
materials (converted to VRML 2.0 here) and a STEP file (passed through after
a header check).
"""

import logging
from dataclasses import dataclass, field

from errors import MeshError

logger = logging.getLogger(__name__)

# OBJ vertices are in mm; KiCad VRML units are 0.1 inch
VRML_SCALE = 1 / 2.54
STEP_MAGIC = b"ISO-10303-21"
DEFAULT_COLOR = (0.8, 0.8, 0.8)


@dataclass
class Material:
    name: str
    diffuse: tuple[float, float, float] = DEFAULT_COLOR
    specular: tuple[float, float, float] = (0.0, 0.0, 0.0)
    transparency: float = 0.0


@dataclass
class MeshGroup:
    material: Material
    faces: list[list[int]] = field(default_factory=list)


def _color(values: list[str]) -> tuple[float, float, float]:
    try:
        r, g, b = (float(v) for v in values[:3])
    except ValueError:
        return DEFAULT_COLOR
    return (r, g, b)


def _face_indices(tokens: list[str], vertex_count: int) -> list[int]:
    """Zero-based vertex indices of an OBJ face (``v``, ``v/vt`` or ``v/vt/vn``)."""
    indices = []
    for token in tokens:
        raw = token.split("/", 1)[0]
        try:
            index = int(raw)
        except ValueError:
            raise MeshError(f"Bad face index: {token!r}")
        # Negative indices count back from the last vertex
        indices.append(index - 1 if index > 0 else vertex_count + index)
    return indices


def parse_obj(text: str) -> tuple[list[tuple[float, float, float]], list[MeshGroup]]:
    materials: dict[str, Material] = {}
    vertices: list[tuple[float, float, float]] = []
    groups: list[MeshGroup] = []
    current_material: Material | None = None
    current_group: MeshGroup | None = None

    for line in text.splitlines():
        parts = line.split()
        if not parts or parts[0].startswith("#"):
            continue
        keyword, args = parts[0], parts[1:]

        if keyword == "newmtl" and args:
            current_material = Material(name=args[0])
            materials[args[0]] = current_material
        elif keyword == "Kd" and current_material is not None:
            current_material.diffuse = _color(args)
        elif keyword == "Ks" and current_material is not None:
            current_material.specular = _color(args)
        elif keyword == "d" and current_material is not None and args:
            try:
                current_material.transparency = 1.0 - float(args[0])
            except ValueError:
                pass
        elif keyword == "v" and len(args) >= 3:
            try:
                x, y, z = (float(a) for a in args[:3])
            except ValueError:
                raise MeshError(f"Bad vertex: {line!r}")
            vertices.append((x, y, z))
        elif keyword == "usemtl" and args:
            material = materials.get(args[0], Material(name=args[0]))
            current_group = MeshGroup(material=material)
            groups.append(current_group)
        elif keyword == "f" and len(args) >= 3:
            if current_group is None:
                current_group = MeshGroup(material=Material(name="default"))
                groups.append(current_group)
            current_group.faces.append(_face_indices(args, len(vertices)))

    return vertices, [g for g in groups if g.faces]


def _fmt(value: float) -> str:
    return f"{value:.4f}".rstrip("0").rstrip(".") or "0"


def _shape(vertices: list[tuple[float, float, float]], group: MeshGroup) -> str:
    # Each shape carries only the vertices its faces use, reindexed from zero
    remap: dict[int, int] = {}
    points: list[str] = []
    for face in group.faces:
        for index in face:
            if index not in remap:
                if not 0 <= index < len(vertices):
                    raise MeshError(f"Face references missing vertex {index + 1}")
                remap[index] = len(points)
                x, y, z = vertices[index]
                points.append(" ".join(_fmt(c * VRML_SCALE) for c in (x, y, z)))
    coord_index = ",".join(
        ",".join(str(remap[i]) for i in face) + ",-1" for face in group.faces
    )
    m = group.material
    return (
        "Shape {\n"
        "  appearance Appearance {\n"
        "    material Material {\n"
        f"      diffuseColor {' '.join(_fmt(c) for c in m.diffuse)}\n"
        f"      specularColor {' '.join(_fmt(c) for c in m.specular)}\n"
        "      ambientIntensity 0.2\n"
        f"      transparency {_fmt(m.transparency)}\n"
        "      shininess 0.5\n"
        "    }\n"
        "  }\n"
        "  geometry IndexedFaceSet {\n"
        "    ccw TRUE\n"
        "    solid FALSE\n"
        "    coord Coordinate {\n"
        f"      point [{', '.join(points)}]\n"
        "    }\n"
        f"    coordIndex [{coord_index}]\n"
        "  }\n"
        "}\n"
    )


def obj_to_wrl(data: bytes) -> str:
    """Convert an OBJ mesh with inline materials to VRML 2.0 text."""
    text = data.decode("utf-8", errors="replace")
    vertices, groups = parse_obj(text)
    if not vertices or not groups:
        raise MeshError("OBJ model has no vertices or faces")
    logger.debug("OBJ model: %d vertices, %d material groups", len(vertices), len(groups))
    return "#VRML V2.0 utf8\n" + "".join(_shape(vertices, g) for g in groups)


def validate_step(data: bytes) -> bytes:
    if not data or not data.lstrip().startswith(STEP_MAGIC):
        raise MeshError("STEP model is empty or has no ISO-10303-21 header")
    return data
