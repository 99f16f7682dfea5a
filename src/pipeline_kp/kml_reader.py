"""KMZ/KML route reader: turns a centreline LineString (or KP placemarks) into Waypoints.

KMZ is a ZIP archive containing KML.  KML coordinates are always WGS84
(EPSG:4326) in ``longitude,latitude[,altitude]`` order.  KML carries no
chainage, so it is computed as cumulative haversine length along the vertices.
"""

from __future__ import annotations

import io
import logging
import xml.etree.ElementTree as ET
import zipfile
from typing import BinaryIO

from .models import CoordinatePoint, RouteMetadata, Waypoint
from .segments import assign_chainage

logger = logging.getLogger(__name__)

KML_NS = "{http://www.opengis.net/kml/2.2}"


def read_kmz(
    file: str | bytes | BinaryIO,
    start_chainage: float = 0.0,
) -> tuple[list[Waypoint], RouteMetadata]:
    """Read a KMZ (or plain KML) route and return its waypoints with metadata.

    Args:
        file: Path to a .kmz/.kml file, raw bytes, or a file-like object.
        start_chainage: Chainage in metres of the first vertex.
    """
    data = _read_bytes(file)

    if _is_zip(data):
        kml_text = _extract_kml_from_kmz(data)
    else:
        kml_text = data.decode("utf-8", errors="replace")

    root = ET.fromstring(kml_text)
    points, geometry_type = _extract_coordinates(root)

    for p in points:
        p.lon = p.x
        p.lat = p.y

    waypoints = assign_chainage(points, start_chainage=start_chainage)
    metadata = RouteMetadata(
        source_type=f"KML_{geometry_type}",
        crs_epsg=4326,
        crs_name="WGS 84",
        is_projected=False,
        num_waypoints=len(waypoints),
        chainage_source="computed",
    )
    logger.info("KML route read: %d waypoints (%s)", len(waypoints), geometry_type)
    return waypoints, metadata


def _read_bytes(file: str | bytes | BinaryIO) -> bytes:
    if isinstance(file, bytes):
        return file
    if isinstance(file, str):
        with open(file, "rb") as f:
            return f.read()
    return file.read()


def _is_zip(data: bytes) -> bool:
    return data[:4] == b"PK\x03\x04"


def _extract_kml_from_kmz(data: bytes) -> str:
    """Extract doc.kml, or failing that the first .kml, from a KMZ archive."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        names = zf.namelist()
        kml_name = next((n for n in names if n.lower() == "doc.kml"), None)
        if kml_name is None:
            kml_name = next((n for n in names if n.lower().endswith(".kml")), None)
        if kml_name is None:
            raise ValueError("No .kml file found in KMZ archive")
        return zf.read(kml_name).decode("utf-8", errors="replace")


def _extract_coordinates(root: ET.Element) -> tuple[list[CoordinatePoint], str]:
    """Collect vertices from LineStrings, or from Points when there is no line.

    A route file usually holds the centreline plus assorted point markers; when
    a LineString is present the markers are ignored.
    """
    line_points: list[CoordinatePoint] = []
    marker_points: list[CoordinatePoint] = []

    for elem in root.iter():
        tag = elem.tag.replace(KML_NS, "")
        if tag not in ("LineString", "Point"):
            continue
        coords_elem = elem.find(f"{KML_NS}coordinates")
        if coords_elem is None or not coords_elem.text:
            continue
        target = line_points if tag == "LineString" else marker_points
        target.extend(_parse_coordinates_text(coords_elem.text))

    if line_points:
        points, geometry_type = line_points, "LINESTRING"
    else:
        points, geometry_type = marker_points, "POINT"

    for i, p in enumerate(points, start=1):
        p.index = i
    return points, geometry_type


def _parse_coordinates_text(text: str) -> list[CoordinatePoint]:
    """Parse a KML ``<coordinates>`` block: ``lon,lat[,alt] lon,lat[,alt] ...``."""
    points: list[CoordinatePoint] = []
    for token in text.strip().split():
        parts = token.split(",")
        if len(parts) < 2:
            continue
        points.append(CoordinatePoint(index=0, x=float(parts[0]), y=float(parts[1])))
    return points
