"""Route shapefile reader with CRS auto-detection.

A route arrives either as a POLYLINE centreline or as a POINT layer of KP
markers.  Projected coordinates are reprojected to WGS84 lon/lat with pyproj.
For POINT layers the chainage can come from a KP attribute; otherwise it is
the cumulative haversine length along the vertices.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Literal

import shapefile
from pyproj import CRS, Transformer

from .models import CoordinatePoint, RouteMetadata, Waypoint
from .segments import assign_chainage

logger = logging.getLogger(__name__)

KP_FIELD_CANDIDATES = ("KP", "KP_M", "CHAINAGE", "CHAINAGE_M", "STATION")


def detect_crs(prj_source: str | Path | None) -> tuple[int | None, str | None, bool | None]:
    """Parse CRS from a .prj WKT string or file path.

    Returns (epsg_code, crs_name, is_projected) or (None, None, None) on failure.
    """
    if prj_source is None:
        return None, None, None

    wkt = prj_source if isinstance(prj_source, str) else ""
    if isinstance(prj_source, Path):
        if not prj_source.exists():
            return None, None, None
        wkt = prj_source.read_text()

    if not wkt.strip():
        return None, None, None

    try:
        crs = CRS.from_wkt(wkt)
    except Exception:
        logger.warning("Could not parse .prj WKT; treating CRS as unknown")
        return None, None, None

    return crs.to_epsg(), crs.name, crs.is_projected


def read_route_shapefile(
    shp_path: str | Path | None = None,
    *,
    shp_file: BinaryIO | None = None,
    shx_file: BinaryIO | None = None,
    dbf_file: BinaryIO | None = None,
    prj_wkt: str | None = None,
    kp_field: str | None = None,
    kp_units: Literal["m", "km"] = "m",
    start_chainage: float = 0.0,
) -> tuple[list[Waypoint], RouteMetadata]:
    """Read a route shapefile and return its waypoints with metadata.

    Supports two modes:
    - File path: pass ``shp_path`` (the .prj is auto-discovered)
    - File objects: pass ``shp_file``, ``shx_file``, ``dbf_file``, and optionally ``prj_wkt``

    ``kp_field`` names the chainage attribute of a POINT layer; when omitted a
    field called KP, KP_M, CHAINAGE, CHAINAGE_M or STATION is used if present.
    """
    if shp_path is not None:
        shp_path = Path(shp_path)
        sf = shapefile.Reader(str(shp_path))
        prj_path = shp_path.with_suffix(".prj")
        epsg, crs_name, is_projected = detect_crs(prj_path if prj_path.exists() else None)
    elif shp_file is not None:
        sf = shapefile.Reader(shp=shp_file, shx=shx_file, dbf=dbf_file)
        epsg, crs_name, is_projected = detect_crs(prj_wkt)
    else:
        raise ValueError("Provide either shp_path or shp_file")

    with sf:
        shape_type_name = sf.shapeTypeName
        upper = shape_type_name.upper()
        fields = [f[0] for f in sf.fields[1:]]  # skip DeletionFlag

        if "POLYGON" in upper:
            raise ValueError(f"Unsupported shape type: {shape_type_name}. POLYGON shapes are not supported.")

        is_point_layer = "POINT" in upper
        if kp_field is None and is_point_layer:
            kp_field = next((f for f in fields if f.upper() in KP_FIELD_CANDIDATES), None)
        elif kp_field is not None and kp_field not in fields:
            raise ValueError(f"KP field {kp_field!r} not found; available fields: {', '.join(fields)}")

        points = _extract_points(sf, upper, kp_field if is_point_layer else None, kp_units)

    if is_projected and epsg is not None:
        _populate_lonlat(points, epsg)
    else:
        if any(abs(p.x) > 180 or abs(p.y) > 90 for p in points):
            raise ValueError("Coordinates look projected but no usable .prj was supplied")
        for p in points:
            p.lon = p.x
            p.lat = p.y

    waypoints = assign_chainage(points, start_chainage=start_chainage)
    chainage_source = "attribute" if points and all(p.kp is not None for p in points) else "computed"

    metadata = RouteMetadata(
        source_type=shape_type_name,
        crs_epsg=epsg,
        crs_name=crs_name,
        is_projected=is_projected,
        num_waypoints=len(waypoints),
        chainage_source=chainage_source,
        fields=fields,
    )
    logger.info(
        "Shapefile route read: %d waypoints, %s, chainage %s", len(waypoints), shape_type_name, chainage_source
    )
    return waypoints, metadata


def _extract_points(
    sf: shapefile.Reader, upper_type: str, kp_field: str | None, kp_units: str
) -> list[CoordinatePoint]:
    """Extract CoordinatePoints from shapes based on shape type."""
    points: list[CoordinatePoint] = []
    idx = 1
    scale = 1000.0 if kp_units == "km" else 1.0

    if "POINT" in upper_type:
        for shape_rec in sf.iterShapeRecords():
            x, y = shape_rec.shape.points[0]
            kp = None
            if kp_field is not None:
                raw = shape_rec.record[kp_field]
                kp = float(raw) * scale if raw not in (None, "") else None
            points.append(CoordinatePoint(index=idx, x=x, y=y, kp=kp))
            idx += 1
    elif "POLYLINE" in upper_type or upper_type in ("ARC", "ARCZ", "ARCM"):
        # all vertices across all records and parts, in file order
        for shape in sf.shapes():
            for x, y in shape.points:
                points.append(CoordinatePoint(index=idx, x=x, y=y))
                idx += 1
    else:
        raise ValueError(f"Unsupported shape type: {upper_type}")

    return points


def _populate_lonlat(points: list[CoordinatePoint], source_epsg: int) -> None:
    """Transform projected x/y to WGS84 lon/lat in-place."""
    transformer = Transformer.from_crs(f"EPSG:{source_epsg}", "EPSG:4326", always_xy=True)
    xs = [p.x for p in points]
    ys = [p.y for p in points]
    lons, lats = transformer.transform(xs, ys)
    for p, lon, lat in zip(points, lons, lats):
        p.lon = lon
        p.lat = lat
