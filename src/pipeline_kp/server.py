"""FastAPI server for KP sync and route import."""

from __future__ import annotations

import csv
import io
import logging
import tempfile
import zipfile
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .chainage import format_chainage, parse_chainage
from .config import settings
from .errors import InvalidInputError, UnknownRouteError
from .kml_reader import read_kmz
from .models import ImportedRoute, KPCheck, ProjectionResult, Waypoint
from .projection import RouteProjector, check_kp_against_gps
from .reader import read_route_shapefile
from .routes import ROUTES, get_route

logger = logging.getLogger(__name__)

app = FastAPI(title="Pipeline KP", version="0.1.0")

COMPANION_EXTS = {".shp", ".shx", ".dbf", ".prj"}

# routes are immutable, so one projector per reference route is enough
_projectors: dict[str, RouteProjector] = {}


class GPSFix(BaseModel):
    latitude: float
    longitude: float
    route: str = settings.default_route


class KPCheckRequest(GPSFix):
    kp: str
    tolerance_m: float | None = None


def _projector(name: str) -> RouteProjector:
    if name not in _projectors:
        try:
            _projectors[name] = RouteProjector(get_route(name))
        except UnknownRouteError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _projectors[name]


@app.post("/project", response_model=ProjectionResult)
def project_fix(fix: GPSFix):
    """Project a GPS fix onto a reference route."""
    projector = _projector(fix.route)
    try:
        return projector.project(fix.latitude, fix.longitude)
    except InvalidInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.post("/check-kp", response_model=KPCheck)
def check_kp(req: KPCheckRequest):
    """Check a hand-entered KP against where the GPS fix puts the inspector."""
    projector = _projector(req.route)
    try:
        return check_kp_against_gps(req.kp, req.latitude, req.longitude, projector, req.tolerance_m)
    except InvalidInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.get("/chainage/format")
def format_kp(metres: float):
    return {"metres": metres, "kp": format_chainage(metres)}


@app.get("/chainage/parse")
def parse_kp(text: str):
    return {"text": text, "metres": parse_chainage(text)}


@app.get("/routes")
def list_routes():
    return {"routes": sorted(ROUTES)}


@app.get("/routes/{name}", response_model=list[Waypoint])
def route_waypoints(name: str):
    return list(_projector(name).waypoints)


@app.post("/routes/import")
async def import_route(
    files: list[UploadFile],
    format: str = Query("json", pattern="^(csv|json)$"),
    start_chainage: float = Query(0.0, ge=0),
):
    """Read a route centreline from uploaded KMZ/KML or shapefile components.

    Accepts:
    - A single .kmz or .kml file
    - A single .zip containing shapefile components
    - Multiple files (.shp, .shx, .dbf, and optionally .prj)
    """
    filename = (files[0].filename or "").lower() if len(files) == 1 else ""

    try:
        if filename.endswith((".kmz", ".kml")):
            waypoints, metadata = await _handle_kmz(files[0], start_chainage)
        elif filename.endswith(".zip"):
            waypoints, metadata = await _handle_zip(files[0], start_chainage)
        else:
            waypoints, metadata = await _handle_multi_file(files, start_chainage)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if len(waypoints) < 2:
        raise HTTPException(status_code=400, detail="Route needs at least 2 vertices")

    if format == "json":
        return ImportedRoute(metadata=metadata, waypoints=waypoints)

    return _waypoints_to_csv_response(waypoints)


async def _handle_zip(upload: UploadFile, start_chainage: float):
    """Extract a shapefile from a zip archive and read it."""
    content = await upload.read()
    with tempfile.TemporaryDirectory() as extract_dir:
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as zf:
                zf.extractall(extract_dir)
        except zipfile.BadZipFile as exc:
            raise HTTPException(status_code=400, detail="Upload is not a valid zip archive") from exc

        shp_files = list(Path(extract_dir).rglob("*.shp"))
        if not shp_files:
            raise HTTPException(status_code=400, detail="No .shp file found in zip archive")

        return read_route_shapefile(shp_files[0], start_chainage=start_chainage)


async def _handle_kmz(upload: UploadFile, start_chainage: float):
    content = await upload.read()
    return read_kmz(io.BytesIO(content), start_chainage=start_chainage)


async def _handle_multi_file(files: list[UploadFile], start_chainage: float):
    """Read a shapefile from its uploaded component files."""
    file_map: dict[str, bytes] = {}
    for f in files:
        ext = Path(f.filename or "").suffix.lower()
        if ext in COMPANION_EXTS:
            file_map[ext] = await f.read()

    if ".shp" not in file_map:
        raise HTTPException(status_code=400, detail="Missing required .shp file")

    shp_file = io.BytesIO(file_map[".shp"])
    shx_file = io.BytesIO(file_map[".shx"]) if ".shx" in file_map else None
    dbf_file = io.BytesIO(file_map[".dbf"]) if ".dbf" in file_map else None

    prj_wkt = None
    if ".prj" in file_map:
        prj_wkt = file_map[".prj"].decode("utf-8", errors="replace")

    return read_route_shapefile(
        shp_file=shp_file,
        shx_file=shx_file,
        dbf_file=dbf_file,
        prj_wkt=prj_wkt,
        start_chainage=start_chainage,
    )


def _waypoints_to_csv_response(waypoints: list[Waypoint]) -> StreamingResponse:
    """Convert waypoints to a streaming CSV response."""
    fieldnames = ["name", "latitude", "longitude", "chainage", "kp"]

    def generate():
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=fieldnames)
        writer.writeheader()
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for wp in waypoints:
            writer.writerow({**wp.model_dump(), "kp": format_chainage(wp.chainage)})
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    return StreamingResponse(
        generate(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=route_waypoints.csv"},
    )
