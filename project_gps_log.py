"""Project a logged GPS track onto a reference route: add KP columns, export CSV, plot off-route distance.

Input CSV needs ``latitude`` and ``longitude`` columns (``lat``/``lon`` also
accepted); any other columns are carried through to the output.
"""

import argparse
import csv
import logging
from pathlib import Path

import matplotlib.pyplot as plt

from pipeline_kp import ConfidenceBand, RouteProjector, get_route
from pipeline_kp.config import settings

logger = logging.getLogger("project_gps_log")

OUTPUT_DIR = Path(__file__).parent


def read_fixes(path: Path) -> list[dict]:
    with open(path, newline="") as f:
        rows = list(csv.DictReader(f))
    fixes = []
    for i, row in enumerate(rows, start=1):
        lat = row.get("latitude", row.get("lat"))
        lon = row.get("longitude", row.get("lon"))
        if lat in (None, "") or lon in (None, ""):
            logger.warning("Row %d has no coordinates, skipped", i)
            continue
        fixes.append({**row, "latitude": float(lat), "longitude": float(lon)})
    return fixes


def project_fixes(fixes: list[dict], projector: RouteProjector) -> list[dict]:
    rows = []
    for fix in fixes:
        result = projector.project(fix["latitude"], fix["longitude"])
        rows.append(
            {
                **fix,
                "kp": result.kp_formatted,
                "chainage_m": round(result.chainage_metres, 1),
                "off_route_m": round(result.off_route_distance_metres, 1),
                "confidence": result.confidence_band.value,
                "segment": f"{result.segment_start.name} -> {result.segment_end.name}",
            }
        )
    return rows


def export_csv(rows: list[dict], path: Path) -> None:
    """Write projected fixes to a CSV file."""
    fieldnames = list(rows[0].keys())
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    logger.info("CSV exported: %s", path)


def plot_offset_profile(rows: list[dict], path: Path, title: str) -> None:
    """Plot off-route distance against KP, with the confidence thresholds marked."""
    kp_km = [r["chainage_m"] / 1000 for r in rows]
    offsets = [r["off_route_m"] for r in rows]
    colours = {
        ConfidenceBand.ON_ROUTE.value: "seagreen",
        ConfidenceBand.NEAR_ROUTE.value: "orange",
        ConfidenceBand.OFF_ROUTE.value: "crimson",
    }

    fig, ax = plt.subplots(figsize=(14, 5))
    ax.scatter(kp_km, offsets, s=8, c=[colours[r["confidence"]] for r in rows])
    ax.axhline(settings.on_route_threshold_m, color="seagreen", linewidth=0.8, linestyle="--", label="On ROW")
    ax.axhline(settings.near_route_threshold_m, color="orange", linewidth=0.8, linestyle="--", label="Near ROW")
    ax.set_xlabel("KP (km)")
    ax.set_ylabel("Distance from centreline (m)")
    ax.set_yscale("symlog", linthresh=settings.on_route_threshold_m)
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    ax.legend()
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    logger.info("Plot saved: %s", path)


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("input_csv", type=Path)
    parser.add_argument("--route", default=settings.default_route, choices=["main", "north"])
    parser.add_argument("--output-dir", type=Path, default=OUTPUT_DIR)
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(levelname)s | %(name)s | %(message)s",
    )

    projector = RouteProjector(get_route(args.route))
    fixes = read_fixes(args.input_csv)
    if not fixes:
        logger.error("No usable GPS fixes in %s", args.input_csv)
        return

    rows = project_fixes(fixes, projector)
    counts = {band.value: sum(1 for r in rows if r["confidence"] == band.value) for band in ConfidenceBand}
    logger.info("Projected %d fixes onto route %r: %s", len(rows), args.route, counts)

    stem = args.input_csv.stem
    export_csv(rows, args.output_dir / f"{stem}_kp.csv")
    plot_offset_profile(rows, args.output_dir / f"{stem}_offset.png", title=f"Off-ROW distance: {stem} ({args.route} route)")


if __name__ == "__main__":
    main()
