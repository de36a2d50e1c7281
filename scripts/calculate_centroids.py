"""
Print label centroids for the state outlines of an SVG map.

Usage:
    python scripts/calculate_centroids.py paths.json > centroids.json

`paths.json` maps state names to SVG path `d` strings.
"""
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from map_geometry import calculate_centroids  # noqa: E402


def main(argv):
    if len(argv) != 2:
        print(__doc__.strip(), file=sys.stderr)
        return 2

    paths = json.loads(Path(argv[1]).read_text(encoding="utf-8"))
    centroids = calculate_centroids(paths)
    for name in paths:
        if name not in centroids:
            print(f"skipped {name}: no drawable points", file=sys.stderr)

    print(json.dumps(centroids, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
