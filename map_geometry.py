"""Bounding boxes and label centroids for SVG state outlines."""

import math
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

# Command letter followed by everything up to the next command; "e" is left
# out so exponents stay attached to their number.
_COMMAND_RE = re.compile(r"[a-df-z][^a-df-z]*", re.IGNORECASE)
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


@dataclass
class PathBounds:
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def center(self) -> Tuple[float, float]:
        return (self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2


def _parse_args(chunk: str) -> List[float]:
    return [float(n) for n in _NUMBER_RE.findall(chunk)]


def path_points(d: str) -> List[Tuple[float, float]]:
    """
    Walk the move/line commands of a path and return every vertex visited.
    Curves and arcs are not supported and are skipped.
    """
    points = []
    cur_x = cur_y = 0.0
    start_x = start_y = 0.0

    for cmd in _COMMAND_RE.findall(d or ""):
        kind = cmd[0]
        args = _parse_args(cmd[1:])

        if kind in "Mm":
            for i in range(0, len(args) - 1, 2):
                if kind == "M":
                    cur_x, cur_y = args[i], args[i + 1]
                else:
                    cur_x += args[i]
                    cur_y += args[i + 1]
                if i == 0:
                    start_x, start_y = cur_x, cur_y
                points.append((cur_x, cur_y))
        elif kind in "Ll":
            for i in range(0, len(args) - 1, 2):
                if kind == "L":
                    cur_x, cur_y = args[i], args[i + 1]
                else:
                    cur_x += args[i]
                    cur_y += args[i + 1]
                points.append((cur_x, cur_y))
        elif kind in "Hh":
            for value in args:
                cur_x = value if kind == "H" else cur_x + value
                points.append((cur_x, cur_y))
        elif kind in "Vv":
            for value in args:
                cur_y = value if kind == "V" else cur_y + value
                points.append((cur_x, cur_y))
        elif kind in "Zz":
            cur_x, cur_y = start_x, start_y

    return points


def path_bounding_box(d: str) -> Optional[PathBounds]:
    points = path_points(d)
    if not points:
        return None
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return PathBounds(min(xs), max(xs), min(ys), max(ys))


def path_centroid(d: str) -> Optional[Tuple[int, int]]:
    """Rounded centre of the path's bounding box, used as a label anchor."""
    bounds = path_bounding_box(d)
    if bounds is None:
        return None
    cx, cy = bounds.center()
    # half-up, not banker's rounding
    return math.floor(cx + 0.5), math.floor(cy + 0.5)


def calculate_centroids(paths: Dict[str, str]) -> Dict[str, Dict[str, int]]:
    centroids = {}
    for name, d in paths.items():
        centroid = path_centroid(d)
        if centroid is None:
            continue
        centroids[name] = {"x": centroid[0], "y": centroid[1]}
    return centroids
