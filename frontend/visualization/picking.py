"""
Ray Picking

Responsibility:
Screen coordinates -> world ray -> nearest point primitive under the cursor.
Pure numpy; no scene state.
"""

import math
from typing import Optional, Tuple

import numpy as np

from engine.camera import CameraPose

WORLD_UP = np.array([0.0, 1.0, 0.0])


def camera_basis(pose: CameraPose) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Forward, right and up unit vectors of a look-at camera."""
    position = np.asarray(pose.position, dtype=float)
    forward = np.asarray(pose.target, dtype=float) - position
    norm = np.linalg.norm(forward)
    if norm == 0:
        forward = np.array([0.0, 0.0, -1.0])
    else:
        forward = forward / norm

    right = np.cross(forward, WORLD_UP)
    if np.linalg.norm(right) < 1e-9:
        # looking straight up or down
        right = np.array([1.0, 0.0, 0.0])
    right = right / np.linalg.norm(right)
    up = np.cross(right, forward)
    return forward, right, up


def screen_ray(
    x: float,
    y: float,
    pose: CameraPose,
    viewport: Tuple[int, int]
) -> Tuple[np.ndarray, np.ndarray]:
    """Origin and unit direction of the ray through pixel (x, y)."""
    width, height = viewport
    ndc_x = (x / width) * 2.0 - 1.0
    ndc_y = 1.0 - (y / height) * 2.0

    forward, right, up = camera_basis(pose)
    tan_half = math.tan(math.radians(pose.fov) / 2.0)
    aspect = width / height

    direction = forward + right * (ndc_x * tan_half * aspect) + up * (ndc_y * tan_half)
    return np.asarray(pose.position, dtype=float), direction / np.linalg.norm(direction)


def project_to_screen(
    point,
    pose: CameraPose,
    viewport: Tuple[int, int]
) -> Optional[Tuple[float, float]]:
    """Pixel coordinates of a world point, or None if it is behind the camera."""
    width, height = viewport
    forward, right, up = camera_basis(pose)
    offset = np.asarray(point, dtype=float) - np.asarray(pose.position, dtype=float)
    depth = float(np.dot(offset, forward))
    if depth <= 0:
        return None

    tan_half = math.tan(math.radians(pose.fov) / 2.0)
    aspect = width / height
    ndc_x = float(np.dot(offset, right)) / (depth * tan_half * aspect)
    ndc_y = float(np.dot(offset, up)) / (depth * tan_half)
    return (ndc_x + 1.0) / 2.0 * width, (1.0 - ndc_y) / 2.0 * height


def pick_nearest(
    origin: np.ndarray,
    direction: np.ndarray,
    positions: np.ndarray,
    radii: np.ndarray
) -> Optional[int]:
    """
    Index of the closest primitive whose bounding sphere the ray enters.

    positions: (N, 3), radii: (N,). Primitives behind the origin never hit.
    """
    if positions.size == 0:
        return None
    offsets = positions - origin
    along = offsets @ direction
    closest = offsets - np.outer(along, direction)
    miss = np.linalg.norm(closest, axis=1)
    hits = np.nonzero((along > 0) & (miss <= radii))[0]
    if hits.size == 0:
        return None
    return int(hits[np.argmin(along[hits])])
