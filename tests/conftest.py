import numpy as np
import pytest

from template_align.modules.cloud.core.transformations import create_transformation_matrix


def _cube_surface(n=1500, seed=0, size=1.0):
    """Uniform random samples on the surface of an axis-aligned cube centred at the origin."""
    rng = np.random.default_rng(seed)
    half = size / 2.0
    faces = rng.integers(0, 6, size=n)
    uv = rng.uniform(-half, half, size=(n, 2))

    points = np.empty((n, 3))
    for i, face in enumerate(faces):
        axis = face // 2
        sign = 1.0 if face % 2 == 0 else -1.0
        others = [a for a in range(3) if a != axis]
        points[i, axis] = sign * half
        points[i, others] = uv[i]
    return points


def _sphere_surface(n=1500, seed=0, radius=0.5):
    rng = np.random.default_rng(seed)
    directions = rng.normal(size=(n, 3))
    directions /= np.linalg.norm(directions, axis=1, keepdims=True)
    return radius * directions


def _plane_grid(count=10, spacing=0.1):
    xs, ys = np.meshgrid(np.arange(count) * spacing, np.arange(count) * spacing)
    return np.column_stack([xs.ravel(), ys.ravel(), np.zeros(count * count)])


@pytest.fixture(scope="session")
def cube_surface():
    return _cube_surface


@pytest.fixture(scope="session")
def sphere_surface():
    return _sphere_surface


@pytest.fixture(scope="session")
def plane_grid():
    return _plane_grid


@pytest.fixture(scope="session")
def known_transform():
    """Arbitrary pose well away from identity"""
    return create_transformation_matrix(0.3, -0.2, 0.5, roll=25, pitch=-40, yaw=60)


@pytest.fixture(scope="session")
def feature_config():
    """Radii suited to the unit cube and sphere samples"""
    return {"normal_radius": 0.15, "feature_radius": 0.25}


@pytest.fixture(scope="session")
def alignment_config():
    return {
        "min_sample_distance": 0.2,
        "max_correspondence_distance": 1e-4,
        "sac_iterations": 200,
        "seed": 42,
    }
