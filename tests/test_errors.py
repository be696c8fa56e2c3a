"""A bunch of tests for some expected errors."""

import pytest
import torch

import skicp as ski
from skicp.errors import (
    DegenerateHessianError,
    EmptyPointCloudError,
    InputTypeError,
    NoCorrespondenceError,
    NotFittedError,
    ShapeError,
)

from .utils import create_ellipsoid, create_point_cloud


def test_errors_not_fitted():
    icp = ski.PointToPlaneICP()
    model = create_ellipsoid(n_points=100)

    with pytest.raises(NotFittedError, match="set_model"):
        icp.align(model)

    icp.set_model(model)
    with pytest.raises(NotFittedError, match="aligned"):
        icp.transform(model)

    finder = ski.ClosestPointFinder()
    with pytest.raises(NotFittedError):
        finder.query(model)


def test_errors_empty_clouds():
    icp = ski.PointToPlaneICP()
    empty = torch.zeros(0, 3, dtype=ski.float_dtype)

    with pytest.raises(EmptyPointCloudError):
        icp.set_model(empty)

    icp.set_model(create_ellipsoid(n_points=100))
    with pytest.raises(EmptyPointCloudError):
        icp.align(empty)

    with pytest.raises(EmptyPointCloudError):
        ski.ClosestPointFinder().initialize(empty)

    with pytest.raises(EmptyPointCloudError):
        ski.estimate_normals(torch.rand(2, 3))


def test_errors_shapes():
    icp = ski.PointToPlaneICP()
    model = create_ellipsoid(n_points=100)

    with pytest.raises(ShapeError):
        icp.set_model(model, normals=model[:50])

    finder = ski.ClosestPointFinder().initialize(model)
    with pytest.raises(ShapeError):
        ski.AlignmentContext(
            model_points=model,
            model_normals=model[:10],
            finder=finder,
            scene_points=model,
        )


def test_errors_wrong_types():
    icp = ski.PointToPlaneICP()

    with pytest.raises(InputTypeError):
        icp.set_model("not a point cloud")

    with pytest.raises(InputTypeError):
        icp.set_model(torch.rand(10, 2))

    with pytest.raises(InputTypeError):
        ski.PointToPlaneICP(iterations="ten")

    with pytest.raises(InputTypeError):
        ski.PointToPlaneICP(optimizer="gauss_newton")

    with pytest.raises(InputTypeError):
        ski.state_to_rotation_translation(torch.zeros(5))


@pytest.mark.parametrize(
    "parameters",
    [
        {"grid_size": -1.0},
        {"distance_threshold": 0},
        {"iterations": -1},
        {"initial_damping": 0.0},
        {"damping_factor": 1.0},
        {"huber_scale": -0.3},
        {"inner_iterations": 0},
        {"k_neighbors": 2},
        {"leaf_size": 0},
    ],
)
def test_errors_invalid_parameters(parameters):
    with pytest.raises(ValueError, match=next(iter(parameters))):
        ski.PointToPlaneICP(**parameters)


def test_degenerate_hessian():
    """A planar scene does not constrain the pose."""
    points, normals = create_point_cloud(
        n_points=10, f=lambda x, y: 0 * (x + y), normals=True
    )
    icp = ski.PointToPlaneICP(optimizer="levenberg_marquardt", iterations=5)
    icp.set_model(points, normals=normals)

    with pytest.raises(DegenerateHessianError):
        icp.align(points)


def test_no_correspondence():
    """Every scene point is beyond the distance threshold."""
    model = create_ellipsoid(n_points=100)
    icp = ski.PointToPlaneICP(optimizer="huber_quaternion", iterations=5)
    icp.set_model(model)

    with pytest.raises(NoCorrespondenceError):
        icp.align(model + 100)

