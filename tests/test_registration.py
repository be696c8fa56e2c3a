"""Tests for the PointToPlaneICP task."""

import pytest
import torch
from hypothesis import given, settings
from hypothesis import strategies as st

import skicp as ski

from .utils import (
    assert_valid_rotation,
    create_ellipsoid,
    random_rigid_motion,
    rotation_error_degrees,
)

optimizers = ["levenberg_marquardt", "huber_quaternion"]


@pytest.mark.parametrize("optimizer", optimizers)
def test_identity(optimizer):
    """Aligning the model on itself gives the identity."""
    model = create_ellipsoid()
    icp = ski.PointToPlaneICP(optimizer=optimizer, iterations=10)
    icp.set_model(model)
    matrix = icp.align(model)

    assert matrix.shape == (4, 4)
    assert matrix.dtype == ski.float_dtype
    assert torch.allclose(matrix, torch.eye(4, dtype=matrix.dtype), atol=1e-6)
    assert len(icp.history_) == 10
    assert icp.cost_history_.shape == (10,)


@pytest.mark.parametrize("optimizer", optimizers)
@given(seed=st.integers(min_value=0, max_value=1000))
@settings(max_examples=3, deadline=None)
def test_known_transform(optimizer, seed):
    """A scene moved by a small rigid motion is brought back on the model."""
    model = create_ellipsoid()
    R_true, t_true = random_rigid_motion(
        max_angle_deg=5, max_translation=0.05, seed=seed
    )
    scene = ski.transform_points(model, R_true, t_true)

    icp = ski.PointToPlaneICP(optimizer=optimizer, iterations=30)
    icp.set_model(model)
    matrix = icp.align(scene)

    R, t = matrix[:3, :3], matrix[:3, 3]
    assert_valid_rotation(R)
    # The estimate is the inverse of the motion applied to the scene
    assert rotation_error_degrees(R, R_true.T) < 1
    assert torch.linalg.norm(t + R_true.T @ t_true) < 0.02

    assert torch.allclose(icp.transform(scene), model, atol=0.02)
    assert icp.cost_history_[-1] < icp.cost_history_[0]


def test_optimizers_agree():
    model = create_ellipsoid()
    R_true, t_true = random_rigid_motion(
        max_angle_deg=8, max_translation=0.05, seed=42
    )
    scene = ski.transform_points(model, R_true, t_true)

    matrices = []
    for optimizer in optimizers:
        icp = ski.PointToPlaneICP(optimizer=optimizer, iterations=30)
        matrices.append(icp.set_model(model).align(scene))

    assert rotation_error_degrees(matrices[0][:3, :3], matrices[1][:3, :3]) < 1
    assert torch.linalg.norm(matrices[0][:3, 3] - matrices[1][:3, 3]) < 0.02


def test_far_outlier_is_skipped():
    """A point beyond the distance threshold does not change the result."""
    model = create_ellipsoid()
    R_true, t_true = random_rigid_motion(seed=7)
    scene = ski.transform_points(model, R_true, t_true)
    outlier = torch.tensor([[10.0, 10.0, 10.0]], dtype=scene.dtype)
    scene_with_outlier = torch.cat([scene, outlier])

    icp = ski.PointToPlaneICP(optimizer="huber_quaternion", iterations=10)
    icp.set_model(model)
    clean = icp.align(scene)
    with_outlier = icp.align(scene_with_outlier)

    assert torch.allclose(clean, with_outlier, atol=1e-8)
    assert all(record.n_skipped >= 1 for record in icp.history_)


def test_grid_size():
    """Both clouds are downsampled before the alignment."""
    model = create_ellipsoid(n_points=2000)
    R_true, t_true = random_rigid_motion(seed=11)
    scene = ski.transform_points(model, R_true, t_true)

    icp = ski.PointToPlaneICP(grid_size=0.1, iterations=20)
    icp.set_model(model)
    icp.align(scene)

    assert icp.context_.n_model_points < model.shape[0]
    assert icp.context_.n_scene_points < scene.shape[0]
    assert rotation_error_degrees(icp.rotation_, R_true.T) < 2
    # The stored model is not downsampled
    assert icp.model_points_.shape == model.shape


def test_provided_normals():
    model = create_ellipsoid()
    normals = ski.estimate_normals(model, k_neighbors=10)
    R_true, t_true = random_rigid_motion(seed=5)
    scene = ski.transform_points(model, R_true, t_true)

    icp = ski.PointToPlaneICP(iterations=20)
    icp.set_model(model, normals=2 * normals)
    icp.align(scene)

    # Normals are normalized and used as is
    assert torch.allclose(icp.context_.model_normals, normals)
    assert rotation_error_degrees(icp.rotation_, R_true.T) < 1


def test_inputs_are_copied():
    """Modifying the caller's tensors does not affect the registration."""
    model = create_ellipsoid()
    R_true, t_true = random_rigid_motion(seed=9)
    scene = ski.transform_points(model, R_true, t_true)

    icp = ski.PointToPlaneICP(iterations=10)
    icp.set_model(model)
    reference = icp.align(scene)

    model_copy, scene_copy = model.clone(), scene.clone()
    model += 1.0
    result = icp.align(scene_copy)
    assert torch.allclose(reference, result)

    icp.align(scene)
    assert torch.allclose(scene, scene_copy)
    assert torch.allclose(icp.model_points_, model_copy)


def test_input_conversion():
    """Numpy arrays and float32 tensors are accepted."""
    model = create_ellipsoid(n_points=300)

    icp = ski.PointToPlaneICP(iterations=5)
    icp.set_model(model.numpy())
    matrix = icp.align(model.to(torch.float32))
    assert matrix.dtype == ski.float_dtype


def test_parameters():
    icp = ski.PointToPlaneICP(
        grid_size=0.05,
        distance_threshold=0.5,
        iterations=12,
        optimizer="huber_quaternion",
        huber_scale=0.1,
        inner_iterations=6,
    )
    assert icp.grid_size == 0.05
    assert icp.distance_threshold == 0.5
    assert icp.iterations == 12
    assert isinstance(icp.optimizer, ski.HuberQuaternion)
    assert icp.optimizer.huber_scale == 0.1
    assert icp.optimizer.inner_iterations == 6
    assert icp.optimizer.distance_threshold == 0.5
    # Default neighborhood size of the optimizer
    assert icp.k_neighbors == 20

    icp = ski.PointToPlaneICP(initial_damping=1.0, damping_factor=2)
    assert isinstance(icp.optimizer, ski.LevenbergMarquardt)
    assert icp.optimizer.initial_damping == 1.0
    assert icp.optimizer.damping_factor == 2
    assert icp.k_neighbors == 10

    icp = ski.PointToPlaneICP(k_neighbors=15)
    assert icp.k_neighbors == 15

    optimizer = ski.LevenbergMarquardt(initial_damping=0.5)
    icp = ski.PointToPlaneICP(optimizer=optimizer)
    assert icp.optimizer is optimizer
    assert "LevenbergMarquardt" in repr(icp)


def test_zero_iterations():
    model = create_ellipsoid(n_points=200)
    icp = ski.PointToPlaneICP(iterations=0)
    icp.set_model(model)
    matrix = icp.align(model + 1)
    assert torch.allclose(matrix, torch.eye(4, dtype=matrix.dtype))
    assert icp.history_ == []
