"""Utils for the tests."""

import math

import torch

import skicp as ski


def create_point_cloud(
    n_points: int, f: callable, normals=False, dtype=ski.float_dtype
):
    """Create a point cloud from a height function f: R^2 -> R."""
    x = torch.linspace(-1, 1, n_points).to(dtype=dtype)
    y = torch.linspace(-1, 1, n_points).to(dtype=dtype)

    if normals:
        x.requires_grad = True
        y.requires_grad = True

    x, y = torch.meshgrid(x, y, indexing="ij")
    x = x.reshape(-1)
    y = y.reshape(-1)
    z = f(x, y).to(dtype=dtype)

    N = len(x)
    assert n_points**2 == N

    points = torch.stack([x, y, z], dim=1).view(N, 3)

    if not normals:
        return points

    grad_x, grad_y = torch.autograd.grad(z.sum(), [x, y])
    assert grad_x.shape == (N,)
    assert grad_y.shape == (N,)

    n = torch.stack([-grad_x, -grad_y, torch.ones_like(grad_x)], dim=1)
    n = torch.nn.functional.normalize(n, p=2, dim=-1)

    return points.detach(), n.detach()


def create_ellipsoid(
    n_points=600, axes=(1.0, 0.7, 0.5), dtype=ski.float_dtype
):
    """Deterministic, roughly uniform samples of an ellipsoid surface.

    The three axes are different so that no rotation maps the ellipsoid onto
    itself, except the reflections and half turns around the axes.
    """
    i = torch.arange(n_points, dtype=torch.float64) + 0.5
    golden_angle = math.pi * (3 - math.sqrt(5))
    z = 1 - 2 * i / n_points
    r = torch.sqrt(1 - z**2)
    theta = golden_angle * i
    sphere = torch.stack(
        [r * torch.cos(theta), r * torch.sin(theta), z], dim=1
    )
    return (sphere * torch.tensor(axes, dtype=torch.float64)).to(dtype=dtype)


def random_rigid_motion(
    *, max_angle_deg=5.0, max_translation=0.05, seed=0, dtype=ski.float_dtype
):
    """A random rotation of angle <= max_angle_deg and a random translation."""
    generator = torch.Generator().manual_seed(seed)
    axis = torch.nn.functional.normalize(
        torch.randn(3, generator=generator, dtype=torch.float64), dim=0
    )
    angle = math.radians(max_angle_deg) * float(
        torch.rand(1, generator=generator, dtype=torch.float64)
    )
    rotation = torch.matrix_exp(ski.skew(angle * axis.to(dtype=dtype)))
    translation = max_translation * torch.nn.functional.normalize(
        torch.randn(3, generator=generator, dtype=torch.float64), dim=0
    )
    return rotation.to(dtype=dtype), translation.to(dtype=dtype)


def rotation_error_degrees(R1, R2):
    """Angle of the rotation R1^T R2, in degrees."""
    return math.degrees(ski.rotation_angle(R1.T @ R2))


def assert_valid_rotation(R, atol=1e-6):
    """Check that R is orthonormal with determinant +1."""
    identity = torch.eye(3, dtype=R.dtype)
    assert torch.allclose(R @ R.T, identity, atol=atol)
    assert abs(float(torch.linalg.det(R)) - 1) < atol
