"""Rigid registration of a scene point cloud onto a model point cloud."""

from __future__ import annotations

import logging
import time

import torch

from ..correspondences import ClosestPointFinder
from ..errors import EmptyPointCloudError, NotFittedError, ShapeError
from ..geometry import transform_points
from ..input_validation import convert_inputs, typecheck
from ..optimization import (
    AlignmentContext,
    HuberQuaternion,
    LevenbergMarquardt,
    PoseOptimizer,
)
from ..preprocessing import estimate_normals, voxel_downsample
from ..types import (
    HomogeneousMatrix,
    ICPParameters,
    Normals3d,
    Number,
    OptimizerName,
    Points3d,
    validate_parameters,
)

logger = logging.getLogger(__name__)


def _make_optimizer(
    name: OptimizerName, parameters: ICPParameters
) -> PoseOptimizer:
    if name == "levenberg_marquardt":
        return LevenbergMarquardt(
            initial_damping=parameters.initial_damping,
            damping_factor=parameters.damping_factor,
        )
    return HuberQuaternion(
        distance_threshold=parameters.distance_threshold,
        huber_scale=parameters.huber_scale,
        inner_iterations=parameters.inner_iterations,
    )


class PointToPlaneICP:
    """Point-to-plane ICP registration.

    The model is set once with :meth:`set_model`; :meth:`align` then
    estimates the rigid transform that maps a scene onto it. Both clouds are
    copied, downsampled on a voxel grid, the model normals are estimated and
    the selected optimizer runs for a fixed number of iterations.

    Examples
    --------

    .. testcode::

        import torch
        import skicp as ski

        model = torch.rand(500, 3)
        icp = ski.PointToPlaneICP(iterations=10)
        icp.set_model(model)
        matrix = icp.align(model)
        print(matrix.shape)

    .. testoutput::

        torch.Size([4, 4])

    """

    @typecheck
    def __init__(
        self,
        *,
        grid_size: Number | None = None,
        distance_threshold: Number = 1.0,
        iterations: int = 30,
        optimizer: OptimizerName | PoseOptimizer = "levenberg_marquardt",
        k_neighbors: int | None = None,
        initial_damping: Number = 1e-2,
        damping_factor: Number = 10.0,
        huber_scale: Number = 0.3,
        inner_iterations: int = 4,
        leaf_size: int = 40,
    ) -> None:
        """Initialize the registration object.

        Parameters
        ----------
        grid_size
            Leaf size of the voxel grid applied to both clouds. None or 0 to
            keep every point.
        distance_threshold
            Maximal squared distance of a correspondence, only used by the
            ``"huber_quaternion"`` optimizer.
        iterations
            Number of ICP iterations.
        optimizer
            ``"levenberg_marquardt"``, ``"huber_quaternion"`` or an optimizer
            object (from skicp.optimization). When an object is given, the
            optimizer-specific parameters below are ignored.
        k_neighbors
            Neighborhood size for the normal estimation. Defaults to the
            optimizer's preference.
        initial_damping, damping_factor
            Trust region parameters of the ``"levenberg_marquardt"``
            optimizer.
        huber_scale, inner_iterations
            Loss scale and solver budget of the ``"huber_quaternion"``
            optimizer.
        leaf_size
            Leaf size of the KD-trees.
        """
        self.parameters = validate_parameters(
            ICPParameters(
                grid_size=grid_size,
                distance_threshold=distance_threshold,
                iterations=iterations,
                initial_damping=initial_damping,
                damping_factor=damping_factor,
                huber_scale=huber_scale,
                inner_iterations=inner_iterations,
                k_neighbors=k_neighbors,
                leaf_size=leaf_size,
            )
        )

        if isinstance(optimizer, str):
            optimizer = _make_optimizer(optimizer, self.parameters)
        self.optimizer = optimizer

    @property
    def grid_size(self) -> Number | None:
        return self.parameters.grid_size

    @property
    def distance_threshold(self) -> Number:
        return self.parameters.distance_threshold

    @property
    def iterations(self) -> int:
        return self.parameters.iterations

    @property
    def k_neighbors(self) -> int:
        if self.parameters.k_neighbors is not None:
            return self.parameters.k_neighbors
        return self.optimizer.default_k_neighbors

    @convert_inputs
    @typecheck
    def set_model(
        self, points: Points3d, normals: Normals3d | None = None
    ) -> PointToPlaneICP:
        """Set the reference cloud.

        The points (and normals) are copied: later modifications of the
        caller's tensors do not affect the registration.

        Parameters
        ----------
        points
            ``(M, 3)`` model cloud.
        normals
            ``(M, 3)`` unit normals of the model. If provided, they are used
            as is and the model is not downsampled, so that points and
            normals keep the same indexing. Otherwise the normals are
            estimated at each call to :meth:`align`.

        Raises
        ------
        EmptyPointCloudError
            If ``points`` is empty.
        ShapeError
            If ``normals`` does not have the shape of ``points``.
        """
        if points.shape[0] == 0:
            msg = "The model cloud is empty."
            raise EmptyPointCloudError(msg)

        if normals is not None and normals.shape != points.shape:
            msg = (
                f"Expected normals of shape {tuple(points.shape)}, got"
                + f" {tuple(normals.shape)}."
            )
            raise ShapeError(msg)

        self.model_points_ = points.detach().clone()
        self.model_normals_ = (
            torch.nn.functional.normalize(normals.detach().clone(), dim=1)
            if normals is not None
            else None
        )
        return self

    def _prepare_model(self) -> tuple[torch.Tensor, torch.Tensor]:
        """Downsampled model and its normals."""
        if self.model_normals_ is not None:
            return self.model_points_, self.model_normals_

        model = voxel_downsample(self.model_points_, self.grid_size)
        normals = estimate_normals(
            model,
            k_neighbors=self.k_neighbors,
            leaf_size=self.parameters.leaf_size,
        )
        return model, normals

    @convert_inputs
    @typecheck
    def align(self, scene: Points3d) -> HomogeneousMatrix:
        """Estimate the transform from the scene frame to the model frame.

        After calling this method, the transform is stored in the
        ``transformation_``, ``rotation_`` and ``translation_`` attributes,
        and the diagnostics of every iteration in ``history_``.

        Parameters
        ----------
        scene
            ``(N, 3)`` scene cloud.

        Returns
        -------
        HomogeneousMatrix
            The ``(4, 4)`` matrix ``[[R, t], [0, 1]]``.

        Raises
        ------
        NotFittedError
            If :meth:`set_model` has not been called.
        EmptyPointCloudError
            If the scene is empty, or if a cloud is too small after
            downsampling.
        DegenerateHessianError
            If the correspondences do not constrain the pose
            (``"levenberg_marquardt"`` optimizer).
        NoCorrespondenceError
            If no correspondence is within the distance threshold
            (``"huber_quaternion"`` optimizer).
        """
        if not hasattr(self, "model_points_"):
            msg = "The model must be set with set_model before calling align."
            raise NotFittedError(msg)

        if scene.shape[0] == 0:
            msg = "The scene cloud is empty."
            raise EmptyPointCloudError(msg)

        total_start = time.perf_counter()

        scene = voxel_downsample(scene.detach().clone(), self.grid_size)
        model, normals = self._prepare_model()
        finder = ClosestPointFinder(
            leaf_size=self.parameters.leaf_size
        ).initialize(model)

        logger.info(
            "preprocessing took %.1fms (model: %d points, scene: %d points)",
            1000 * (time.perf_counter() - total_start),
            model.shape[0],
            scene.shape[0],
        )

        context = AlignmentContext(
            model_points=model,
            model_normals=normals,
            finder=finder,
            scene_points=scene,
        )
        context = self.optimizer.optimize(context, self.iterations)

        self.context_ = context
        self.rotation_ = context.rotation
        self.translation_ = context.translation
        self.transformation_ = context.transformation
        self.history_ = context.history
        self.damping_ = context.damping
        self.cost_history_ = torch.tensor(
            [record.cost for record in context.history],
            dtype=scene.dtype,
        )

        logger.info(
            "total processing time %.1fms",
            1000 * (time.perf_counter() - total_start),
        )
        return self.transformation_.clone()

    @convert_inputs
    @typecheck
    def transform(self, points: Points3d) -> Points3d:
        """Apply the estimated transform to a point cloud.

        Raises
        ------
        NotFittedError
            If :meth:`align` has not been called.
        """
        if not hasattr(self, "transformation_"):
            msg = "The registration must be aligned before calling transform"
            raise NotFittedError(msg)
        return transform_points(points, self.rotation_, self.translation_)

    def __repr__(self) -> str:
        return (
            f"PointToPlaneICP(grid_size={self.grid_size},"
            + f" distance_threshold={self.distance_threshold},"
            + f" iterations={self.iterations}, optimizer={self.optimizer!r})"
        )
