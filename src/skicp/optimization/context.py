"""State of one alignment call."""

from __future__ import annotations

from dataclasses import dataclass, field

import torch

from ..correspondences import ClosestPointFinder, Correspondences
from ..errors import EmptyPointCloudError, ShapeError
from ..geometry import compose, to_homogeneous, transform_points
from ..types import IterationRecord


@dataclass
class AlignmentContext:
    """Everything an optimizer reads or updates during one alignment.

    The model points and normals are read-only. The scene is never modified:
    :attr:`scene` is recomputed from the original scene and the cumulative
    transform after every increment, so that correspondences are always
    searched against the scene moved by the current estimate.

    Attributes
    ----------
    model_points
        ``(M, 3)`` model cloud.
    model_normals
        ``(M, 3)`` unit normals, indexed like ``model_points``.
    finder
        Nearest neighbor index built over ``model_points``.
    scene_points
        ``(N, 3)`` original scene cloud.
    rotation, translation
        Cumulative transform, from the original scene frame to the model frame.
    state
        ``(6,)`` pose state of the Levenberg-Marquardt optimizer.
    damping
        Damping factor of the Levenberg-Marquardt optimizer.
    history
        One :class:`~skicp.types.IterationRecord` per outer iteration.
    """

    model_points: torch.Tensor
    model_normals: torch.Tensor
    finder: ClosestPointFinder
    scene_points: torch.Tensor
    rotation: torch.Tensor | None = None
    translation: torch.Tensor | None = None
    state: torch.Tensor | None = None
    damping: float | None = None
    history: list[IterationRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.model_points.shape[0] == 0:
            msg = "The model cloud is empty."
            raise EmptyPointCloudError(msg)
        if self.scene_points.shape[0] == 0:
            msg = "The scene cloud is empty."
            raise EmptyPointCloudError(msg)
        if self.model_normals.shape != self.model_points.shape:
            msg = (
                f"Expected one normal per model point ({self.n_model_points})"
                + f", got normals of shape {tuple(self.model_normals.shape)}."
            )
            raise ShapeError(msg)

        dtype = self.scene_points.dtype
        if self.rotation is None:
            self.rotation = torch.eye(3, dtype=dtype)
        if self.translation is None:
            self.translation = torch.zeros(3, dtype=dtype)
        self.scene = transform_points(
            self.scene_points, self.rotation, self.translation
        )

    @property
    def n_model_points(self) -> int:
        return self.model_points.shape[0]

    @property
    def n_scene_points(self) -> int:
        return self.scene_points.shape[0]

    def find_correspondences(self) -> Correspondences:
        """Closest model point of every point of the current scene."""
        return self.finder.query(self.scene)

    def matched_model(
        self, correspondences: Correspondences
    ) -> tuple[torch.Tensor, torch.Tensor]:
        """Model points and normals matched with the scene points."""
        indices = correspondences.indices
        return self.model_points[indices], self.model_normals[indices]

    def apply_increment(
        self, rotation: torch.Tensor, translation: torch.Tensor
    ) -> None:
        """Compose an increment on the left of the cumulative transform."""
        self.rotation, self.translation = compose(
            rotation, translation, self.rotation, self.translation
        )
        self.scene = transform_points(
            self.scene_points, self.rotation, self.translation
        )

    @property
    def transformation(self) -> torch.Tensor:
        """The cumulative transform as a ``(4, 4)`` homogeneous matrix."""
        return to_homogeneous(self.rotation, self.translation)
