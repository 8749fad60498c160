# ==================================
# FILE: src/place_sdk/core/transform.py
# ==================================
from __future__ import annotations
import logging
import time
from typing import Optional

from place_sdk.core.errors import FrameUnavailable, TransformFailure
from place_sdk.core.geometry import compose_poses
from place_sdk.core.message_types import Pose, PoseStamped, PlaceLocation
from place_sdk.core.robot_io import TransformService

logger = logging.getLogger(__name__)

DEFAULT_FRAME_WAIT_S = 1.0


class PoseResolver:
    """
    Gripper pose for a placement: place_pose * grasp_pose, expressed in a
    requested frame through the transform service.

    Only the stamp depends on the clock; pose values are a pure function of
    (location, grasp_pose, frame_id) and the frame tree.
    """

    def __init__(self, transformer: TransformService, *, frame_wait_s: float = DEFAULT_FRAME_WAIT_S):
        self.transformer = transformer
        self.frame_wait_s = float(frame_wait_s)

    def resolve(self, location: PlaceLocation, grasp_pose: Pose, frame_id: str) -> PoseStamped:
        gripper_in_place_frame = PoseStamped(
            pose=compose_poses(location.pose, grasp_pose),
            frame_id=location.frame_id,
            stamp=time.time(),
        )

        if not self.transformer.wait_for_transform(frame_id, location.frame_id, self.frame_wait_s):
            logger.error("[place] no transform from %s to %s", location.frame_id, frame_id)
            raise FrameUnavailable(f"no transform from {location.frame_id} to {frame_id}")

        try:
            out = self.transformer.transform_pose(gripper_in_place_frame, frame_id)
        except Exception as e:
            logger.error("[place] failed to transform gripper pose into %s: %s", frame_id, e)
            raise TransformFailure(f"failed to transform gripper pose into {frame_id}: {e}") from e

        return PoseStamped(pose=out.pose, frame_id=frame_id, stamp=time.time())


def resolve_gripper_pose(
    transformer: TransformService,
    location: PlaceLocation,
    grasp_pose: Pose,
    frame_id: str,
    *,
    frame_wait_s: Optional[float] = None,
) -> PoseStamped:
    """One-shot convenience wrapper around PoseResolver."""
    wait = DEFAULT_FRAME_WAIT_S if frame_wait_s is None else frame_wait_s
    return PoseResolver(transformer, frame_wait_s=wait).resolve(location, grasp_pose, frame_id)
