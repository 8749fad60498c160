# ===========================================
# FILE: src/place_sdk/execution/negotiator.py
# ===========================================
"""
Descent / retreat negotiation for a single place attempt.

Nothing in prepare() moves the robot, so every result it returns is
continuable. The executed retreat (after release) lives here too, because it
uses the same hand direction and the retreat collision policy.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from place_sdk.core.collision_policy import CollisionPolicyBuilder
from place_sdk.core.config import HandDescription, PlaceConfig
from place_sdk.core.message_types import (
    AttemptResult,
    ErrorCause,
    JointTrajectory,
    PlaceGoal,
    PlaceLocation,
    PlaceResultCode,
    PoseStamped,
    Vector3Stamped,
)
from place_sdk.core.robot_io import (
    KinematicsService,
    MotionExecutionService,
    TransformService,
    VisualizationService,
)
from place_sdk.core.transform import PoseResolver

logger = logging.getLogger(__name__)


# cause -> code, per family; anything else is *_UNFEASIBLE
_PLACE_CODES = {
    ErrorCause.COLLISION: PlaceResultCode.PLACE_IN_COLLISION,
    ErrorCause.JOINT_LIMIT: PlaceResultCode.PLACE_OUT_OF_REACH,
}
_PREPLACE_CODES = {
    ErrorCause.COLLISION: PlaceResultCode.PREPLACE_IN_COLLISION,
    ErrorCause.JOINT_LIMIT: PlaceResultCode.PREPLACE_OUT_OF_REACH,
}
_RETREAT_CODES = {
    ErrorCause.COLLISION: PlaceResultCode.RETREAT_IN_COLLISION,
    ErrorCause.JOINT_LIMIT: PlaceResultCode.RETREAT_OUT_OF_REACH,
}


def classify_failure(leg: str, trajectory_empty: bool, cause: ErrorCause) -> PlaceResultCode:
    """
    Map a rejected search to a result code.

    An empty trajectory means the place pose itself is the problem (PLACE_*),
    whichever leg found it. A short non-empty one blames the far end of the
    leg: the pre-place pose for the descent, the retreat pose for the retreat.
    """
    if leg not in ("descent", "retreat"):
        raise ValueError(f"Unknown leg '{leg}'")
    if trajectory_empty:
        return _PLACE_CODES.get(cause, PlaceResultCode.PLACE_UNFEASIBLE)
    if leg == "descent":
        return _PREPLACE_CODES.get(cause, PlaceResultCode.PREPLACE_UNFEASIBLE)
    return _RETREAT_CODES.get(cause, PlaceResultCode.RETREAT_UNFEASIBLE)


@dataclass
class PlaceAttempt:
    """Everything one attempt computes before it moves; owned by that attempt only."""
    gripper_pose: Optional[PoseStamped] = None
    place_trajectory: JointTrajectory = field(default_factory=JointTrajectory)
    retreat_trajectory: JointTrajectory = field(default_factory=JointTrajectory)
    descent_cause: ErrorCause = ErrorCause.OK


class TrajectoryNegotiator:
    def __init__(
        self,
        *,
        config: PlaceConfig,
        transformer: TransformService,
        kinematics: KinematicsService,
        motion: MotionExecutionService,
        markers: Optional[VisualizationService] = None,
    ):
        self.config = config
        self.resolver = PoseResolver(transformer, frame_wait_s=config.frame_wait_timeout_s)
        self.kinematics = kinematics
        self.motion = motion
        self.markers = markers
        self._marker_id: Optional[int] = None

    # ---------- helpers ----------
    def _hand(self, goal: PlaceGoal) -> HandDescription:
        return self.config.hand(goal.arm_name)

    def _hand_retreat_direction(self, hand: HandDescription) -> Vector3Stamped:
        return Vector3Stamped(vector=hand.approach_direction, frame_id=hand.gripper_frame).negated()

    def _show(self, pose: PoseStamped) -> None:
        if self.markers is None:
            return
        try:
            if self._marker_id is None:
                self._marker_id = self.markers.add_marker(pose)
            else:
                self.markers.set_marker_pose(self._marker_id, pose)
        except Exception as e:
            logger.warning("[place] marker update failed: %s", e)

    def gripper_pose(self, goal: PlaceGoal, location: PlaceLocation) -> PoseStamped:
        hand = self._hand(goal)
        return self.resolver.resolve(location, goal.grasp.grasp_pose, hand.robot_frame)

    # ---------- negotiation ----------
    def prepare(self, goal: PlaceGoal, location: PlaceLocation) -> Tuple[AttemptResult, PlaceAttempt]:
        hand = self._hand(goal)
        policies = CollisionPolicyBuilder(hand)
        attempt = PlaceAttempt()

        attempt.gripper_pose = self.resolver.resolve(location, goal.grasp.grasp_pose, hand.robot_frame)
        self._show(attempt.gripper_pose)

        # search backwards from place to pre-place
        descent_policy = policies.descent(goal)
        descent = self.kinematics.interpolated_search(
            goal.arm_name,
            attempt.gripper_pose,
            goal.approach.direction.negated(),
            goal.approach.desired_distance,
            None,
            goal.grasp.grasp_posture,
            descent_policy.collision_operations,
            descent_policy.link_padding,
            True,
        )
        attempt.place_trajectory = descent.trajectory
        attempt.descent_cause = descent.cause
        logger.debug("[place] place trajectory: actual(%f), min(%f), desired(%f)",
                     descent.achieved_distance, goal.approach.min_distance, goal.approach.desired_distance)

        # an empty descent has no pre-place pose, whatever the minimum says
        if descent.trajectory.empty or descent.achieved_distance < goal.approach.min_distance:
            code = classify_failure("descent", descent.trajectory.empty, descent.cause)
            logger.debug("[place] place trajectory below min. threshold -> %s", code.name)
            return AttemptResult(code, True), attempt

        # the pre-place pose must be valid without the descent relaxations
        default_policy = policies.default(goal)
        if not self.motion.check_state_validity(goal.arm_name, attempt.place_trajectory.first(),
                                                default_policy.collision_operations,
                                                default_policy.link_padding):
            logger.debug("[place] first pose in place trajectory is unfeasible with default padding")
            return AttemptResult(PlaceResultCode.PREPLACE_UNFEASIBLE, True), attempt

        # search from place to retreat, seeded with the place solution
        retreat_policy = policies.retreat_search(goal)
        retreat = self.kinematics.interpolated_search(
            goal.arm_name,
            attempt.gripper_pose,
            self._hand_retreat_direction(hand),
            goal.desired_retreat_distance,
            attempt.place_trajectory.last(),
            goal.grasp.pre_grasp_posture,
            retreat_policy.collision_operations,
            retreat_policy.link_padding,
            False,
        )
        attempt.retreat_trajectory = retreat.trajectory
        logger.debug("[place] retreat trajectory: actual(%f), min(%f), desired(%f)",
                     retreat.achieved_distance, goal.min_retreat_distance, goal.desired_retreat_distance)

        if retreat.achieved_distance < goal.min_retreat_distance:
            # an empty retreat is blamed on the same root cause as the descent
            cause = attempt.descent_cause if retreat.trajectory.empty else retreat.cause
            code = classify_failure("retreat", retreat.trajectory.empty, cause)
            logger.debug("[place] retreat trajectory below min. threshold -> %s", code.name)
            return AttemptResult(code, True), attempt

        return AttemptResult(PlaceResultCode.SUCCESS, True), attempt

    # ---------- executed retreat ----------
    def retreat(self, goal: PlaceGoal) -> AttemptResult:
        """
        Back the empty gripper away from the placed object. Recomputed rather
        than replayed, since the approach may not have ended exactly on the
        planned pose.
        """
        hand = self._hand(goal)
        policy = CollisionPolicyBuilder(hand).retreat(goal)
        achieved = self.motion.translate_gripper(
            goal.arm_name,
            self._hand_retreat_direction(hand),
            policy.collision_operations,
            policy.link_padding,
            goal.desired_retreat_distance,
            0.0,
        )
        if achieved < goal.min_retreat_distance:
            logger.debug("[place] retreat incomplete (%f executed and %f min)", achieved, goal.min_retreat_distance)
            return AttemptResult(PlaceResultCode.RETREAT_FAILED, False)
        return AttemptResult(PlaceResultCode.SUCCESS, True)
