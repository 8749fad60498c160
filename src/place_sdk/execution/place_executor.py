# ===============================================
# FILE: src/place_sdk/execution/place_executor.py
# ===============================================
"""
Place sequencing:

PREPARING → (FEASIBILITY_ONLY_EXIT | MOVING_TO_PREPLACE) → APPROACHING
  → DETACHING → RELEASING → RETREATING → DONE

Everything before APPROACHING is continuable (nothing has been committed).
From APPROACHING on, failures are not continuable: the arm may be partway
down, or the object is already on the surface.
"""
from __future__ import annotations
import logging
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from place_sdk.core.config import PlaceConfig
from place_sdk.core.constraints import constraints_understandable, use_path_constraints
from place_sdk.core.errors import InternalInconsistency, PlaceError
from place_sdk.core.message_types import (
    AttemptResult,
    GraspIntent,
    PlaceGoal,
    PlaceLocation,
    PlaceResultCode,
    UnrecoverableError,
)
from place_sdk.core.robot_io import (
    GripperActuationService,
    KinematicsService,
    MotionExecutionService,
    ReactivePlacementService,
    TransformService,
    VisualizationService,
)
from place_sdk.execution.approach import ApproachOutcome, PlaceApproachStrategy, build_approach_strategy
from place_sdk.execution.negotiator import PlaceAttempt, TrajectoryNegotiator

logger = logging.getLogger(__name__)

PlaceOutcome = Union[AttemptResult, UnrecoverableError]


class PlaceStage(Enum):
    PREPARING = "preparing"
    FEASIBILITY_ONLY_EXIT = "feasibility_only_exit"
    MOVING_TO_PREPLACE = "moving_to_preplace"
    APPROACHING = "approaching"
    DETACHING = "detaching"
    RELEASING = "releasing"
    RETREATING = "retreating"
    DONE = "done"


class PlaceExecutor:
    """
    Runs one place attempt per call to place(). All services are injected;
    the approach variant is chosen once, here, from config.approach unless a
    strategy is passed in.
    """

    def __init__(
        self,
        *,
        config: PlaceConfig,
        transformer: TransformService,
        kinematics: KinematicsService,
        motion: MotionExecutionService,
        gripper: GripperActuationService,
        reactive: Optional[ReactivePlacementService] = None,
        markers: Optional[VisualizationService] = None,
        strategy: Optional[PlaceApproachStrategy] = None,
    ):
        self.config = config
        self.motion = motion
        self.gripper = gripper
        self.negotiator = TrajectoryNegotiator(
            config=config, transformer=transformer, kinematics=kinematics, motion=motion, markers=markers,
        )
        self.strategy = strategy or build_approach_strategy(
            config, motion=motion, negotiator=self.negotiator, reactive=reactive,
        )

    def _enter(self, stage: PlaceStage) -> None:
        logger.debug("[place] stage -> %s", stage.value)

    # ---------- public ----------
    def place(self, goal: PlaceGoal, location: PlaceLocation) -> PlaceOutcome:
        try:
            return self._place(goal, location)
        except PlaceError as e:
            logger.error("[place] attempt aborted (%s): %s", e.kind.value, e)
            return UnrecoverableError(kind=e.kind, message=str(e))

    # ---------- steps ----------
    def _place(self, goal: PlaceGoal, location: PlaceLocation) -> AttemptResult:
        self._enter(PlaceStage.PREPARING)
        result, attempt = self.negotiator.prepare(goal, location)
        if not result.success:
            return result
        if goal.only_perform_feasibility_test:
            self._enter(PlaceStage.FEASIBILITY_ONLY_EXIT)
            return result

        self._enter(PlaceStage.MOVING_TO_PREPLACE)
        result = self._move_to_preplace(goal, location, attempt)
        if not result.success:
            return result
        logger.debug("[place] arm moved to pre-place")

        self._enter(PlaceStage.APPROACHING)
        outcome = self.strategy.approach(goal, location, attempt)
        if outcome is ApproachOutcome.TIMED_OUT:
            return AttemptResult(PlaceResultCode.PLACE_FAILED, False, detail="approach timed out")
        if outcome is not ApproachOutcome.SUCCEEDED:
            logger.debug("[place] pre-place to place approach failed")
            return AttemptResult(PlaceResultCode.PLACE_FAILED, False, detail="approach failed")
        logger.debug("[place] place trajectory done")

        self._enter(PlaceStage.DETACHING)
        self.motion.detach_object(goal.arm_name, goal.collision_object_name)
        logger.debug("[place] object detached")

        self._enter(PlaceStage.RELEASING)
        self.gripper.command_posture(goal.arm_name, goal.grasp, GraspIntent.RELEASE, None)
        logger.debug("[place] object released")

        self._enter(PlaceStage.RETREATING)
        result = self.negotiator.retreat(goal)
        if not result.success:
            return AttemptResult(PlaceResultCode.RETREAT_FAILED, False)

        self._enter(PlaceStage.DONE)
        return AttemptResult(PlaceResultCode.SUCCESS, True)

    def _move_to_preplace(self, goal: PlaceGoal, location: PlaceLocation, attempt: PlaceAttempt) -> AttemptResult:
        constraints = goal.path_constraints
        if not constraints_understandable(constraints):
            logger.warning("[place] path constraints are of types not yet handled; ignoring them")
        use_constraints = use_path_constraints(constraints)
        preplace_joints = attempt.place_trajectory.first()

        if use_constraints:
            preplace_pose = self.motion.forward_kinematics(goal.arm_name, preplace_joints, location.frame_id)
            if preplace_pose is None:
                logger.error("[place] could not re-compute pre-place pose based on trajectory")
                raise InternalInconsistency("could not re-compute pre-place pose based on trajectory")
            redundancy = preplace_joints[2] if len(preplace_joints) > 2 else None
            logger.debug("[place] attempting move arm to pre-place with constraints")
            if not self.motion.move_arm_constrained(goal.arm_name, preplace_pose,
                                                    goal.additional_collision_operations,
                                                    goal.additional_link_padding,
                                                    constraints, redundancy):
                logger.warning("[place] move to pre-place with constraints failed; trying again without constraints")
                use_constraints = False

        if not use_constraints:
            logger.debug("[place] attempting move arm to pre-place without constraints")
            if not self.motion.move_arm_to_joint_goal(goal.arm_name, preplace_joints,
                                                      goal.additional_collision_operations,
                                                      goal.additional_link_padding):
                logger.debug("[place] move to pre-place (without constraints) reports failure")
                return AttemptResult(PlaceResultCode.MOVE_ARM_FAILED, True)

        return AttemptResult(PlaceResultCode.SUCCESS, True)


def place_first_feasible(
    executor: PlaceExecutor,
    goal: PlaceGoal,
    locations: Sequence[PlaceLocation],
) -> Tuple[Optional[PlaceOutcome], Optional[int]]:
    """
    Try candidate locations in order. Stops on the first success and on the
    first result that is not continuable; only continuable failures move on
    to the next candidate.

    Returns (last outcome, index of the candidate it belongs to), or
    (None, None) for an empty candidate list.
    """
    outcome: Optional[PlaceOutcome] = None
    for i, loc in enumerate(locations):
        outcome = executor.place(goal, loc)
        if outcome.success or not outcome.continuable:
            return outcome, i
        logger.debug("[place] candidate %d rejected: %s", i, outcome.code.name)
    if outcome is None:
        return None, None
    return outcome, len(locations) - 1

