# ================================
# FILE: src/place_sdk/core/robot_io.py
# ================================
"""
Transport-agnostic service ports for the place executor.

No ROS imports here; this module defines *protocols* and scripted dummy
implementations useful for local dry-runs or unit tests.

Your ROS nodes can implement these interfaces on top of tf, the interpolated
IK service, move_arm, the hand posture action and the reactive place action.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable, Any, Dict, List, Optional, Tuple

import numpy as np

from place_sdk.core.geometry import pose_to_matrix, matrix_to_pose
from place_sdk.core.message_types import (
    CollisionOperation,
    Constraints,
    Grasp,
    GraspIntent,
    HandPosture,
    InterpolatedPath,
    JointTrajectory,
    LinkPadding,
    Pose,
    PoseStamped,
    ReactivePlaceGoal,
    ReactivePlaceResult,
    Vector3Stamped,
)

logger = logging.getLogger(__name__)


# --------- Protocols (interfaces) ---------
@runtime_checkable
class TransformService(Protocol):
    def wait_for_transform(self, target_frame: str, source_frame: str, timeout_s: float) -> bool: ...
    def transform_pose(self, pose: PoseStamped, target_frame: str) -> PoseStamped:  # raises on failure
        ...


@runtime_checkable
class KinematicsService(Protocol):
    def interpolated_search(
        self,
        arm_name: str,
        target_pose: PoseStamped,
        direction: Vector3Stamped,
        desired_distance: float,
        seed: Optional[List[float]],
        hand_posture: HandPosture,
        collision_operations: List[CollisionOperation],
        link_padding: List[LinkPadding],
        search_backward: bool,
    ) -> InterpolatedPath: ...


@runtime_checkable
class MotionExecutionService(Protocol):
    def move_arm_constrained(
        self,
        arm_name: str,
        pose: PoseStamped,
        collision_operations: List[CollisionOperation],
        link_padding: List[LinkPadding],
        constraints: Constraints,
        redundancy: Optional[float],
    ) -> bool: ...
    def move_arm_to_joint_goal(
        self,
        arm_name: str,
        joints: List[float],
        collision_operations: List[CollisionOperation],
        link_padding: List[LinkPadding],
    ) -> bool: ...
    def execute_trajectory(self, arm_name: str, trajectory: JointTrajectory) -> bool: ...
    def check_state_validity(
        self,
        arm_name: str,
        joints: List[float],
        collision_operations: List[CollisionOperation],
        link_padding: List[LinkPadding],
    ) -> bool: ...
    def detach_object(self, arm_name: str, object_name: str) -> None: ...
    def forward_kinematics(self, arm_name: str, joints: List[float], frame_id: str) -> Optional[PoseStamped]: ...
    def translate_gripper(
        self,
        arm_name: str,
        direction: Vector3Stamped,
        collision_operations: List[CollisionOperation],
        link_padding: List[LinkPadding],
        desired_distance: float,
        min_distance: float,
    ) -> float:  # achieved distance
        ...


@runtime_checkable
class GripperActuationService(Protocol):
    def command_posture(self, arm_name: str, grasp: Grasp, intent: GraspIntent,
                        timeout_s: Optional[float]) -> bool: ...


@runtime_checkable
class ReactivePlacementService(Protocol):
    def send_goal(self, goal: ReactivePlaceGoal) -> None: ...
    def wait_for_result(self, timeout_s: float) -> bool: ...
    def get_result(self) -> ReactivePlaceResult: ...


@runtime_checkable
class VisualizationService(Protocol):
    def add_marker(self, pose: PoseStamped) -> int: ...
    def set_marker_pose(self, marker_id: int, pose: PoseStamped) -> None: ...


# --------- Dummy (scripted) implementations ---------
@dataclass
class DummyTransformer(TransformService):
    """
    Static frame tree: every frame is known by its pose in a common root frame.
    Unknown frames make wait_for_transform() return False.
    """
    frames: Dict[str, Pose] = field(default_factory=dict)
    root_frame: str = "world"
    fail_transform: bool = False

    def _root_T(self, frame: str) -> np.ndarray:
        if frame == self.root_frame:
            return np.eye(4)
        return pose_to_matrix(self.frames[frame])

    def _known(self, frame: str) -> bool:
        return frame == self.root_frame or frame in self.frames

    def wait_for_transform(self, target_frame: str, source_frame: str, timeout_s: float) -> bool:
        return self._known(target_frame) and self._known(source_frame)

    def transform_pose(self, pose: PoseStamped, target_frame: str) -> PoseStamped:
        if self.fail_transform:
            raise RuntimeError(f"[DummyTransformer] scripted failure {pose.frame_id} -> {target_frame}")
        T = np.linalg.inv(self._root_T(target_frame)) @ self._root_T(pose.frame_id) @ pose_to_matrix(pose.pose)
        return PoseStamped(pose=matrix_to_pose(T), frame_id=target_frame, stamp=pose.stamp)


@dataclass
class DummyKinematics(KinematicsService):
    """Returns the scripted descent (search_backward=True) or retreat path."""
    descent: InterpolatedPath = field(
        default_factory=lambda: InterpolatedPath(JointTrajectory(points=[[0.0] * 7, [0.1] * 7]), 0.10))
    retreat: InterpolatedPath = field(
        default_factory=lambda: InterpolatedPath(JointTrajectory(points=[[0.1] * 7, [0.2] * 7]), 0.10))
    calls: List[Dict[str, Any]] = field(default_factory=list)

    def interpolated_search(self, arm_name, target_pose, direction, desired_distance, seed,
                            hand_posture, collision_operations, link_padding, search_backward) -> InterpolatedPath:
        self.calls.append({
            "arm_name": arm_name,
            "target_pose": target_pose,
            "direction": direction,
            "desired_distance": desired_distance,
            "seed": seed,
            "hand_posture": hand_posture,
            "collision_operations": list(collision_operations),
            "link_padding": list(link_padding),
            "search_backward": search_backward,
        })
        res = self.descent if search_backward else self.retreat
        logger.debug("[DummyKinematics] %s search -> %.3f m (%s)",
                     "backward" if search_backward else "forward", res.achieved_distance, res.cause.value)
        return res


@dataclass
class DummyMotion(MotionExecutionService):
    constrained_ok: bool = True
    joint_goal_ok: bool = True
    execute_ok: bool = True
    state_valid: bool = True
    fk_pose: Optional[Pose] = field(default_factory=Pose)  # None -> FK failure
    retreat_distance: float = 0.10
    calls: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def _record(self, name: str, **kwargs) -> None:
        self.calls.append((name, kwargs))

    def called(self, name: str) -> int:
        return sum(1 for n, _ in self.calls if n == name)

    def move_arm_constrained(self, arm_name, pose, collision_operations, link_padding, constraints, redundancy) -> bool:
        self._record("move_arm_constrained", arm_name=arm_name, pose=pose, redundancy=redundancy)
        logger.info("[DummyMotion] move_arm_constrained -> %s", self.constrained_ok)
        return self.constrained_ok

    def move_arm_to_joint_goal(self, arm_name, joints, collision_operations, link_padding) -> bool:
        self._record("move_arm_to_joint_goal", arm_name=arm_name, joints=list(joints))
        logger.info("[DummyMotion] move_arm_to_joint_goal %s -> %s", list(joints), self.joint_goal_ok)
        return self.joint_goal_ok

    def execute_trajectory(self, arm_name, trajectory) -> bool:
        self._record("execute_trajectory", arm_name=arm_name, trajectory=trajectory)
        logger.info("[DummyMotion] execute_trajectory (%d pts) -> %s", len(trajectory.points), self.execute_ok)
        return self.execute_ok

    def check_state_validity(self, arm_name, joints, collision_operations, link_padding) -> bool:
        self._record("check_state_validity", arm_name=arm_name, joints=list(joints),
                     collision_operations=list(collision_operations), link_padding=list(link_padding))
        return self.state_valid

    def detach_object(self, arm_name, object_name) -> None:
        self._record("detach_object", arm_name=arm_name, object_name=object_name)
        logger.info("[DummyMotion] detach %s", object_name)

    def forward_kinematics(self, arm_name, joints, frame_id) -> Optional[PoseStamped]:
        self._record("forward_kinematics", arm_name=arm_name, joints=list(joints), frame_id=frame_id)
        if self.fk_pose is None:
            return None
        return PoseStamped(pose=self.fk_pose, frame_id=frame_id)

    def translate_gripper(self, arm_name, direction, collision_operations, link_padding,
                          desired_distance, min_distance) -> float:
        self._record("translate_gripper", arm_name=arm_name, direction=direction,
                     collision_operations=list(collision_operations), link_padding=list(link_padding),
                     desired_distance=desired_distance, min_distance=min_distance)
        logger.info("[DummyMotion] translate_gripper desired=%.3f -> %.3f", desired_distance, self.retreat_distance)
        return self.retreat_distance


@dataclass
class DummyGripper(GripperActuationService):
    ok: bool = True
    calls: List[Tuple[str, GraspIntent, Optional[float]]] = field(default_factory=list)

    def command_posture(self, arm_name, grasp, intent, timeout_s) -> bool:
        self.calls.append((arm_name, intent, timeout_s))
        logger.info("[DummyGripper] %s on %s", intent.value, arm_name)
        return self.ok


@dataclass
class DummyReactivePlacer(ReactivePlacementService):
    finishes: bool = True      # False -> wait_for_result times out
    succeeds: bool = True
    goals: List[ReactivePlaceGoal] = field(default_factory=list)
    waits: List[float] = field(default_factory=list)

    def send_goal(self, goal) -> None:
        self.goals.append(goal)

    def wait_for_result(self, timeout_s) -> bool:
        self.waits.append(float(timeout_s))
        return self.finishes

    def get_result(self) -> ReactivePlaceResult:
        return ReactivePlaceResult(success=self.succeeds, error_code=0 if self.succeeds else -1)


@dataclass
class DummyMarkers(VisualizationService):
    poses: Dict[int, PoseStamped] = field(default_factory=dict)
    broken: bool = False

    def add_marker(self, pose) -> int:
        if self.broken:
            raise RuntimeError("[DummyMarkers] marker server down")
        mid = len(self.poses)
        self.poses[mid] = pose
        return mid

    def set_marker_pose(self, marker_id, pose) -> None:
        if self.broken:
            raise RuntimeError("[DummyMarkers] marker server down")
        self.poses[marker_id] = pose
