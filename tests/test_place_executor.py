# ==================================
# FILE: tests/test_place_executor.py
# ==================================
import logging

import pytest

from place_sdk.core.config import HandDescription, PlaceConfig
from place_sdk.core.message_types import (
    AttemptResult,
    Constraints,
    ErrorCause,
    Grasp,
    GraspIntent,
    GripperTranslation,
    InterpolatedPath,
    JointTrajectory,
    Pose,
    PlaceGoal,
    PlaceResultCode,
    PoseStamped,
    UnrecoverableError,
    UnrecoverableKind,
    Vector3Stamped,
)
from place_sdk.core.robot_io import (
    DummyGripper,
    DummyKinematics,
    DummyMotion,
    DummyReactivePlacer,
    DummyTransformer,
)
from place_sdk.execution.approach import ReactiveApproach, ScriptedApproach
from place_sdk.execution.place_executor import PlaceExecutor, place_first_feasible

MOTION_COMMANDS = {"move_arm_constrained", "move_arm_to_joint_goal", "execute_trajectory",
                   "detach_object", "translate_gripper"}


def config(approach="scripted"):
    return PlaceConfig(approach=approach, hands={"right_arm": HandDescription(
        gripper_collision_name="r_end_effector",
        gripper_links=["r_palm"],
        attached_link_name="r_attached",
        gripper_frame="r_wrist",
        robot_frame="base_link",
    )})


def goal(**kw):
    base = dict(
        arm_name="right_arm",
        grasp=Grasp(grasp_pose=Pose(position=(-0.1, 0.0, 0.0))),
        approach=GripperTranslation(Vector3Stamped((0.0, 0.0, -1.0), "base_link"), 0.10, 0.05),
        desired_retreat_distance=0.10,
        min_retreat_distance=0.05,
        collision_object_name="mug",
        collision_support_surface_name="table",
    )
    base.update(kw)
    return PlaceGoal(**base)


def location(frame="table"):
    return PoseStamped(pose=Pose(position=(0.2, 0.1, 0.0)), frame_id=frame)


class Rig:
    """Executor wired to scripted dummies."""

    def __init__(self, approach="scripted", **motion_kw):
        self.transformer = DummyTransformer(
            frames={"table": Pose(position=(0.5, 0.0, 0.7))}, root_frame="base_link")
        self.kinematics = DummyKinematics(
            descent=InterpolatedPath(JointTrajectory(points=[[0.0, 0.1, 0.2, 0.3], [0.1, 0.2, 0.3, 0.4]]), 0.10),
            retreat=InterpolatedPath(JointTrajectory(points=[[0.1, 0.2, 0.3, 0.4], [0.2, 0.3, 0.4, 0.5]]), 0.10),
        )
        self.motion = DummyMotion(**motion_kw)
        self.gripper = DummyGripper()
        self.reactive = DummyReactivePlacer()
        self.executor = PlaceExecutor(
            config=config(approach),
            transformer=self.transformer,
            kinematics=self.kinematics,
            motion=self.motion,
            gripper=self.gripper,
            reactive=self.reactive,
        )

    def commands(self):
        return [n for n, _ in self.motion.calls if n in MOTION_COMMANDS]


def test_full_place_succeeds_in_order():
    rig = Rig()
    result = rig.executor.place(goal(), location())

    assert result.code is PlaceResultCode.SUCCESS
    assert result.continuable
    assert rig.commands() == ["move_arm_to_joint_goal", "execute_trajectory", "detach_object", "translate_gripper"]
    assert rig.motion.calls[1][1]["joints"] == [0.0, 0.1, 0.2, 0.3]
    assert rig.gripper.calls == [("right_arm", GraspIntent.RELEASE, None)]


def test_short_retreat_after_release_is_not_continuable():
    rig = Rig(retreat_distance=0.02)
    result = rig.executor.place(goal(), location())
    assert result.code is PlaceResultCode.RETREAT_FAILED
    assert not result.continuable
    # object was released before the retreat failed
    assert rig.gripper.calls


@pytest.mark.parametrize("descent", [
    InterpolatedPath(JointTrajectory(points=[[0.0] * 4]), 0.10),
    InterpolatedPath(JointTrajectory(), 0.0, ErrorCause.COLLISION),
    InterpolatedPath(JointTrajectory(points=[[0.0] * 4]), 0.01, ErrorCause.OTHER),
])
@pytest.mark.parametrize("approach", ["scripted", "reactive"])
def test_feasibility_only_never_moves(descent, approach):
    rig = Rig(approach=approach)
    rig.kinematics.descent = descent
    result = rig.executor.place(goal(only_perform_feasibility_test=True), location())

    assert result.continuable
    assert rig.commands() == []
    assert rig.gripper.calls == []
    assert rig.reactive.goals == []


def test_feasibility_only_success():
    rig = Rig()
    result = rig.executor.place(goal(only_perform_feasibility_test=True), location())
    assert result.code is PlaceResultCode.SUCCESS
    assert result.continuable


def test_negotiation_failure_returned_unchanged():
    rig = Rig()
    rig.kinematics.descent = InterpolatedPath(JointTrajectory(), 0.03, ErrorCause.COLLISION)
    result = rig.executor.place(goal(), location())
    assert result == AttemptResult(PlaceResultCode.PLACE_IN_COLLISION, True)
    assert rig.commands() == []


@pytest.mark.parametrize("feasibility_only", [False, True])
def test_empty_descent_without_minimum_is_classified(feasibility_only):
    rig = Rig()
    rig.kinematics.descent = InterpolatedPath(JointTrajectory(), 0.0, ErrorCause.COLLISION)
    g = goal(approach=GripperTranslation(Vector3Stamped((0.0, 0.0, -1.0), "base_link"), 0.10, 0.0),
             only_perform_feasibility_test=feasibility_only)

    result = rig.executor.place(g, location())

    assert result == AttemptResult(PlaceResultCode.PLACE_IN_COLLISION, True)
    assert rig.commands() == []


def test_constrained_move_falls_back_once():
    rig = Rig(constrained_ok=False)
    g = goal(path_constraints=Constraints(orientation_constraints=["keep_upright"]))
    result = rig.executor.place(g, location())

    assert result.code is PlaceResultCode.SUCCESS
    assert rig.motion.called("move_arm_constrained") == 1
    assert rig.motion.called("move_arm_to_joint_goal") == 1
    assert rig.commands()[:3] == ["move_arm_constrained", "move_arm_to_joint_goal", "execute_trajectory"]


def test_constrained_move_uses_recomputed_preplace_pose():
    rig = Rig(fk_pose=Pose(position=(0.3, 0.0, 0.4)))
    g = goal(path_constraints=Constraints(orientation_constraints=["keep_upright"]))
    result = rig.executor.place(g, location())

    assert result.code is PlaceResultCode.SUCCESS
    assert rig.motion.called("move_arm_to_joint_goal") == 0
    fk = [a for n, a in rig.motion.calls if n == "forward_kinematics"][0]
    assert fk["joints"] == [0.0, 0.1, 0.2, 0.3]
    assert fk["frame_id"] == "table"
    moved = [a for n, a in rig.motion.calls if n == "move_arm_constrained"][0]
    assert moved["pose"].pose.position == (0.3, 0.0, 0.4)
    assert moved["redundancy"] == 0.2


def test_unsupported_constraints_downgrade_with_warning(caplog):
    rig = Rig()
    g = goal(path_constraints=Constraints(orientation_constraints=["o"], position_constraints=["p"]))
    with caplog.at_level(logging.WARNING):
        result = rig.executor.place(g, location())

    assert result.code is PlaceResultCode.SUCCESS
    assert rig.motion.called("move_arm_constrained") == 0
    assert rig.motion.called("move_arm_to_joint_goal") == 1
    assert any("not yet handled" in r.getMessage() for r in caplog.records)


def test_fk_failure_is_unrecoverable():
    rig = Rig(fk_pose=None)
    g = goal(path_constraints=Constraints(orientation_constraints=["keep_upright"]))
    result = rig.executor.place(g, location())

    assert isinstance(result, UnrecoverableError)
    assert result.kind is UnrecoverableKind.INTERNAL_INCONSISTENCY
    assert not result.continuable
    assert rig.commands() == []


def test_missing_frame_is_unrecoverable():
    rig = Rig()
    result = rig.executor.place(goal(), location(frame="shelf"))
    assert isinstance(result, UnrecoverableError)
    assert result.kind is UnrecoverableKind.FRAME_UNAVAILABLE
    assert rig.kinematics.calls == []


def test_transform_failure_is_unrecoverable():
    rig = Rig()
    rig.transformer.fail_transform = True
    result = rig.executor.place(goal(), location())
    assert isinstance(result, UnrecoverableError)
    assert result.kind is UnrecoverableKind.TRANSFORM_FAILURE


def test_move_arm_failure_is_continuable():
    rig = Rig(joint_goal_ok=False)
    result = rig.executor.place(goal(), location())
    assert result.code is PlaceResultCode.MOVE_ARM_FAILED
    assert result.continuable
    assert rig.motion.called("execute_trajectory") == 0


def test_approach_failure_is_not_continuable():
    rig = Rig(execute_ok=False)
    result = rig.executor.place(goal(), location())
    assert result.code is PlaceResultCode.PLACE_FAILED
    assert not result.continuable
    assert rig.motion.called("detach_object") == 0
    assert rig.gripper.calls == []


def test_strategy_selected_from_config():
    assert isinstance(Rig().executor.strategy, ScriptedApproach)
    assert isinstance(Rig(approach="reactive").executor.strategy, ReactiveApproach)
    with pytest.raises(ValueError):
        PlaceExecutor(config=config("reactive"), transformer=DummyTransformer(), kinematics=DummyKinematics(),
                      motion=DummyMotion(), gripper=DummyGripper())


def test_reactive_approach_success():
    rig = Rig(approach="reactive")
    result = rig.executor.place(goal(), location())

    assert result.code is PlaceResultCode.SUCCESS
    assert rig.motion.called("execute_trajectory") == 0
    (sent,) = rig.reactive.goals
    assert sent.arm_name == "right_arm"
    assert sent.collision_object_name == "mug"
    assert sent.collision_support_surface_name == "table"
    assert sent.trajectory.points == rig.kinematics.descent.trajectory.points
    assert sent.final_place_pose.frame_id == "base_link"
    assert sent.final_place_pose.pose.position == pytest.approx((0.6, 0.1, 0.7))
    assert rig.reactive.waits == [60.0]


def test_reactive_timeout_reported_as_place_failed():
    rig = Rig(approach="reactive")
    rig.reactive.finishes = False
    result = rig.executor.place(goal(), location())
    assert result.code is PlaceResultCode.PLACE_FAILED
    assert not result.continuable
    assert "timed out" in result.detail
    assert rig.gripper.calls == []


def test_reactive_failure_reported_as_place_failed():
    rig = Rig(approach="reactive")
    rig.reactive.succeeds = False
    result = rig.executor.place(goal(), location())
    assert result.code is PlaceResultCode.PLACE_FAILED
    assert not result.continuable
    assert "timed out" not in result.detail


def test_failures_before_approach_continuable_after_not():
    before = [
        Rig(joint_goal_ok=False).executor.place(goal(), location()),
        Rig(state_valid=False).executor.place(goal(), location()),
    ]
    after = [
        Rig(execute_ok=False).executor.place(goal(), location()),
        Rig(retreat_distance=0.0).executor.place(goal(), location()),
    ]
    assert all(r.continuable and not r.success for r in before)
    assert all(not r.continuable for r in after)


class ScriptedExecutor:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.tried = []

    def place(self, goal, location):
        self.tried.append(location)
        return self.outcomes.pop(0)


def test_candidates_tried_until_success():
    ex = ScriptedExecutor([
        AttemptResult(PlaceResultCode.PLACE_IN_COLLISION, True),
        AttemptResult(PlaceResultCode.MOVE_ARM_FAILED, True),
        AttemptResult(PlaceResultCode.SUCCESS, True),
        AttemptResult(PlaceResultCode.SUCCESS, True),
    ])
    result, idx = place_first_feasible(ex, goal(), [location()] * 4)
    assert result.success
    assert idx == 2
    assert len(ex.tried) == 3


def test_candidates_stop_on_commitment_failure():
    ex = ScriptedExecutor([
        AttemptResult(PlaceResultCode.PREPLACE_UNFEASIBLE, True),
        AttemptResult(PlaceResultCode.PLACE_FAILED, False),
        AttemptResult(PlaceResultCode.SUCCESS, True),
    ])
    result, idx = place_first_feasible(ex, goal(), [location()] * 3)
    assert result.code is PlaceResultCode.PLACE_FAILED
    assert idx == 1
    assert len(ex.tried) == 2


def test_candidates_stop_on_unrecoverable_and_handle_empty():
    ex = ScriptedExecutor([UnrecoverableError(UnrecoverableKind.FRAME_UNAVAILABLE, "no tf")])
    result, idx = place_first_feasible(ex, goal(), [location(), location()])
    assert isinstance(result, UnrecoverableError)
    assert idx == 0

    assert place_first_feasible(ScriptedExecutor([]), goal(), []) == (None, None)

    ex = ScriptedExecutor([AttemptResult(PlaceResultCode.PLACE_UNFEASIBLE, True)] * 2)
    result, idx = place_first_feasible(ex, goal(), [location(), location()])
    assert result.code is PlaceResultCode.PLACE_UNFEASIBLE
    assert idx == 1
