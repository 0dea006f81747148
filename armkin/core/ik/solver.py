# core/ik/solver.py
"""
Closed-form geometric IK for a base -> shoulder -> elbow [-> wrist] arm.

The base joint turns the arm plane towards the target, the shoulder and elbow
form a two-link planar arm solved with the law of cosines, and the wrist keeps
its seed value unless full-pose IK is requested. Unreachable targets degrade
to limit-clamped poses; they never fail the call.
"""
import logging
import math
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

import numpy as np

from .base import (
    ChainConfigurationError,
    ErrorCode,
    IKResult,
    KinematicsError,
    SolveOptions,
)
from .chain import ArmModel, JointKind, KinematicChain, model_from_config
from .diagnostics import DiagnosticsSink, NullSink, solution_primitives
from .fk import ForwardKinematics
from .geometry import (
    ReachabilityEnvelope,
    angle_between,
    clamp,
    clamp_joint,
    law_of_cosines,
    reach_envelope,
    wrap_angle,
)
from .mimic import MimicPropagator
from .state import KinematicState
from .transforms import Pose, rotation_matrix
from .validator import RequestValidator, coerce_targets

logger = logging.getLogger(__name__)

AXIS_TOLERANCE = 1e-6


class JointRoles(NamedTuple):
    base: int
    shoulder: int
    elbow: int
    wrist: Optional[int]


@dataclass(frozen=True)
class _SolverModel:
    chain: KinematicChain
    fk: ForwardKinematics
    mimic: MimicPropagator
    validator: RequestValidator
    roles: JointRoles
    state: KinematicState


@dataclass(frozen=True)
class _ArmGeometry:
    """Rest-pose measurements taken with base, shoulder and elbow at zero."""
    origin: np.ndarray
    base_axis: np.ndarray
    shoulder: np.ndarray
    shoulder_axis: np.ndarray
    elbow: np.ndarray
    elbow_axis: np.ndarray
    wrist: np.ndarray
    effector: np.ndarray

    def forward(self) -> np.ndarray:
        """Unit direction the arm reaches towards at rest, orthogonal to base and shoulder axes."""
        forward = np.cross(self.shoulder_axis, self.base_axis)
        forward /= np.linalg.norm(forward)
        for reference in (self.effector - self.origin, self.elbow - self.shoulder):
            projection = float(np.dot(reference, forward))
            if abs(projection) > AXIS_TOLERANCE:
                return forward if projection > 0.0 else -forward
        return forward

    def plane(self):
        """In-plane basis (p1, p2) with p1 x p2 == shoulder axis."""
        p1 = self.base_axis
        p2 = np.cross(self.shoulder_axis, p1)
        return p1, p2


def assign_roles(chain: KinematicChain) -> JointRoles:
    """Base, shoulder, elbow and optional wrist are the active revolute joints in chain order."""
    candidates = [
        index for index, joint in enumerate(chain.joints)
        if joint.kind is JointKind.REVOLUTE and not joint.is_mimic
    ]
    if len(candidates) < 3:
        raise ChainConfigurationError(
            f"Expected base, shoulder and elbow revolute joints, found {len(candidates)} active revolute joints"
        )
    wrist = candidates[3] if len(candidates) > 3 else None
    return JointRoles(candidates[0], candidates[1], candidates[2], wrist)


def _world_axis(frame: np.ndarray, axis: Sequence[float]) -> np.ndarray:
    world = frame[:3, :3] @ np.asarray(axis, dtype=float)
    return world / np.linalg.norm(world)


class GeometricIKSolver:
    """
    Geometric IK solver for a single chain with a single tip frame.

    `initialize` must succeed before `solve` is useful; an uninitialized or
    misconfigured solver answers every request with NO_SOLUTION.
    """

    def __init__(self, position_only: bool = True, debug: bool = False,
                 elbow_branch: int = 1, sink: Optional[DiagnosticsSink] = None):
        if elbow_branch not in (1, -1):
            raise ValueError(f"elbow_branch must be 1 or -1, got {elbow_branch}")
        self.position_only = position_only
        self.debug = debug
        self.elbow_branch = elbow_branch
        self.sink = sink or NullSink()
        self.base_frame: Optional[str] = None
        self.group_name: Optional[str] = None
        self._lock = threading.Lock()
        self._model: Optional[_SolverModel] = None

    @classmethod
    def from_config(cls, kinematics: Dict[str, Any], model: Optional[ArmModel] = None,
                    sink: Optional[DiagnosticsSink] = None) -> "GeometricIKSolver":
        """Create from the `kinematics` config section; initialization failures are logged."""
        solver = cls(
            position_only=kinematics.get("position_only", True),
            debug=kinematics.get("debug", False),
            elbow_branch=kinematics.get("elbow_branch", 1),
            sink=sink,
        )
        if model is None:
            model = model_from_config(kinematics)
        solver.initialize(
            model,
            kinematics.get("base_frame", "world"),
            kinematics.get("tip_frames", []),
        )
        return solver

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._model is not None

    def initialize(self, model: Optional[ArmModel], base_frame: str, tip_frames: Sequence[str]) -> bool:
        logger.info("Geometric IK solver initializing")

        if model is None:
            logger.error("Failed to retrieve joint model group")
            return False

        if len(model.chains) != 1:
            logger.error("Only one chain supported in planning group, found %d", len(model.chains))
            return False

        chain = model.chains[0]
        logger.info("Chain: %s -> %s", chain.base_link, chain.tip_link)

        if len(tip_frames) != 1:
            logger.error("Only one tip frame supported, found %d", len(tip_frames))
            return False
        if tip_frames[0] != chain.tip_link:
            logger.warning("Tip frame %s differs from chain tip %s; using chain tip",
                           tip_frames[0], chain.tip_link)

        for joint in chain.joints:
            logger.info(
                "Joint %s: %s %s axis [%g %g %g] limits min %g max %g vel %g",
                joint.name,
                joint.kind.value,
                "mimic" if joint.is_mimic else "active",
                *joint.axis,
                joint.limits.min_position,
                joint.limits.max_position,
                joint.limits.max_velocity,
            )
        for link in chain.link_names:
            logger.info("Link %s", link)

        try:
            solver_model = self._build_model(chain, [chain.tip_link])
        except ChainConfigurationError as e:
            logger.error(f"Chain is not supported by the geometric solver: {e}")
            return False

        logger.info("Initializing with base %s and tip %s", base_frame, chain.tip_link)
        with self._lock:
            self._model = solver_model
            self.base_frame = base_frame
            self.group_name = model.name
        return True

    def _build_model(self, chain: KinematicChain, tip_frames: List[str]) -> _SolverModel:
        fk = ForwardKinematics(chain)
        mimic = MimicPropagator(chain)
        roles = assign_roles(chain)
        state = KinematicState(fk, mimic)
        state.set_to_default_values()

        geometry = self._measure(fk, roles, self._rest_positions(state.positions, roles, mimic))
        if abs(float(np.dot(geometry.base_axis, geometry.shoulder_axis))) > AXIS_TOLERANCE:
            raise ChainConfigurationError("Shoulder axis must be perpendicular to the base axis")
        if np.linalg.norm(np.cross(geometry.shoulder_axis, geometry.elbow_axis)) > AXIS_TOLERANCE:
            raise ChainConfigurationError("Shoulder and elbow axes must be parallel")

        logger.info(
            "Joint roles: base %s, shoulder %s, elbow %s, wrist %s",
            chain.joints[roles.base].name,
            chain.joints[roles.shoulder].name,
            chain.joints[roles.elbow].name,
            chain.joints[roles.wrist].name if roles.wrist is not None else "none",
        )
        return _SolverModel(chain, fk, mimic, RequestValidator(chain, tip_frames), roles, state)

    def supports_chain(self, chain: KinematicChain) -> bool:
        try:
            self._build_model(chain, [chain.tip_link])
        except ChainConfigurationError as e:
            logger.info(f"Chain {chain.base_link} -> {chain.tip_link} not supported: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Accessors and forward kinematics
    # ------------------------------------------------------------------

    def _require_model(self) -> _SolverModel:
        model = self._model
        if model is None:
            raise KinematicsError("IK solver is not initialized")
        return model

    def get_joint_names(self) -> List[str]:
        model = self._model
        return model.chain.joint_names if model else []

    def get_link_names(self) -> List[str]:
        model = self._model
        return model.chain.link_names if model else []

    def get_joint_roles(self) -> JointRoles:
        return self._require_model().roles

    def forward_kinematics(self, joint_values: Sequence[float]) -> Pose:
        return self._require_model().fk.evaluate(joint_values)

    def get_position_fk(self, link_names: Sequence[str], joint_values: Sequence[float]) -> List[Pose]:
        return self._require_model().fk.get_position_fk(link_names, joint_values)

    def default_state(self) -> KinematicState:
        """A private copy of the solver's default kinematic state."""
        return self._require_model().state.copy()

    def reach_envelope(self, seed: Optional[Sequence[float]] = None) -> ReachabilityEnvelope:
        model = self._require_model()
        state = model.state.copy()
        if seed is not None:
            self._apply_seed(model, state, seed)
        geometry = self._measure(model.fk, model.roles,
                                 self._rest_positions(state.positions, model.roles, model.mimic))
        return self._envelope(geometry)[0]

    # ------------------------------------------------------------------
    # Inverse kinematics
    # ------------------------------------------------------------------

    def solve(self, target: Any, seed: Sequence[float], options: Optional[SolveOptions] = None) -> IKResult:
        options = options or SolveOptions()
        model = self._model
        try:
            seed_values = tuple(float(v) for v in seed)
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid seed state: {e}")
            return IKResult(tuple(), ErrorCode.NO_SOLUTION)

        if model is None:
            logger.error("IK solver is not initialized")
            return IKResult(seed_values, ErrorCode.NO_SOLUTION)

        try:
            poses = coerce_targets(target)
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid IK target: {e}")
            return IKResult(seed_values, ErrorCode.NO_SOLUTION)

        if not model.validator.validate_seed_state(seed_values) or not model.validator.validate_target(poses):
            return IKResult(seed_values, ErrorCode.NO_SOLUTION)

        pose = poses[0]
        position_only = self.position_only if options.position_only is None else options.position_only
        debug = self.debug if options.debug is None else options.debug

        logger.debug("IK target %s: %g, %g, %g", model.chain.tip_link, *pose.position)

        state = model.state.copy()
        self._apply_seed(model, state, seed_values)

        geometry = self._solve_position(model, state, pose.position)

        if not position_only and model.roles.wrist is not None:
            wrist_angle = self._fit_wrist(model, state, pose)
            self._commit(model, state, model.roles.wrist, wrist_angle)
            geometry = self._solve_position(model, state, pose.position)

        model.mimic.enforce(state.positions)
        solution = tuple(state.positions)

        if debug:
            self._publish(model, state, geometry, pose)

        if options.on_solution is not None:
            try:
                options.on_solution(Pose(pose.position.copy(), pose.orientation.copy()),
                                    solution, ErrorCode.SUCCESS)
            except Exception as e:
                logger.error(f"Error in IK solution callback: {e}")

        return IKResult(solution, ErrorCode.SUCCESS)

    @staticmethod
    def _apply_seed(model: _SolverModel, state: KinematicState, seed: Sequence[float]):
        for index, (joint, value) in enumerate(zip(model.chain.joints, seed)):
            state.positions[index] = clamp_joint(float(value), joint.limits)
        model.mimic.enforce(state.positions)

    @staticmethod
    def _rest_positions(positions: Sequence[float], roles: JointRoles, mimic: MimicPropagator) -> List[float]:
        rest = list(positions)
        for index in (roles.base, roles.shoulder, roles.elbow):
            rest[index] = 0.0
        mimic.enforce(rest)
        return rest

    @staticmethod
    def _measure(fk: ForwardKinematics, roles: JointRoles, positions: Sequence[float]) -> _ArmGeometry:
        frames = fk.joint_frames(positions)
        joints = fk.chain.joints
        effector = fk.tip_transform(positions)[:3, 3]
        wrist = frames[roles.wrist][:3, 3] if roles.wrist is not None else effector
        return _ArmGeometry(
            origin=frames[roles.base][:3, 3],
            base_axis=_world_axis(frames[roles.base], joints[roles.base].axis),
            shoulder=frames[roles.shoulder][:3, 3],
            shoulder_axis=_world_axis(frames[roles.shoulder], joints[roles.shoulder].axis),
            elbow=frames[roles.elbow][:3, 3],
            elbow_axis=_world_axis(frames[roles.elbow], joints[roles.elbow].axis),
            wrist=np.array(wrist),
            effector=np.array(effector),
        )

    @staticmethod
    def _in_plane(vector: np.ndarray, p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
        return np.array([float(np.dot(vector, p1)), float(np.dot(vector, p2))])

    def _envelope(self, geometry: _ArmGeometry):
        p1, p2 = geometry.plane()
        upper = self._in_plane(geometry.elbow - geometry.shoulder, p1, p2)
        forearm = self._in_plane(geometry.effector - geometry.elbow, p1, p2)
        envelope = reach_envelope(
            upper_arm=float(np.linalg.norm(upper)),
            forearm=float(np.linalg.norm(self._in_plane(geometry.wrist - geometry.elbow, p1, p2))),
            effector_offset=float(np.linalg.norm(self._in_plane(geometry.effector - geometry.wrist, p1, p2))),
            effective_forearm=float(np.linalg.norm(forearm)),
        )
        return envelope, upper, forearm

    def _commit(self, model: _SolverModel, state: KinematicState, index: int, angle: float) -> float:
        joint = model.chain.joints[index]
        value = wrap_angle(angle) if joint.kind is JointKind.REVOLUTE else angle
        stored = state.set_joint_position(index, value)
        logger.debug(
            "IK solution %s: %g [%g] min %g max %g",
            joint.name, angle, stored, joint.limits.min_position, joint.limits.max_position,
        )
        return stored

    def _commit_limit(self, model: _SolverModel, state: KinematicState, index: int, use_max: bool) -> float:
        limits = model.chain.joints[index].limits
        value = limits.max_position if use_max else limits.min_position
        stored = state.set_joint_position(index, value)
        logger.debug("IK solution %s: %s limit %g", model.chain.joints[index].name,
                     "max" if use_max else "min", stored)
        return stored

    def _base_angle(self, geometry: _ArmGeometry, target: np.ndarray) -> float:
        forward = geometry.forward()
        lateral_axis = np.cross(geometry.base_axis, forward)
        offset = target - geometry.origin

        lateral = float(np.dot(geometry.effector - geometry.origin, lateral_axis))
        target_forward = float(np.dot(offset, forward))
        target_lateral = float(np.dot(offset, lateral_axis))

        radius_sq = target_forward ** 2 + target_lateral ** 2
        reach_sq = radius_sq - lateral ** 2
        # Inside the lateral offset cylinder there is no bearing that lines up the arm
        reach = math.sqrt(reach_sq) if reach_sq >= 0.0 else math.nan

        return angle_between(target_forward, target_lateral) - angle_between(reach, lateral)

    def _solve_position(self, model: _SolverModel, state: KinematicState, target: np.ndarray) -> _ArmGeometry:
        roles = model.roles
        geometry = self._measure(model.fk, roles, self._rest_positions(state.positions, roles, model.mimic))

        # Base: bearing of the target corrected by the arm's lateral offset
        base_angle = self._commit(model, state, roles.base, self._base_angle(geometry, target))

        # Express the target in the rest pose by undoing the committed base rotation
        undo = rotation_matrix(geometry.base_axis, -base_angle)[:3, :3]
        local_target = geometry.origin + undo @ (target - geometry.origin)

        p1, p2 = geometry.plane()
        envelope, upper, forearm = self._envelope(geometry)
        reach = self._in_plane(local_target - geometry.shoulder, p1, p2)
        distance = float(np.linalg.norm(reach))

        logger.debug(
            "Target in arm plane %g, %g (distance %g, reach %g -> %g)",
            reach[0], reach[1], distance, envelope.min_reach, envelope.max_reach,
        )

        if distance > envelope.max_reach:
            self._commit_limit(model, state, roles.shoulder, use_max=True)
            self._commit_limit(model, state, roles.elbow, use_max=True)
            return geometry
        if distance < envelope.min_reach:
            self._commit_limit(model, state, roles.shoulder, use_max=False)
            self._commit_limit(model, state, roles.elbow, use_max=False)
            return geometry

        upper_arm = envelope.upper_arm
        effective_forearm = envelope.effective_forearm
        distance = clamp(distance, envelope.min_reach, envelope.max_reach)

        shoulder_interior = law_of_cosines(upper_arm, distance, effective_forearm)
        elbow_interior = law_of_cosines(upper_arm, effective_forearm, distance)

        upper_bearing = angle_between(upper[0], upper[1])
        forearm_bearing = angle_between(forearm[0], forearm[1])
        target_bearing = angle_between(reach[0], reach[1])
        elbow_sign = 1.0 if float(np.dot(geometry.shoulder_axis, geometry.elbow_axis)) >= 0.0 else -1.0
        bend = self.elbow_branch * (math.pi - elbow_interior)

        shoulder_angle = target_bearing - upper_bearing - self.elbow_branch * shoulder_interior
        elbow_angle = elbow_sign * (upper_bearing + bend - forearm_bearing)

        self._commit(model, state, roles.shoulder, shoulder_angle)
        self._commit(model, state, roles.elbow, elbow_angle)
        return geometry

    def _fit_wrist(self, model: _SolverModel, state: KinematicState, pose: Pose) -> float:
        """Best rotation about the wrist axis matching the target orientation."""
        wrist = model.roles.wrist
        axis = np.asarray(model.chain.joints[wrist].axis)
        positions = state.positions

        frame = model.fk.joint_frames(positions, wrist + 1)[-1][:3, :3]
        tip = model.fk.tip_transform(positions)[:3, :3]
        motion = rotation_matrix(axis, positions[wrist])[:3, :3]
        after_wrist = motion.T @ frame.T @ tip

        target = pose.matrix()[:3, :3]
        M = frame.T @ target @ after_wrist.T
        skew = np.array([M[2, 1] - M[1, 2], M[0, 2] - M[2, 0], M[1, 0] - M[0, 1]])
        angle = math.atan2(float(np.dot(axis, skew)), float(np.trace(M) - axis @ M @ axis))

        logger.debug("Wrist orientation fit: %g", angle)
        return angle

    def _publish(self, model: _SolverModel, state: KinematicState, geometry: _ArmGeometry, pose: Pose):
        try:
            roles = model.roles
            positions = state.positions
            shoulder = model.fk.evaluate(positions, roles.shoulder + 1).position
            elbow = model.fk.evaluate(positions, roles.elbow + 1).position
            if roles.wrist is not None:
                wrist = model.fk.evaluate(positions, roles.wrist + 1).position
            else:
                wrist = model.fk.evaluate(positions).position
            self.sink.publish(solution_primitives(geometry.origin, pose.position, shoulder, elbow, wrist))
        except Exception as e:
            logger.warning(f"Failed to publish IK diagnostics: {e}")
