# api/ik_routes.py
import logging

from flask import Blueprint, request, jsonify, current_app

from ..core.ik.base import KinematicsError, SolveOptions

logger = logging.getLogger(__name__)

ik_bp = Blueprint('ik', __name__)


def _solver():
    return current_app.config['kinematics_service'].solver


def _is_number_list(value) -> bool:
    return isinstance(value, list) and all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in value
    )


@ik_bp.route('/solve', methods=['POST'])
def solve_ik():
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "No data"}), 400

    target = data.get("poses", data.get("pose"))
    if target is None:
        return jsonify({"error": "Missing 'pose'"}), 400

    solver = _solver()
    seed = data.get("seed")
    if seed is None:
        try:
            seed = solver.default_state().positions
        except KinematicsError as e:
            logger.error(f"Cannot solve without an initialized solver: {e}")
            return jsonify({"error": str(e)}), 500
    elif not _is_number_list(seed):
        return jsonify({"error": "Invalid seed state 'seed'"}), 400

    options = SolveOptions(
        position_only=data.get("position_only"),
        debug=data.get("debug"),
    )
    result = solver.solve(target, seed, options)
    logger.info("IK request for %s -> %s", target, result.error_code.name)

    status = 200 if result.success else 400
    return jsonify(result.to_dict(solver.get_joint_names())), status


@ik_bp.route('/fk', methods=['POST'])
def forward_kinematics():
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "No data"}), 400

    joints = data.get("joints")
    if not _is_number_list(joints):
        return jsonify({"error": "Invalid joint values 'joints'"}), 400

    solver = _solver()
    links = data.get("links")
    try:
        if links:
            poses = solver.get_position_fk(links, joints)
            return jsonify({"poses": {name: pose.to_dict() for name, pose in zip(links, poses)}})
        pose = solver.forward_kinematics(joints)
        return jsonify({"pose": pose.to_dict()})
    except KinematicsError as e:
        logger.error(f"FK request failed: {e}")
        return jsonify({"error": str(e)}), 400


@ik_bp.route('/joints', methods=['GET'])
def get_joint_names():
    return jsonify({"joints": _solver().get_joint_names()})


@ik_bp.route('/links', methods=['GET'])
def get_link_names():
    return jsonify({"links": _solver().get_link_names()})
