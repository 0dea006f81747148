from flask import Blueprint, request, jsonify, current_app
import logging

config_bp = Blueprint('config', __name__)
logger = logging.getLogger(__name__)


@config_bp.route('', methods=['GET'])
def get_config():
    """Get current configuration."""
    service = current_app.config['kinematics_service']
    return jsonify(service.config_manager.config)


@config_bp.route('', methods=['PUT'])
def update_config():
    """Replace the configuration and re-initialize the solver from it."""
    new_config = request.get_json(silent=True)
    if not new_config or not isinstance(new_config, dict):
        return jsonify({"error": "No config data provided"}), 400

    service = current_app.config['kinematics_service']
    try:
        reloaded = service.reload(new_config, persist=current_app.config.get('PERSIST_CONFIG', True))
    except Exception as e:
        logger.error(f"Failed to update config: {e}")
        return jsonify({"error": str(e)}), 500

    if not reloaded:
        return jsonify({"error": "Configuration rejected; previous chain kept"}), 400
    return jsonify({
        "message": "Configuration updated successfully",
        "joints": service.solver.get_joint_names(),
    })


@config_bp.route('/chain', methods=['GET'])
def get_chain():
    """Joint names, links and solver roles of the active chain."""
    solver = current_app.config['kinematics_service'].solver
    if not solver.initialized:
        return jsonify({"error": "IK solver is not initialized"}), 500
    roles = solver.get_joint_roles()
    names = solver.get_joint_names()
    return jsonify({
        "joints": names,
        "links": solver.get_link_names(),
        "roles": {
            role: (names[index] if index is not None else None)
            for role, index in roles._asdict().items()
        },
    })
