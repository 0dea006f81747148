# app.py
import argparse
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from .api.config_routes import config_bp
from .api.ik_routes import ik_bp
from .core.ik.diagnostics import CallbackSink
from .core.kinematics_service import KinematicsService
from .utils.config_manager import ConfigManager
from .utils.logger import setup_logging_from_config

logger = logging.getLogger(__name__)

socketio = SocketIO(cors_allowed_origins="*")


def create_app(config_path=None, persist_config=True):
    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes
    socketio.init_app(app)

    config_manager = ConfigManager(config_path)
    setup_logging_from_config(config_manager.section('logging'))

    # Debug markers go out to every connected client
    sink = CallbackSink(lambda event, data: socketio.emit(event, data))
    service = KinematicsService(config_manager, sink=sink)
    service.start()
    app.config['kinematics_service'] = service
    app.config['PERSIST_CONFIG'] = persist_config

    # Register blueprints
    app.register_blueprint(ik_bp, url_prefix='/api/ik')
    app.register_blueprint(config_bp, url_prefix='/api/config')

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the geometric IK server")
    parser.add_argument('--config', help="Path to a YAML config (defaults to $ARMKIN_CONFIG or the packaged default)")
    parser.add_argument('--host', help="Override server.host")
    parser.add_argument('--port', type=int, help="Override server.port")
    args = parser.parse_args(argv)

    app = create_app(args.config)
    config_manager = app.config['kinematics_service'].config_manager
    host = args.host or config_manager.get('server.host', '0.0.0.0')
    port = args.port or config_manager.get('server.port', 5000)

    logger.info("Serving IK on %s:%s", host, port)
    try:
        socketio.run(app, host=host, port=port, debug=False)
    finally:
        app.config['kinematics_service'].stop()


if __name__ == "__main__":
    main()
