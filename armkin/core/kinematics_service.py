import logging
import threading
from typing import Any, Dict, List, Optional

from .drivers.pybullet_driver import PyBulletDebugSink, PyBulletDriver
from .ik.base import ChainConfigurationError
from .ik.chain import ArmModel, model_from_config
from .ik.diagnostics import DiagnosticsSink, MultiSink
from .ik.solver import GeometricIKSolver
from ..utils.config_manager import ConfigManager

logger = logging.getLogger(__name__)


class KinematicsService:
    """
    Owns the solver built from the current configuration.

    Reloading builds a complete new solver and swaps it in only when it
    initializes, so a bad configuration never replaces a working chain.
    """

    def __init__(self, config_manager: ConfigManager, sink: Optional[DiagnosticsSink] = None):
        self.config_manager = config_manager
        self.sink = sink
        self.solver = GeometricIKSolver(sink=sink)
        self.driver: Optional[PyBulletDriver] = None
        self._lock = threading.Lock()

    def start(self) -> bool:
        """Build the solver from the loaded configuration."""
        with self._lock:
            ok = self._configure(self.config_manager.config)
        if not ok:
            logger.error("Kinematics service started without a usable solver")
        return ok

    def stop(self):
        with self._lock:
            if self.driver is not None:
                self.driver.disable()
                self.driver = None

    def reload(self, new_config: Dict[str, Any], persist: bool = True) -> bool:
        """Re-initialize from `new_config`; the previous solver stays active on failure."""
        with self._lock:
            if not self._configure(new_config):
                return False
            self.config_manager.config = new_config
            if persist:
                self.config_manager.save_config()
        logger.info("Kinematics configuration reloaded")
        return True

    def _load_urdf(self, urdf: Dict[str, Any], group: str):
        driver = PyBulletDriver(urdf["path"], gui=urdf.get("gui", False))
        try:
            driver.connect()
            chain = driver.load_chain(
                urdf.get("base_link", "world"),
                urdf.get("tip_link", "effector"),
                mimics=urdf.get("mimics") or {},
            )
        except Exception:
            driver.disable()
            raise
        return ArmModel(name=group, chains=(chain,)), driver

    def _configure(self, config: Dict[str, Any]) -> bool:
        kinematics = config.get("kinematics") or {}
        urdf = config.get("urdf") or {}
        driver = None
        try:
            if urdf.get("path"):
                model, driver = self._load_urdf(urdf, kinematics.get("group", "arm"))
            else:
                model = model_from_config(kinematics)
        except ChainConfigurationError as e:
            logger.error(f"Invalid kinematic chain configuration: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to build kinematic model: {e}")
            return False

        sinks: List[DiagnosticsSink] = []
        if self.sink is not None:
            sinks.append(self.sink)
        if driver is not None and driver.gui:
            sinks.append(PyBulletDebugSink(driver.physics_client))

        solver = GeometricIKSolver.from_config(kinematics, model=model, sink=MultiSink(sinks))
        if not solver.initialized:
            if driver is not None:
                driver.disable()
            return False

        if self.driver is not None:
            self.driver.disable()
        self.driver = driver
        self.solver = solver
        return True
