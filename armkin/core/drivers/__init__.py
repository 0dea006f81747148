from .pybullet_driver import PyBulletDriver, PyBulletDebugSink

__all__ = ["PyBulletDriver", "PyBulletDebugSink"]
