from examguard.monitoring.lifecycle import SessionLifecycle, format_elapsed
from examguard.monitoring.timers import PeriodicTask

__all__ = ["SessionLifecycle", "PeriodicTask", "format_elapsed"]
