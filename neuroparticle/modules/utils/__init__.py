"""Configuration, logging, and performance monitoring."""
from .config import Config
from .logger import setup_logging, GestureLogger
from .performance_monitor import PerformanceMonitor

__all__ = ["Config", "setup_logging", "GestureLogger", "PerformanceMonitor"]
