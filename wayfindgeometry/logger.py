"""
Logging configuration for the WayFind geometry resolver
"""

import logging
import os
import sys
from typing import Optional


class GeometryLogger:
    """Centralized logging for the geometry resolver and cache"""

    def __init__(self, name: str = "wayfindgeometry.service", level: int = logging.INFO,
                 log_file: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Prevent duplicate handlers
        if not self.logger.handlers:
            self._setup_handlers(log_file)

    def _setup_handlers(self, log_file: Optional[str]):
        """Setup console and optional file handlers"""
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_format = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        console_handler.setFormatter(console_format)
        self.logger.addHandler(console_handler)

        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_format = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
            )
            file_handler.setFormatter(file_format)
            self.logger.addHandler(file_handler)

    def info(self, message: str):
        """Log info message"""
        self.logger.info(message)

    def debug(self, message: str):
        """Log debug message"""
        self.logger.debug(message)

    def warning(self, message: str):
        """Log warning message"""
        self.logger.warning(message)

    def error(self, message: str):
        """Log error message"""
        self.logger.error(message)

    def log_resolution(self, route_id: Optional[str], source: str, num_points: int,
                       duration_ms: float, cache_hit: bool):
        """Log a finished resolution"""
        self.info(f"Geometry resolved: route={route_id}, source={source}, points={num_points}, "
                  f"duration={duration_ms:.2f}ms, cache_hit={cache_hit}")

    def log_provider_attempt(self, provider: str, duration_ms: float, success: bool,
                             reason: Optional[str] = None):
        """Log a single provider attempt"""
        message = f"Provider attempt: {provider}, duration={duration_ms:.2f}ms, success={success}"
        if reason:
            message += f", reason={reason}"
        if success:
            self.debug(message)
        else:
            self.warning(message)


def _level_from_env() -> int:
    return getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)


# Global logger instance
logger = GeometryLogger(level=_level_from_env(), log_file=os.getenv('LOG_FILE'))
