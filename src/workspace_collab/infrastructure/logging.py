"""
Centralized logging configuration for the collaboration server.

This module provides consistent logging setup across all server components
using YAML configuration for better maintainability with production controls.
"""

import logging
from typing import Optional

from .logging_manager import setup_logging as _setup_logging


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for a server component using YAML configuration.

    Args:
        component_name: Dotted component name (e.g. 'workspace_collab.server').
            Names under 'workspace_collab' inherit the package file handler.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). If None,
            uses environment-appropriate level:
            Development=DEBUG, Staging=INFO, Production=WARNING
        log_file: Optional log file path, used only when no YAML config is found

    Returns:
        logging.Logger: Configured logger instance
    """
    return _setup_logging(component_name, log_level, log_file)

