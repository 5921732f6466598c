"""
Configuration module for ACL Snapshot.

Provides the run configuration loaded from files, environment variables
and command-line flags.
"""

from aclsnap.config.run_config import (
    DEFAULT_PORT,
    RunConfiguration,
    load_config_from_env,
)

__all__ = [
    "DEFAULT_PORT",
    "RunConfiguration",
    "load_config_from_env",
]
