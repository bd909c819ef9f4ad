"""
Configuration for running Intcode machines.

Settings come from defaults, an optional env file, and INTCODE_*
environment variables, in increasing order of precedence.
"""

from dataclasses import dataclass
from typing import Optional
import logging
import os

from dotenv import load_dotenv

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class IntcodeConfig:
    """Runtime configuration."""
    log_level: str = "WARNING"
    join_timeout: Optional[float] = None     # None = wait forever
    max_steps: Optional[int] = None          # None = no instruction budget

    def __post_init__(self):
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
        if self.join_timeout is not None and self.join_timeout <= 0:
            raise ValueError("join_timeout must be positive")
        if self.max_steps is not None and self.max_steps <= 0:
            raise ValueError("max_steps must be positive")

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "IntcodeConfig":
        """
        Build a config from the environment.

        Args:
            env_file: Optional dotenv file to load first; variables
                already set in the environment win

        Returns:
            IntcodeConfig
        """
        if env_file:
            load_dotenv(env_file, override=False)

        timeout = os.environ.get("INTCODE_JOIN_TIMEOUT")
        max_steps = os.environ.get("INTCODE_MAX_STEPS")

        return cls(
            log_level=os.environ.get("INTCODE_LOG_LEVEL", "WARNING"),
            join_timeout=float(timeout) if timeout else None,
            max_steps=int(max_steps) if max_steps else None,
        )
