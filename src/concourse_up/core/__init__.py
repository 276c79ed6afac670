"""Shared plumbing for concourse-up: context, output, logging and errors."""

from concourse_up.core.exceptions import ConcourseUpError, ConfigError
from concourse_up.core.output import OutputFormat, OutputFormatter

__all__ = [
    "ConcourseUpError",
    "ConfigError",
    "OutputFormat",
    "OutputFormatter",
]
