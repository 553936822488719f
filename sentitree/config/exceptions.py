# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Custom exceptions for the configuration system.

We keep these separate so that the CLI can catch config-specific failures
without importing the entire config machinery.
"""


class ConfigError(Exception):
    """Base for all configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a config file cannot be read from disk or parsed as YAML."""


class ConfigValidationError(ConfigError):
    """
    Raised when a config file parses fine but fails schema validation.
    This covers missing required fields, type mismatches, out-of-range values,
    and any other structural problem. Invalid command-line model options
    that survive parsing but break the schema end up here too.
    """


class UnknownArgumentError(ConfigError):
    """Raised when a command-line flag is not recognised by any option parser."""

    def __init__(self, argument: str) -> None:
        super().__init__(f"Unknown argument {argument}")
        self.argument = argument
