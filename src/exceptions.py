#!/usr/bin/env python3
# Copyright 2022 Canonical Ltd.
# See LICENSE file for licensing details.

"""Module with custom exceptions related to the Redis Sentinel charm."""


class RedisSentinelError(Exception):
    """Base class for exceptions in this module."""

    def __repr__(self):
        """String representation of the Error class."""
        return "<{}.{} {}>".format(type(self).__module__, type(self).__name__, self.args)

    @property
    def name(self):
        """Return a string representation of the model plus class."""
        return "<{}.{}>".format(type(self).__module__, type(self).__name__)

    @property
    def message(self):
        """Return the message passed as an argument."""
        return self.args[0]


class SentinelValidationError(RedisSentinelError):
    """Exception raised when sentinel instance parameters are invalid."""


class UnsupportedPlatformError(RedisSentinelError):
    """Exception raised when no service script exists for the host platform."""


class ResourceGraphError(RedisSentinelError):
    """Exception raised when the declared resources can't be ordered."""


class DuplicateResourceError(ResourceGraphError):
    """Exception raised when two different resources share a reference."""


class ResourceApplyError(RedisSentinelError):
    """Exception raised when a resource can't be converged on the host."""

    def __init__(self, ref: str, reason: str):
        super().__init__(f"{ref}: {reason}")
        self.ref = ref
        self.reason = reason
