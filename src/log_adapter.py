# This file is part of the Redis Sentinel Charm for Juju.
# Copyright 2022 Canonical Ltd.
# See LICENSE file for licensing details.
import logging


class ResourceAdapter(logging.LoggerAdapter):
    """
    This adapter prefixes the log messages with the resource being applied.
    """

    def process(self, msg, kwargs):
        return '[%s] %s' % (self.extra['ref'], msg), kwargs


def resource_logger(logger: logging.Logger, ref: str) -> ResourceAdapter:
    """
    Wrap a logger so that every message names the resource it is about.

    :param logger: the module logger to write to
    :param ref: resource reference, e.g. ``File[/etc/redis-sentinel_a.conf]``
    """
    return ResourceAdapter(logger, {'ref': ref})
