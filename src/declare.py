#!/usr/bin/env python3
# Copyright 2024 Canonical Ltd.
# See LICENSE file for licensing details.

"""Declares the resources making up a sentinel instance."""

import logging
from typing import Iterable

from exceptions import UnsupportedPlatformError
from literals import (
    CONFIG_FILE_MODE,
    CONFIG_PATH_TEMPLATE,
    LOGROTATE_FILE_MODE,
    LOGROTATE_PACKAGE,
    LOGROTATE_PATH_TEMPLATE,
    SERVICE_PREFIX,
    SERVICE_SCRIPT_MODE,
)
from models import RedisInstall, SentinelInstance
from platforms import HostPlatform
from render import TemplateRenderer
from resources import ABSENT, File, Package, ResourceGraph, Service

logger = logging.getLogger(__name__)


def declare_sentinel(
    instance: SentinelInstance,
    install: RedisInstall,
    platform: HostPlatform,
    renderer: TemplateRenderer,
) -> ResourceGraph:
    """Declare the desired state of one sentinel instance.

    The config file must exist before the service script, and both before the
    service. A change to either of them refreshes the service.

    Raises:
        UnsupportedPlatformError: if there is no service script for the platform
    """
    template = platform.service_template
    if template is None:
        raise UnsupportedPlatformError(
            f"No service script available for {platform.name} ({platform.family} family)"
        )

    graph = ResourceGraph()
    service = Service(
        name=instance.service_name,
        provider=platform.service_provider,
        running=instance.running,
        enabled=instance.enabled,
    )
    config = File(
        path=instance.config_path,
        content=renderer.sentinel_config(instance),
        owner=install.redis_user,
        group=install.redis_group,
        mode=CONFIG_FILE_MODE,
        replace=instance.force_rewrite,
    )
    script = File(
        path=platform.service_script_path(instance.sentinel_name),
        content=renderer.service_script(template, instance, install),
        mode=SERVICE_SCRIPT_MODE,
    )

    graph.add(config, notify=[service])
    graph.add(script, require=[config], notify=[service])
    graph.add(service, require=[config, script])

    if instance.manage_logrotate:
        package = graph.add(Package(LOGROTATE_PACKAGE))
        graph.add(
            File(
                path=LOGROTATE_PATH_TEMPLATE.format(name=instance.sentinel_name),
                content=renderer.logrotate(instance),
                mode=LOGROTATE_FILE_MODE,
            ),
            require=[package],
        )

    logger.debug("Declared %d resources for %s", len(graph), instance.sentinel_name)
    return graph


def declare_removed(sentinel_name: str, platform: HostPlatform) -> ResourceGraph:
    """Declare a sentinel instance that is no longer configured.

    The service is stopped first, as an init script is needed to stop it.
    """
    graph = ResourceGraph()
    service = graph.add(
        Service(
            name=f"{SERVICE_PREFIX}{sentinel_name}",
            provider=platform.service_provider,
            running=False,
            enabled=False,
        )
    )
    for path in (
        CONFIG_PATH_TEMPLATE.format(name=sentinel_name),
        platform.service_script_path(sentinel_name),
        LOGROTATE_PATH_TEMPLATE.format(name=sentinel_name),
    ):
        graph.add(File(path=path, ensure=ABSENT), require=[service])
    return graph


def declare_all(
    instances: Iterable[SentinelInstance],
    install: RedisInstall,
    platform: HostPlatform,
    renderer: TemplateRenderer,
    removed: Iterable[str] = (),
) -> ResourceGraph:
    """Declare every configured instance and decommission the removed ones."""
    graph = ResourceGraph()
    for instance in instances:
        graph.merge(declare_sentinel(instance, install, platform, renderer))
    for name in sorted(removed):
        logger.info("Decommissioning sentinel instance %s", name)
        graph.merge(declare_removed(name, platform))
    return graph
