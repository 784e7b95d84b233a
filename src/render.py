#!/usr/bin/env python3
# Copyright 2024 Canonical Ltd.
# See LICENSE file for licensing details.

"""Rendering of the files managed for a sentinel instance."""

import logging
from pathlib import Path
from typing import Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from models import RedisInstall, SentinelInstance

logger = logging.getLogger(__name__)

SENTINEL_CONFIG_TEMPLATE = "sentinel.conf.j2"
LOGROTATE_TEMPLATE = "logrotate.j2"


class TemplateRenderer:
    """Renders the templates shipped in the charm ``templates`` directory.

    Missing templates raise `jinja2.TemplateNotFound` and undefined
    variables raise `jinja2.UndefinedError`.
    """

    def __init__(self, template_dir: Union[str, Path]) -> None:
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_name: str, **context) -> str:
        logger.debug("Rendering %s", template_name)
        return self.env.get_template(template_name).render(**context)

    def sentinel_config(self, instance: SentinelInstance) -> str:
        """Render the sentinel configuration file."""
        return self.render(
            SENTINEL_CONFIG_TEMPLATE,
            sentinel=instance,
            monitors=sorted(instance.monitors.items()),
        )

    def service_script(
        self, template_name: str, instance: SentinelInstance, install: RedisInstall
    ) -> str:
        """Render the systemd unit or init script starting the instance."""
        return self.render(
            template_name,
            sentinel=instance,
            install=install,
            redis_server=f"{install.redis_install_dir}/redis-server",
        )

    def logrotate(self, instance: SentinelInstance) -> str:
        return self.render(LOGROTATE_TEMPLATE, sentinel=instance)
