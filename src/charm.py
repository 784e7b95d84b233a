#!/usr/bin/env python3
# Copyright 2022 Canonical Ltd.
# See LICENSE file for licensing details.

"""Charm code for Redis Sentinel service."""

import logging
from typing import List, Tuple

from ops.charm import ActionEvent, CharmBase
from ops.framework import EventBase, StoredState
from ops.main import main
from ops.model import ActiveStatus, BlockedStatus, MaintenanceStatus

from declare import declare_all
from engine import ApplyReport, Engine
from exceptions import (
    ResourceApplyError,
    ResourceGraphError,
    SentinelValidationError,
    UnsupportedPlatformError,
)
from models import RedisInstall, SentinelInstance, load_install, parse_sentinels
from platforms import HostPlatform, detect_platform
from render import TemplateRenderer
from resources import ResourceGraph
from sentinel import Sentinel

logger = logging.getLogger(__name__)


class RedisSentinelCharm(CharmBase):
    """Charm the service.

    Deploy one or more redis-sentinel instances on the machine, each one
    with its own configuration file and OS service.
    """

    _stored = StoredState()

    def __init__(self, *args):
        super().__init__(*args)

        self._stored.set_default(instances=[], blocked="")
        self.sentinel = Sentinel(self)

        self.framework.observe(self.on.install, self._configure)
        self.framework.observe(self.on.config_changed, self._configure)
        self.framework.observe(self.on.upgrade_charm, self._configure)

        self.framework.observe(self.on.show_plan_action, self._show_plan_action)

    def _configure(self, _: EventBase) -> None:
        """Validate, declare and apply every configured sentinel instance.

        Invalid config blocks the unit without touching the host. Failures
        while applying are raised so that Juju retries the hook.
        """
        self.unit.status = MaintenanceStatus("Configuring sentinel instances")
        try:
            graph, instances = self._declare()
        except (SentinelValidationError, UnsupportedPlatformError, ResourceGraphError) as e:
            logger.error("Not configuring sentinel: {}".format(e.message))
            self._block(e.message)
            return

        try:
            report = self._engine().apply(graph)
        except ResourceApplyError as e:
            logger.error("Error applying {}".format(e.message))
            self._block(f"Failed to apply {e.ref}")
            raise

        self._stored.blocked = ""
        self._stored.instances = [instance.sentinel_name for instance in instances]
        logger.info(
            "Sentinel instances {} configured, changed: {}".format(
                self._stored.instances, report.changed
            )
        )
        self.unit.status = ActiveStatus()

    def _show_plan_action(self, event: ActionEvent) -> None:
        """Handle the show_plan action.

        Lists the resources the next configuration pass would change.
        """
        try:
            graph, _ = self._declare()
        except (SentinelValidationError, UnsupportedPlatformError, ResourceGraphError) as e:
            event.fail(e.message)
            return

        try:
            report: ApplyReport = self._engine(noop=True).apply(graph)
        except ResourceApplyError as e:
            logger.error("Error planning {}".format(e.message))
            event.fail(e.message)
            return

        event.set_results({"changes": "\n".join(report.changed) or "No changes"})

    def _block(self, message: str) -> None:
        """Set a blocked status that update-status keeps until a pass succeeds."""
        self._stored.blocked = message
        self.unit.status = BlockedStatus(message)

    def _declare(self) -> Tuple[ResourceGraph, List[SentinelInstance]]:
        """Build the resource graph for the current config.

        Returns:
            The resource graph and the instances it configures
        """
        instances = self.sentinels
        configured = {instance.sentinel_name for instance in instances}
        removed = set(self._stored.instances) - configured

        graph = declare_all(
            instances,
            self.redis_install,
            self.host_platform,
            TemplateRenderer(self.charm_dir / "templates"),
            removed=removed,
        )
        return graph, instances

    def _engine(self, noop: bool = False) -> Engine:
        return Engine(self.host_platform, noop=noop)

    @property
    def sentinels(self) -> List[SentinelInstance]:
        """The validated sentinel instances from the charm config."""
        return parse_sentinels(self.config["sentinels"])

    @property
    def redis_install(self) -> RedisInstall:
        return load_install(
            {
                "redis_user": self.config["redis-user"],
                "redis_group": self.config["redis-group"],
                "redis_install_dir": self.config["redis-install-dir"],
            }
        )

    @property
    def blocked_reason(self) -> str:
        """Why the last configuration pass failed, empty after a successful one."""
        return self._stored.blocked

    @property
    def host_platform(self) -> HostPlatform:
        return detect_platform()


if __name__ == "__main__":  # pragma: nocover
    main(RedisSentinelCharm)
