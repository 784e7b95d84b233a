#!/usr/bin/env python3
# Copyright 2022 Canonical Ltd.
# See LICENSE file for licensing details.


"""Charm code for checking the sentinel instances.

Sentinel provides high availability for Redis.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Optional

from ops.charm import ActionEvent
from ops.framework import Object
from ops.model import ActiveStatus, BlockedStatus, WaitingStatus
from redis import ConnectionError, Redis, ResponseError, TimeoutError

from exceptions import SentinelValidationError
from literals import SOCKET_TIMEOUT, WAITING_MESSAGE
from models import SentinelInstance

logger = logging.getLogger(__name__)


class Sentinel(Object):
    """Sentinel class.

    Talks to the sentinel instances deployed on the unit, handling the
    status checks and the actions that query them.
    """

    def __init__(self, charm) -> None:
        super().__init__(charm, "sentinel")

        self.charm = charm
        self.framework.observe(charm.on.update_status, self._update_status)
        self.framework.observe(charm.on.check_service_action, self._check_service_action)
        self.framework.observe(charm.on.get_master_info_action, self._get_master_info_action)

    def _update_status(self, _) -> None:
        """Handle update_status event.

        Every instance that should be running must answer a PING. A unit
        blocked by the last configuration pass stays blocked.
        """
        logger.info("Beginning update_status")
        if self.charm.blocked_reason:
            self.charm.unit.status = BlockedStatus(self.charm.blocked_reason)
            return

        try:
            instances = self.charm.sentinels
        except SentinelValidationError as e:
            self.charm.unit.status = BlockedStatus(e.message)
            return

        health = self.check_instances(instances)
        down = sorted(name for name, up in health.items() if not up)
        if down:
            logger.warning("Sentinel instances not responding: {}".format(", ".join(down)))
            self.charm.unit.status = WaitingStatus(WAITING_MESSAGE)
            return

        self.charm.unit.status = ActiveStatus()

    def _check_service_action(self, event: ActionEvent) -> None:
        """Handle for check_service action.

        Checks if every sentinel instance is responding, setting the results
        per instance.
        """
        logger.info("Beginning check_service")
        try:
            instances = self.charm.sentinels
        except SentinelValidationError as e:
            event.fail(e.message)
            return

        health = self.check_instances(instances)
        lines = [
            "{}: {}".format(name, "running" if up else "not responding")
            for name, up in sorted(health.items())
        ]
        event.set_results({"result": "\n".join(lines) or "No sentinel instances configured"})

    def _get_master_info_action(self, event: ActionEvent) -> None:
        """Handle the get_master_info action.

        Sets the result of the action with the master tracked by a sentinel.
        """
        name = event.params["instance"]
        try:
            instances = {i.sentinel_name: i for i in self.charm.sentinels}
        except SentinelValidationError as e:
            event.fail(e.message)
            return

        instance = instances.get(name)
        if instance is None:
            event.fail(f"Unknown sentinel instance {name}")
            return

        monitor = event.params.get("monitor") or sorted(instance.monitors)[0]
        info = self.get_master_info(instance, monitor)
        if info is None:
            event.fail(f"Could not get master info for {monitor} from {name}")
            return

        event.set_results({key: str(value) for key, value in info.items()})

    def check_instances(self, instances) -> Dict[str, bool]:
        """Ping every instance that should be running."""
        return {
            instance.sentinel_name: self.is_responding(instance)
            for instance in instances
            if instance.running
        }

    def is_responding(self, instance: SentinelInstance) -> bool:
        with self.sentinel_client(instance) as sentinel:
            try:
                return bool(sentinel.ping())
            except (ConnectionError, TimeoutError) as e:
                logger.warning(
                    "Sentinel {} is not responding: {}".format(instance.sentinel_name, e)
                )
        return False

    def get_master_info(self, instance: SentinelInstance, monitor: str) -> Optional[dict]:
        """Connect to sentinel and return what it knows about a master."""
        with self.sentinel_client(instance) as sentinel:
            try:
                master_info = sentinel.execute_command(f"SENTINEL MASTER {monitor}")

                # NOTE: master info from redis comes like a list:
                # ['key1', 'value1', 'key2', 'value2', ...]
                # this creates a dictionary in a more readable form.
                return dict(zip(master_info[::2], master_info[1::2]))

            except (ConnectionError, TimeoutError, ResponseError) as e:
                logger.error("Error when querying sentinel: {}".format(e))

        return None

    @contextmanager
    def sentinel_client(self, instance: SentinelInstance, timeout=SOCKET_TIMEOUT) -> Redis:
        """Creates a Redis client connected to a sentinel instance.

        Args:
            instance: the sentinel instance to connect to
            timeout: int with the number of seconds for timeout on connection

        Returns:
            Redis: redis client connected to a sentinel instance
        """
        client = Redis(
            host=instance.client_host,
            port=instance.sentinel_port,
            socket_timeout=timeout,
            decode_responses=True,
        )
        try:
            yield client
        finally:
            client.close()
