#!/usr/bin/env python3
# Copyright 2022 Canonical Ltd.
# See LICENSE file for licensing details.

from unittest import TestCase, mock

from ops.model import ActiveStatus, BlockedStatus, WaitingStatus
from ops.testing import ActionFailed, Harness
from redis import ConnectionError, Redis, ResponseError

from charm import RedisSentinelCharm
from tests.helpers import ARCH, CENTOS

MASTER_INFO = [
    "name", "mymaster",
    "ip", "10.0.0.10",
    "port", "6379",
    "flags", "master",
    "num-other-sentinels", "2",
    "quorum", "2",
]


class TestSentinel(TestCase):
    def setUp(self):
        self.harness = Harness(RedisSentinelCharm)
        self.addCleanup(self.harness.cleanup)

        # config changes must not touch the machine running the tests
        for patcher in (
            mock.patch("charm.Engine"),
            mock.patch("charm.detect_platform", return_value=CENTOS),
        ):
            patcher.start()
            self.addCleanup(patcher.stop)

        self.harness.begin()

    @mock.patch.object(Redis, "ping")
    def test_update_status_all_responding(self, ping):
        ping.return_value = True
        self.harness.update_config({"sentinels": "a: {}\nb:\n  sentinel_port: 26380\n"})

        self.harness.charm.on.update_status.emit()

        self.assertEqual(self.harness.charm.unit.status, ActiveStatus())
        self.assertEqual(ping.call_count, 2)

    @mock.patch.object(Redis, "ping")
    def test_update_status_not_responding(self, ping):
        ping.side_effect = ConnectionError("Connection refused")

        self.harness.charm.on.update_status.emit()

        self.assertEqual(self.harness.charm.unit.status, WaitingStatus("Waiting for Sentinel..."))

    @mock.patch.object(Redis, "ping")
    def test_stopped_instances_are_not_checked(self, ping):
        self.harness.update_config({"sentinels": "a:\n  running: false\n"})

        self.harness.charm.on.update_status.emit()

        ping.assert_not_called()
        self.assertEqual(self.harness.charm.unit.status, ActiveStatus())

    def test_update_status_invalid_config(self):
        self.harness.update_config({"sentinels": "a:\n  protected_mode: maybe\n"})

        self.harness.charm.on.update_status.emit()

        self.assertIsInstance(self.harness.charm.unit.status, BlockedStatus)

    @mock.patch.object(Redis, "ping")
    def test_update_status_keeps_failed_pass_blocked(self, ping):
        ping.return_value = True
        with mock.patch("charm.detect_platform", return_value=ARCH):
            self.harness.update_config({})
        self.assertIsInstance(self.harness.charm.unit.status, BlockedStatus)

        self.harness.charm.on.update_status.emit()

        self.assertEqual(
            self.harness.charm.unit.status,
            BlockedStatus("No service script available for Arch Linux (Arch Linux family)"),
        )
        ping.assert_not_called()

    @mock.patch.object(Redis, "ping")
    def test_update_status_after_recovered_pass(self, ping):
        ping.return_value = True
        with mock.patch("charm.detect_platform", return_value=ARCH):
            self.harness.update_config({})

        self.harness.update_config({"sentinels": "a: {}\n"})
        self.harness.charm.on.update_status.emit()

        self.assertEqual(self.harness.charm.unit.status, ActiveStatus())

    def test_client_uses_instance_address(self):
        instance = self.harness.charm.sentinels[0]

        with self.harness.charm.sentinel.sentinel_client(instance) as client:
            kwargs = client.connection_pool.connection_kwargs

        self.assertEqual(kwargs["host"], "127.0.0.1")
        self.assertEqual(kwargs["port"], 26379)

    @mock.patch.object(Redis, "ping")
    def test_check_service_action(self, ping):
        ping.side_effect = [True, ConnectionError("refused")]
        self.harness.update_config({"sentinels": "a: {}\nb: {}\n"})

        output = self.harness.run_action("check-service")

        self.assertEqual(output.results["result"], "a: running\nb: not responding")

    def test_check_service_action_without_instances(self):
        self.harness.update_config({"sentinels": ""})

        output = self.harness.run_action("check-service")

        self.assertEqual(output.results["result"], "No sentinel instances configured")

    @mock.patch.object(Redis, "execute_command")
    def test_get_master_info_action(self, command):
        command.return_value = MASTER_INFO

        output = self.harness.run_action("get-master-info", {"instance": "mymaster"})

        command.assert_called_once_with("SENTINEL MASTER mymaster")
        self.assertEqual(output.results["ip"], "10.0.0.10")
        self.assertEqual(output.results["num-other-sentinels"], "2")

    @mock.patch.object(Redis, "execute_command")
    def test_get_master_info_named_monitor(self, command):
        command.return_value = MASTER_INFO
        self.harness.update_config(
            {"sentinels": "mymaster:\n  monitors:\n    alpha: {}\n    beta: {}\n"}
        )

        self.harness.run_action("get-master-info", {"instance": "mymaster", "monitor": "beta"})

        command.assert_called_once_with("SENTINEL MASTER beta")

    def test_get_master_info_unknown_instance(self):
        with self.assertRaises(ActionFailed) as ctx:
            self.harness.run_action("get-master-info", {"instance": "other"})
        self.assertEqual(ctx.exception.message, "Unknown sentinel instance other")

    @mock.patch.object(Redis, "execute_command")
    def test_get_master_info_error(self, command):
        command.side_effect = ResponseError("ERR No such master with that name")

        with self.assertRaises(ActionFailed) as ctx:
            self.harness.run_action("get-master-info", {"instance": "mymaster"})
        self.assertIn("Could not get master info", ctx.exception.message)
