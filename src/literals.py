#!/usr/bin/env python3
# Copyright 2024 Canonical Ltd.
# See LICENSE file for licensing details.

"""Literals used by the Redis Sentinel charm."""

WAITING_MESSAGE = "Waiting for Sentinel..."
SOCKET_TIMEOUT = 1

SENTINEL_PORT = 26379
REDIS_PORT = 6379

SERVICE_PREFIX = "redis-sentinel_"
CONFIG_PATH_TEMPLATE = "/etc/redis-sentinel_{name}.conf"
SYSTEMD_UNIT_PATH_TEMPLATE = "/lib/systemd/system/redis-sentinel_{name}.service"
INIT_SCRIPT_PATH_TEMPLATE = "/etc/init.d/redis-sentinel_{name}"
LOGROTATE_PATH_TEMPLATE = "/etc/logrotate.d/redis-sentinel_{name}"
LOG_FILE_TEMPLATE = "{log_dir}/redis-sentinel_{name}.log"
PID_FILE_TEMPLATE = "{pid_dir}/redis-sentinel_{name}.pid"

DEFAULT_LOG_DIR = "/var/log"
DEFAULT_PID_DIR = "/var/run"
DEFAULT_MONITOR_NAME = "mymaster"

REDIS_USER = "redis"
REDIS_GROUP = "redis"
REDIS_INSTALL_DIR = "/usr/bin"

ROOT_USER = "root"
ROOT_GROUP = "root"

# Sentinel rewrites its own config file at runtime.
CONFIG_FILE_MODE = 0o666
SERVICE_SCRIPT_MODE = 0o755
LOGROTATE_FILE_MODE = 0o644

LOGROTATE_PACKAGE = "logrotate"

OS_RELEASE_PATH = "/etc/os-release"
