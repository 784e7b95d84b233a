# Copyright 2022 Canonical Ltd.
# See LICENSE file for licensing details.

from unittest import mock

import pytest


@pytest.fixture(autouse=True)
def no_install_retry_wait():
    """Don't sleep between package install retries."""
    import host

    with mock.patch.object(host._install.retry, "sleep", lambda _: None):
        yield
