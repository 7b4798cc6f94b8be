"""Special pytest fixture configuration file.

Fixtures defined here are available to every test under ``account_auth``.
"""
from unittest import mock

import pytest

from account_auth.app_logging import ActivityLog
from account_auth.services import Mailer


@pytest.fixture
def log():
    """An activity log that records calls instead of emitting them."""
    return mock.MagicMock(spec=ActivityLog)


@pytest.fixture
def mailer():
    return mock.AsyncMock(spec=Mailer)
