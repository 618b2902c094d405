"""Fixtures for CRM tests.

Every test gets a fresh temp-file SQLite DatabaseManager, a gateway wrapper
that can inject failures, a local file storage and a notification hub with
a MemoryPresenter for assertions.
"""
import os
import shutil
import tempfile
from pathlib import Path

import pytest

from database import DatabaseManager, LocalFileStorage
from interface import MemoryPresenter, NotificationHub
from stores.manager import CRMContext
from stores.reconciliation import Reconciler
from tests.helpers import (
    FILE_SECRET, RECORD_SECRET, USER_ID, FailingGateway, StepClock,
)


@pytest.fixture
def temp_dir():
    path = tempfile.mkdtemp(prefix="crm-tests-")
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def temp_db(temp_dir):
    """Yield a fresh DatabaseManager bound to a temp SQLite database."""
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(database_url=f"sqlite:///{db_path}")
    manager.create_tables()
    try:
        yield manager
    finally:
        manager.close()


@pytest.fixture
def gateway(temp_db):
    return FailingGateway(temp_db.gateway)


@pytest.fixture
def storage(temp_dir):
    return LocalFileStorage(root=Path(temp_dir) / "files")


@pytest.fixture
def presenter():
    return MemoryPresenter()


@pytest.fixture
def notifier(presenter):
    hub = NotificationHub()
    hub.register(presenter)
    return hub


@pytest.fixture
def reconciler(notifier):
    return Reconciler(notifier)


@pytest.fixture
def ctx(gateway, storage, notifier):
    """CRMContext for USER_ID with distinct record/file secrets."""
    return CRMContext(
        USER_ID, gateway, storage, notifier,
        record_secret=RECORD_SECRET,
        file_secret=FILE_SECRET,
        clock=StepClock(),
    )
