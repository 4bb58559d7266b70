"""
Pytest fixtures for referrer map tests
"""
import os
from unittest.mock import AsyncMock

import pytest
from solders.pubkey import Pubkey

from core.config import DRIFT_PROGRAM_ID
from ledger_fakes import FakeLedgerClient

# No real RPC connections in tests
os.environ['TESTING'] = '1'


@pytest.fixture
def program_id():
    return Pubkey.from_string(DRIFT_PROGRAM_ID)


@pytest.fixture
def fake_ledger(program_id):
    return FakeLedgerClient(program_id)


@pytest.fixture
def mock_rpc_client():
    """Mock solana-py AsyncClient"""
    client = AsyncMock()
    client.is_connected = AsyncMock(return_value=True)
    client.close = AsyncMock()
    return client
