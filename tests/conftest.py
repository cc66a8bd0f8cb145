"""Pytest configuration for portal tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from mosaic.app.models import DatasetDefinition, FieldDefinition
from mosaic.app.providers import grafana_client, nocodb_client
from mosaic.app.db import supabase_client


@pytest.fixture
def weight_definition() -> DatasetDefinition:
    """Weight log: one numeric field, one text field, a timestamp field."""
    return DatasetDefinition(
        name='Weight Log',
        fields=(
            FieldDefinition('weight', 'number', 'kg'),
            FieldDefinition('mood', 'text'),
            FieldDefinition('measured_at', 'date'),
        ),
    )


@pytest.fixture(autouse=True)
def _reset_shared_http_clients():
    yield
    nocodb_client._reset_shared_async_client_for_tests()
    grafana_client._reset_shared_async_client_for_tests()
    supabase_client._reset_shared_async_client_for_tests()
