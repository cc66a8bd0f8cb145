"""Dataset provisioning pipeline and orchestration."""

from .orchestrator import ProvisioningOrchestrator
from .pipeline import (
    ALLOWED_TRANSITIONS,
    PIPELINE_SEQUENCE,
    DashboardReady,
    FormReady,
    InvalidStageTransition,
    Pipeline,
    StageError,
    TableReady,
    Unstarted,
)

__all__ = [
    'ALLOWED_TRANSITIONS',
    'DashboardReady',
    'FormReady',
    'InvalidStageTransition',
    'PIPELINE_SEQUENCE',
    'Pipeline',
    'ProvisioningOrchestrator',
    'StageError',
    'TableReady',
    'Unstarted',
]
