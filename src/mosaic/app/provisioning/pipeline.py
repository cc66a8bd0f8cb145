"""Forward-only provisioning pipeline for dataset templates.

Implements the canonical provisioning sequence:
  unstarted -> table_ready -> form_ready -> dashboard_ready -> registered

Each stage is one method on ``Pipeline`` and is only legal on the matching
state variant. A successful stage returns a new pipeline holding the next
state and consumes the old one; calling any stage on a consumed pipeline
raises ``InvalidStageTransition``.

A failed stage raises ``StageError`` whose ``previous`` attribute is a fresh
pipeline holding the last valid state, so the caller knows exactly which
remote resources exist without re-querying.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import ClassVar, Generic, TypeVar

from ..models import DatasetDefinition, NewTemplate, ProvisionedTemplate
from ..protocols import DashboardService, TableService, TemplateRepository

PIPELINE_SEQUENCE = (
    'unstarted',
    'table_ready',
    'form_ready',
    'dashboard_ready',
    'registered',
)

ALLOWED_TRANSITIONS = MappingProxyType(
    {
        'unstarted': frozenset({'table_ready'}),
        'table_ready': frozenset({'form_ready'}),
        'form_ready': frozenset({'dashboard_ready'}),
        'dashboard_ready': frozenset({'registered'}),
        'registered': frozenset(),
    }
)

# Stage method name -> error code reported to callers.
STAGE_ERROR_CODES = MappingProxyType(
    {
        'create_table': 'table_creation_failed',
        'create_form': 'form_creation_failed',
        'create_dashboard': 'dashboard_creation_failed',
        'register': 'registration_failed',
    }
)


# ── States ───────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Unstarted:
    stage: ClassVar[str] = 'unstarted'


@dataclass(frozen=True, slots=True)
class TableReady:
    stage: ClassVar[str] = 'table_ready'

    base_id: str
    table_id: str
    table_name: str
    """Physical Postgres table name."""


@dataclass(frozen=True, slots=True)
class FormReady:
    stage: ClassVar[str] = 'form_ready'

    base_id: str
    table_id: str
    table_name: str
    form_view_id: str
    form_share_uuid: str


@dataclass(frozen=True, slots=True)
class DashboardReady:
    stage: ClassVar[str] = 'dashboard_ready'

    table_id: str
    table_name: str
    form_view_id: str
    form_share_uuid: str
    dashboard_uid: str
    dashboard_url: str


S = TypeVar('S', Unstarted, TableReady, FormReady, DashboardReady)


# ── Errors ───────────────────────────────────────────────────────────


class InvalidStageTransition(RuntimeError):
    """Raised when a stage runs on the wrong state or a consumed pipeline."""

    def __init__(self, from_stage: str, to_stage: str, *, consumed: bool = False) -> None:
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.consumed = consumed
        reason = 'pipeline already consumed' if consumed else 'invalid stage transition'
        super().__init__(f'{reason}: {from_stage!r} -> {to_stage!r}')


class StageError(Exception):
    """A provisioning stage failed.

    Attributes:
        stage: Name of the failing stage method.
        cause: The underlying exception.
        previous: Unconsumed pipeline holding the last valid state.
    """

    def __init__(self, stage: str, cause: Exception, previous: Pipeline) -> None:
        self.stage = stage
        self.cause = cause
        self.previous = previous
        super().__init__(f'provisioning stage {stage!r} failed: {cause}')

    @property
    def error_code(self) -> str:
        return STAGE_ERROR_CODES[self.stage]


# ── Pipeline ─────────────────────────────────────────────────────────


class Pipeline(Generic[S]):
    """Provisioning progress for one in-flight request.

    Never shared between requests and never persisted.
    """

    __slots__ = ('definition', 'requester_id', 'state', '_consumed')

    def __init__(
        self,
        definition: DatasetDefinition,
        requester_id: str,
        state: S,
    ) -> None:
        self.definition = definition
        self.requester_id = requester_id
        self.state = state
        self._consumed = False

    @classmethod
    def start(
        cls,
        definition: DatasetDefinition,
        requester_id: str,
    ) -> Pipeline[Unstarted]:
        return cls(definition, requester_id, Unstarted())

    @property
    def stage(self) -> str:
        return self.state.stage

    @property
    def consumed(self) -> bool:
        return self._consumed

    def __repr__(self) -> str:
        return (
            f'Pipeline(name={self.definition.name!r}, state={self.state!r}, '
            f'consumed={self._consumed})'
        )

    # ── Stages ───────────────────────────────────────────────────────

    async def create_table(self, tables: TableService) -> Pipeline[TableReady]:
        """Stage 1: create the NocoDB table with all columns."""
        self._consume(Unstarted, 'table_ready')
        try:
            base_id = await tables.resolve_base_id()
            created = await tables.create_table(
                base_id, self.definition.name, self.definition.fields,
            )
        except Exception as exc:
            raise self._failed('create_table', exc) from exc

        return self._advance(
            TableReady(
                base_id=base_id,
                table_id=created.id,
                table_name=created.table_name,
            )
        )

    async def create_form(self, tables: TableService) -> Pipeline[FormReady]:
        """Stage 2: create a form view on the table and share it."""
        state = self._consume(TableReady, 'form_ready')
        title = f'{self.definition.name} - Entry Form'
        try:
            form = await tables.create_shared_form(state.table_id, title)
        except Exception as exc:
            raise self._failed('create_form', exc) from exc

        return self._advance(
            FormReady(
                base_id=state.base_id,
                table_id=state.table_id,
                table_name=state.table_name,
                form_view_id=form.view_id,
                form_share_uuid=form.share_uuid,
            )
        )

    async def create_dashboard(
        self, dashboards: DashboardService,
    ) -> Pipeline[DashboardReady]:
        """Stage 3: create the Grafana dashboard, one panel per numeric field."""
        state = self._consume(FormReady, 'dashboard_ready')
        try:
            created = await dashboards.create_dashboard(
                self.definition.name, state.table_name, self.definition.fields,
            )
        except Exception as exc:
            raise self._failed('create_dashboard', exc) from exc

        return self._advance(
            DashboardReady(
                table_id=state.table_id,
                table_name=state.table_name,
                form_view_id=state.form_view_id,
                form_share_uuid=state.form_share_uuid,
                dashboard_uid=created.uid,
                dashboard_url=created.url,
            )
        )

    async def register(self, templates: TemplateRepository) -> ProvisionedTemplate:
        """Stage 4: persist the template record. Terminal."""
        state = self._consume(DashboardReady, 'registered')
        record = NewTemplate(
            name=self.definition.name,
            description=self.definition.description,
            fields=self.definition.serialized_fields(),
            created_by=self.requester_id,
            nocodb_table_id=state.table_id,
            nocodb_form_id=state.form_share_uuid,
            grafana_dashboard_uid=state.dashboard_uid,
            grafana_dashboard_url=state.dashboard_url,
        )
        try:
            return await templates.create(record)
        except Exception as exc:
            raise self._failed('register', exc) from exc

    # ── Internals ────────────────────────────────────────────────────

    def _consume(self, expected: type[S], to_stage: str):
        if self._consumed:
            raise InvalidStageTransition(self.stage, to_stage, consumed=True)
        if not isinstance(self.state, expected):
            raise InvalidStageTransition(self.stage, to_stage)
        if to_stage not in ALLOWED_TRANSITIONS[self.stage]:
            raise InvalidStageTransition(self.stage, to_stage)
        self._consumed = True
        return self.state

    def _advance(self, state: S) -> Pipeline:
        return Pipeline(self.definition, self.requester_id, state)

    def _failed(self, stage: str, exc: Exception) -> StageError:
        return StageError(stage, exc, self._advance(self.state))
