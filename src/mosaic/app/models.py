"""Dataset definitions and provisioned template records.

A ``DatasetDefinition`` is the user-submitted input to provisioning and is
never persisted. A ``ProvisionedTemplate`` is the local record written once
all three external resources exist.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Literal, Mapping

FieldType = Literal['number', 'text', 'date', 'select']

FIELD_TYPES: frozenset[str] = frozenset({'number', 'text', 'date', 'select'})

FIELD_NAME_PATTERN = re.compile(r'^[a-z][a-z0-9_]*$')


class DefinitionError(ValueError):
    """Raised when a dataset definition fails validation."""


@dataclass(frozen=True, slots=True)
class FieldDefinition:
    name: str
    field_type: str
    unit: str | None = None

    @property
    def is_numeric(self) -> bool:
        return self.field_type == 'number'

    def to_dict(self) -> dict[str, Any]:
        return {'name': self.name, 'field_type': self.field_type, 'unit': self.unit}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FieldDefinition:
        return cls(
            name=str(data.get('name', '')),
            field_type=str(data.get('field_type', '')),
            unit=data.get('unit') or None,
        )


@dataclass(frozen=True, slots=True)
class DatasetDefinition:
    name: str
    fields: tuple[FieldDefinition, ...]
    description: str | None = None

    @property
    def numeric_fields(self) -> tuple[FieldDefinition, ...]:
        return tuple(f for f in self.fields if f.is_numeric)

    def serialized_fields(self) -> list[dict[str, Any]]:
        return [f.to_dict() for f in self.fields]


def validate_definition(definition: DatasetDefinition) -> DatasetDefinition:
    """Reject definitions that must never reach provisioning.

    Returns the definition with its name stripped.

    Raises:
        DefinitionError: empty name, no fields, a bad field name, a
            duplicate field name, or an unknown field type.
    """
    name = definition.name.strip()
    if not name:
        raise DefinitionError('name is required')
    if not definition.fields:
        raise DefinitionError('at least one field is required')

    seen: set[str] = set()
    for f in definition.fields:
        if not FIELD_NAME_PATTERN.fullmatch(f.name):
            raise DefinitionError(
                f'field name {f.name!r} must be lowercase alphanumeric + '
                'underscore and start with a letter'
            )
        if f.name in seen:
            raise DefinitionError(f'duplicate field name {f.name!r}')
        seen.add(f.name)
        if f.field_type not in FIELD_TYPES:
            raise DefinitionError(
                f'field {f.name!r} has unknown type {f.field_type!r}; '
                f'expected one of {sorted(FIELD_TYPES)}'
            )

    if name == definition.name:
        return definition
    return DatasetDefinition(
        name=name,
        fields=definition.fields,
        description=definition.description,
    )


# ── Template records ─────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class NewTemplate:
    """Insert payload for a template whose external resources all exist."""

    name: str
    fields: list[dict[str, Any]]
    created_by: str | None
    description: str | None = None
    nocodb_table_id: str | None = None
    nocodb_form_id: str | None = None
    grafana_dashboard_uid: str | None = None
    grafana_dashboard_url: str | None = None

    def to_row(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'fields': self.fields,
            'created_by': self.created_by,
            'nocodb_table_id': self.nocodb_table_id,
            'nocodb_form_id': self.nocodb_form_id,
            'grafana_dashboard_uid': self.grafana_dashboard_uid,
            'grafana_dashboard_url': self.grafana_dashboard_url,
        }


@dataclass(frozen=True, slots=True)
class ProvisionedTemplate:
    """Row-level representation aligned with portal.templates."""

    id: str
    name: str
    fields: list[dict[str, Any]]
    description: str | None = None
    created_by: str | None = None
    nocodb_table_id: str | None = None
    nocodb_form_id: str | None = None
    grafana_dashboard_uid: str | None = None
    grafana_dashboard_url: str | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def field_definitions(self) -> tuple[FieldDefinition, ...]:
        return tuple(FieldDefinition.from_dict(f) for f in self.fields)

    def to_payload(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'fields': self.fields,
            'created_by': self.created_by,
            'nocodb_table_id': self.nocodb_table_id,
            'nocodb_form_id': self.nocodb_form_id,
            'grafana_dashboard_uid': self.grafana_dashboard_uid,
            'grafana_dashboard_url': self.grafana_dashboard_url,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ProvisionedTemplate:
        return cls(
            id=str(row['id']),
            name=row['name'],
            description=row.get('description'),
            fields=list(row.get('fields') or []),
            created_by=row.get('created_by'),
            nocodb_table_id=row.get('nocodb_table_id'),
            nocodb_form_id=row.get('nocodb_form_id'),
            grafana_dashboard_uid=row.get('grafana_dashboard_uid'),
            grafana_dashboard_url=row.get('grafana_dashboard_url'),
            created_at=_parse_timestamp(row.get('created_at')),
            updated_at=_parse_timestamp(row.get('updated_at')),
        )


def definition_from_fields(
    name: str,
    fields: Iterable[Mapping[str, Any]],
    description: str | None = None,
) -> DatasetDefinition:
    """Build a definition from plain field mappings (request bodies)."""
    return DatasetDefinition(
        name=name,
        fields=tuple(FieldDefinition.from_dict(f) for f in fields),
        description=description,
    )


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(str(value))
    return datetime.now(timezone.utc)
