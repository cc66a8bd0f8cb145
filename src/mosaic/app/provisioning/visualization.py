"""Portal dashboard layout generated for a freshly provisioned template."""

from __future__ import annotations

from typing import Any

from ..models import ProvisionedTemplate

PORTAL_DASHBOARD_ICON = '▦'
GRAFANA_PROXY_PREFIX = '/proxy/grafana'

PANEL_TYPE = 'grafana_panel'
PANEL_WIDTH = 12
PANEL_HEIGHT = 8


def grafana_slug(dashboard_url: str) -> str:
    """Last path segment of a Grafana dashboard URL (``/d/{uid}/{slug}``)."""
    slug = dashboard_url.rstrip('/').rsplit('/', 1)[-1]
    return slug or 'dashboard'


def build_portal_dashboard(template: ProvisionedTemplate) -> dict[str, Any]:
    # Slug is derived from the title by the repository.
    return {
        'title': template.name,
        'slug': None,
        'icon': PORTAL_DASHBOARD_ICON,
        'sort_order': None,
        'is_shared': False,
    }


def build_portal_panels(
    template: ProvisionedTemplate,
    *,
    dashboard_uid: str,
    dashboard_url: str,
) -> list[dict[str, Any]]:
    """One embedded Grafana panel per numeric field, stacked in field order."""
    slug = grafana_slug(dashboard_url)
    numeric = [f for f in template.field_definitions() if f.is_numeric]

    panels: list[dict[str, Any]] = []
    for index, _field in enumerate(numeric, start=1):
        panels.append(
            {
                'title': f'{template.name} - Panel {index}',
                'panel_type': PANEL_TYPE,
                'source_url': (
                    f'{GRAFANA_PROXY_PREFIX}/d/{dashboard_uid}/{slug}'
                    f'?viewPanel=panel-{index}'
                ),
                'config': None,
                'grid_x': 0,
                'grid_y': (index - 1) * PANEL_HEIGHT,
                'grid_w': PANEL_WIDTH,
                'grid_h': PANEL_HEIGHT,
            }
        )
    return panels
