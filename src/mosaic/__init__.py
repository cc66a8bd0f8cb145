"""Mosaic: dataset portal over NocoDB and Grafana."""
