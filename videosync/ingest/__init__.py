"""Ingestion helpers."""

from __future__ import annotations

import pathlib

import yaml

from videosync.ingest.models import Brand

BRANDS_PATH = pathlib.Path(__file__).with_name("brands.yml")


def load_brands(limit: int | None = None, path: pathlib.Path | None = None) -> list[Brand]:
    data = yaml.safe_load((path or BRANDS_PATH).read_text()) or []
    brands = [Brand(**item) for item in data]
    if limit:
        return brands[:limit]
    return brands
