"""Fabric spec extraction and storage package.

Modules:
- parser: locate and validate the JSON object in model output
- normalizer: map an extracted spec onto the stored record shape
- review: rules behind the human review/edit step
- db: SQLite store for approved specs and pending reviews
- gate: duplicate-key guarded insert
- extraction: vision model call
- inventory: material lookup against the inventory service
- service: orchestrator-facing service layer
"""

from .db import FabricSpecDatabase
from .service import FabricSpecService
from .frontend.app import create_app

__all__ = [
    "FabricSpecDatabase",
    "FabricSpecService",
    "create_app",
]
