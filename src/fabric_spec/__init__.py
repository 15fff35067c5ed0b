"""
Fabric Spec Scanner.

Photograph a textile specification sheet, extract its fields with a vision
model, review them, and store the approved record.

Shared utilities (config, logging, paths, errors) live at the package root;
the extraction pipeline lives under `specdb`.
"""

__all__ = [
    "config",
    "errors",
    "logging",
    "paths",
]
