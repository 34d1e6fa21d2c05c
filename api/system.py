"""
System API routes for the calibration database editor.

This module provides FastAPI routes for health and environment information.
"""

import platform
import sys
from importlib import metadata
from typing import Any, Dict

from fastapi import APIRouter

from .app_config import load_settings
from .store import canonical_store

router = APIRouter()


def _get_package_versions() -> Dict[str, str]:
    """Get versions of key packages."""
    packages = {}

    package_names = [
        "fastapi",
        "pydantic",
        "uvicorn",
        "orjson",
        "pyelftools",
        "platformdirs",
        "httpx",
    ]

    for name in package_names:
        try:
            packages[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            pass

    return packages


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "caldb-editor backend is running",
        "dataset_loaded": canonical_store.is_loaded,
    }


@router.get("/system/info")
async def system_info() -> Dict[str, Any]:
    """Get system and environment information."""
    return {
        "python": {
            "version": sys.version,
            "platform": sys.platform,
            "executable": sys.executable,
        },
        "system": {
            "os": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
        },
        "config_dir": load_settings().config_dir,
        "packages": _get_package_versions(),
    }
