# backend/__init__.py
import os, sys
_backend_dir = os.path.dirname(__file__)
if _backend_dir not in sys.path:
    # modules import each other as "app.<area>.<module>"
    sys.path.insert(0, _backend_dir)

from .main import app, ACTION_TABLE, API_ROUTES, AUDIT_POLICY  # noqa: E402

__all__ = ["app", "ACTION_TABLE", "API_ROUTES", "AUDIT_POLICY"]
