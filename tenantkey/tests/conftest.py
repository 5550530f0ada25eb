from __future__ import annotations

import os
import tempfile

# Point settings at a throwaway SQLite file before any tenantkey module builds the engine.
_DB_DIR = tempfile.mkdtemp(prefix="tenantkey-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/tenantkey.db"
os.environ.setdefault("SECRET", "test-master-secret")
# Cheap scrypt cost so each test derives keys in milliseconds.
os.environ.setdefault("SCRYPT_N", "1024")
