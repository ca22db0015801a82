"""Test environment: in-memory SQLite, fixed JWT secret, cheapest allowed bcrypt cost.

Set before any widgetadmin module is imported, since settings and the engine are built at import.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-for-widgetadmin-suite-0123456789"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["JWT_EXPIRE_MINUTES"] = "120"
os.environ["BCRYPT_ROUNDS"] = "10"
os.environ["APP_ENV"] = "dev"
os.environ["DEFAULT_TENANT_SLUG"] = "default"
