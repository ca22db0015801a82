"""
Provision a tenant, the system roles, the permission catalog and its first admin.
Run from project root:
  python -m widgetadmin.scripts.provision ADMIN_EMAIL ADMIN_PASSWORD [--tenant-slug default]
Example:
  python -m widgetadmin.scripts.provision admin@example.com your-secure-password
Safe to re-run: existing rows are left as they are.
"""
import argparse
import logging
import sys

from widgetadmin.core.config import get_settings
from widgetadmin.core.database import SessionLocal
from widgetadmin.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from widgetadmin.schemas.auth import normalize_email
from widgetadmin.services.provisioning import provision

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Seed a tenant and its first admin user.")
    parser.add_argument("admin_email", help="Admin email")
    parser.add_argument("admin_password", help=f"Admin password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("--admin-name", default="Admin User")
    parser.add_argument("--tenant-slug", default=settings.DEFAULT_TENANT_SLUG)
    parser.add_argument("--tenant-name", default="Default Tenant")
    args = parser.parse_args(argv)

    try:
        email = normalize_email(args.admin_email)
    except ValueError:
        print("Invalid admin email.", file=sys.stderr)
        return 1
    if not PASSWORD_MIN_LEN <= len(args.admin_password) <= PASSWORD_MAX_LEN:
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        result = provision(
            db,
            tenant_slug=args.tenant_slug.strip().lower(),
            tenant_name=args.tenant_name,
            admin_email=email,
            admin_password=args.admin_password,
            admin_name=args.admin_name,
        )
        logger.info(
            "Provisioned tenant=%s roles_created=%s permissions_created=%s grants_created=%s admin_created=%s",
            result.tenant.slug,
            result.roles_created,
            result.permissions_created,
            result.grants_created,
            result.admin_created,
        )
        return 0
    except Exception as e:
        logger.exception("Provisioning failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
