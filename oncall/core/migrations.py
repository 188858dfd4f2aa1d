"""Database migration utilities.

The shared schema holds the tenant directory; every tenant has its own
``tenant_<slug>`` schema with its own ``alembic_version`` table. Migrations
that belong to one side check ``is_tenant_run()`` and do nothing on the
other.
"""

import argparse
import asyncio
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory

from oncall.config import settings
from oncall.database import tenant_schema
from oncall.logging_config import get_logger, setup_logging
from oncall.services.escalation_store import TenantDirectory

logger = get_logger(__name__)

TENANT_ATTRIBUTE = "tenant"


def get_alembic_config(tenant: str | None = None) -> Config:
    """Get Alembic configuration, optionally targeting one tenant schema."""
    app_root = Path(__file__).parent.parent.parent
    alembic_ini = app_root / "alembic.ini"

    if not alembic_ini.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini}")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(app_root / "migrations"))
    if tenant is not None:
        config.attributes[TENANT_ATTRIBUTE] = tenant

    return config


def target_schema(config: Config, x_args: dict[str, str] | None = None) -> str | None:
    """Schema a migration run applies to, None for the shared schema.

    ``alembic -x tenant=<slug> upgrade head`` and the ``tenant`` config
    attribute are equivalent.
    """
    tenant = config.attributes.get(TENANT_ATTRIBUTE)
    if tenant is None and x_args:
        tenant = x_args.get(TENANT_ATTRIBUTE)
    return tenant_schema(tenant) if tenant else None


def is_tenant_run() -> bool:
    """Whether the running migration targets a tenant schema.

    Only meaningful inside a migration script.
    """
    from alembic import context

    return bool(context.config.attributes.get("schema"))


def run_migrations(tenant: str | None = None) -> None:
    """Run all pending migrations for the shared schema or one tenant."""
    logger.info("Running database migrations", tenant=tenant)

    try:
        command.upgrade(get_alembic_config(tenant), "head")
    except Exception:
        logger.exception("Database migration failed", tenant=tenant)
        raise

    logger.info("Database migrations completed successfully", tenant=tenant)


async def run_all_migrations() -> int:
    """Migrate the shared schema, then every registered tenant.

    Returns:
        Number of tenant schemas migrated.
    """
    await asyncio.to_thread(run_migrations)

    tenants = await TenantDirectory().list_tenants()
    for tenant in tenants:
        await asyncio.to_thread(run_migrations, tenant.slug)
    return len(tenants)


def get_head_revision() -> str | None:
    """Latest revision known to the migration scripts."""
    script = ScriptDirectory.from_config(get_alembic_config())
    return script.get_current_head()


def main() -> None:
    parser = argparse.ArgumentParser(description="Apply on-call database migrations")
    parser.add_argument(
        "--tenant",
        help="Migrate a single tenant schema (default: shared schema and all tenants)",
    )
    args = parser.parse_args()

    setup_logging(
        log_format=settings.log_format,
        log_level=settings.log_level,
        service_name=f"{settings.service_name}-migrate",
    )
    if args.tenant:
        run_migrations(args.tenant)
    else:
        count = asyncio.run(run_all_migrations())
        logger.info("Migrated tenant schemas", count=count)


if __name__ == "__main__":
    main()
