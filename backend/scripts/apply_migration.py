"""Apply a SQL file from backend/migrations (default: the initial schema)."""

import asyncio
import os
import sys

# Ensure backend path is in sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from semchat.infra import postgres


async def apply_migration(filename: str) -> None:
	migration_path = postgres.MIGRATIONS_DIR / filename
	if not migration_path.exists():
		print(f"Migration file not found: {migration_path}")
		sys.exit(1)

	print(f"Applying migration: {filename}")
	pool = await postgres.init_pool()
	try:
		await postgres.apply_schema(pool, filename)
	finally:
		await postgres.close_pool()
	print("Migration applied successfully.")


if __name__ == "__main__":
	target = sys.argv[1] if len(sys.argv) > 1 else "0001_semchat_init.sql"
	if sys.platform == "win32":
		asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
	asyncio.run(apply_migration(target))
