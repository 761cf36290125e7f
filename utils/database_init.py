import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite


class AsyncDatabaseInitializer:
    """
    Manage an async SQLite database using the DATABASE_DIR environment variable.

    - The database file is located at: <DATABASE_DIR>/app.db
    - DATABASE_DIR may be passed explicitly (tests) or read from the
      environment. A RuntimeError is raised if it is missing or invalid
      (not a directory and cannot be created).
    - On the first call to `ensure_database()` for a given instance the
      SESSION table is created if it does not already exist. Existing
      history is kept across restarts.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, database_dir: Optional[Path | str] = None) -> None:
        env_dir = str(database_dir) if database_dir is not None else os.getenv("DATABASE_DIR")

        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        db_dir = Path(env_dir).expanduser()

        # If the path exists but is not a directory, that's a configuration error.
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={env_dir!r} points to a file, not a directory "
                f"({db_dir}). Please set DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = self.db_dir / "app.db"

        self._initialized = False

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database and SESSION table exist at `self.db_path`.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS SESSION (
                            namespace TEXT NOT NULL,
                            id TEXT NOT NULL,
                            payload TEXT NOT NULL,
                            last_modified REAL NOT NULL,
                            PRIMARY KEY (namespace, id)
                        )
                        """
                    )
                    await db.commit()
                break
            except FileNotFoundError:
                # On some platforms a transient missing file error may occur; retry a few times.
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
