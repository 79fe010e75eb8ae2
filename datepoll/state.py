from typing import Optional

from psycopg_pool import AsyncConnectionPool

# Global runtime state initialized in lifespan.setup_resources
db_pool: Optional[AsyncConnectionPool] = None
