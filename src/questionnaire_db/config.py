"""Database connection URL, read from the environment.

``DATABASE_URL`` wins when set; otherwise the URL is assembled from
``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD`` and ``PG_DATABASE``
(convenient for docker-compose).  The application and Alembic both use the
asyncpg driver, so plain ``postgresql://`` URLs are rewritten to
``postgresql+asyncpg://``.
"""

import os

_ASYNC_SCHEME = "postgresql+asyncpg://"


def get_async_url() -> str:
    """Connection URL for the asyncpg driver."""
    url = os.getenv("DATABASE_URL")
    if not url:
        url = "postgresql://{user}:{password}@{host}:{port}/{database}".format(
            user=os.getenv("PG_USER", "questionnaire"),
            password=os.getenv("PG_PASSWORD", "questionnaire"),
            host=os.getenv("PG_HOST", "localhost"),
            port=os.getenv("PG_PORT", "5432"),
            database=os.getenv("PG_DATABASE", "questionnaire"),
        )
    for scheme in ("postgresql://", "postgres://"):
        if url.startswith(scheme):
            return _ASYNC_SCHEME + url[len(scheme):]
    return url
