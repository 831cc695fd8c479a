"""Service settings for aumos-change-tracker.

Settings use the AUMOS_CHANGE_TRACKER_ prefix and cover:
- The change log database (SQL store)
- Tracking policy (diff computation, lazy update)
- Actor resolution and logging
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for aumos-change-tracker.

    Environment variable prefix: AUMOS_CHANGE_TRACKER_
    """

    service_name: str = "aumos-change-tracker"

    # -------------------------------------------------------------------------
    # Change log database
    # -------------------------------------------------------------------------

    database_url: str = Field(
        default="sqlite:///change_logs.db",
        description="SQLAlchemy connection URL for the database holding the change_logs table.",
    )
    db_pool_size: int = Field(
        default=5,
        description="Connection pool size for the change log DB. Append-only writes need few connections.",
    )
    db_max_overflow: int = Field(
        default=2,
        description="Max overflow connections above db_pool_size.",
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a change log DB connection before raising an error.",
    )

    # -------------------------------------------------------------------------
    # Tracking policy
    # -------------------------------------------------------------------------

    compute_diff: bool = Field(
        default=True,
        description="Compute a field-level diff against the cached snapshot on update. "
        "Updates with an empty diff are not logged.",
    )
    lazy_update: bool = Field(
        default=False,
        description="Skip update logs whose object state matches the most recent persisted log.",
    )
    lazy_update_fields: list[str] = Field(
        default_factory=list,
        description="Fields compared in lazy update mode. Empty means every field.",
    )

    # -------------------------------------------------------------------------
    # Actor resolution and logging
    # -------------------------------------------------------------------------

    user_key: str = Field(
        default="user",
        description="Key looked up in the registered actor context to resolve the user name.",
    )
    log_level: str = Field(
        default="info",
        description="structlog filtering level: debug | info | warning | error.",
    )

    model_config = SettingsConfigDict(env_prefix="AUMOS_CHANGE_TRACKER_")
