"""
Per-database-type configuration.

Every supported database type has exactly one DatabaseProfile. Lookups for
templating are total (unknown types fall back to the MySQL profile, which
older instances rely on), while credential key lookups are strict and raise
UnsupportedDatabaseKindError for anything outside the table.

Usage:
    >>> from database_operator.core.profiles import profile_for, credential_keys
    >>>
    >>> profile_for("postgres").port
    5432
    >>> profile_for("unknown-db").port
    3306
    >>> credential_keys("mysql")
    ('mysql-user', 'mysql-password')
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from database_operator.exceptions import UnsupportedDatabaseKindError
from database_operator.models.database_instance import DatabaseKind

UNSUPPORTED_BACKUP_COMMAND = ["sh", "-c", "echo 'Unsupported database type'"]


@dataclass(frozen=True)
class DatabaseProfile:
    """Ports, paths, credential keys and backup command of one database type."""

    kind: DatabaseKind
    port: int
    port_name: str
    mount_path: str
    user_key: str
    password_key: str
    user_env: str
    password_env: str
    backup_script: str

    @property
    def backup_command(self) -> List[str]:
        return ["sh", "-c", self.backup_script]


PROFILES: Dict[DatabaseKind, DatabaseProfile] = {
    DatabaseKind.MYSQL: DatabaseProfile(
        kind=DatabaseKind.MYSQL,
        port=3306,
        port_name="mysql",
        mount_path="/var/lib/mysql",
        user_key="mysql-user",
        password_key="mysql-password",
        user_env="MYSQL_USER",
        password_env="MYSQL_PASSWORD",
        backup_script=(
            "mysqldump -h $DB_HOST -P $DB_PORT -u$MYSQL_USER -p$MYSQL_PASSWORD "
            "--all-databases > /backup/db-backup.sql"
        ),
    ),
    DatabaseKind.POSTGRES: DatabaseProfile(
        kind=DatabaseKind.POSTGRES,
        port=5432,
        port_name="postgres",
        mount_path="/var/lib/postgresql/data",
        user_key="postgres-user",
        password_key="postgres-password",
        user_env="POSTGRES_USER",
        password_env="POSTGRES_PASSWORD",
        backup_script=(
            'PGPASSWORD="$POSTGRES_PASSWORD" pg_dumpall -h $DB_HOST -p $DB_PORT '
            "-U $POSTGRES_USER > /backup/db-backup.sql"
        ),
    ),
    DatabaseKind.OCEANBASE_CE: DatabaseProfile(
        kind=DatabaseKind.OCEANBASE_CE,
        port=2881,
        port_name="oceanbase-ce",
        mount_path="/oceanbase/store",
        user_key="oceanbase-user",
        password_key="oceanbase-password",
        user_env="OBD_USER",
        password_env="OBD_PASSWORD",
        backup_script=(
            "obclient -h $DB_HOST -P $DB_PORT -u $OBD_USER -p$OBD_PASSWORD "
            "-e \"BACKUP DATABASE TO '/backup/backup.sql'\""
        ),
    ),
}

DEFAULT_PROFILE = PROFILES[DatabaseKind.MYSQL]


def lookup_kind(database_type: str) -> Optional[DatabaseKind]:
    """Return the DatabaseKind for a raw type string, or None if unknown."""
    try:
        return DatabaseKind(database_type)
    except ValueError:
        return None


def is_supported(database_type: str) -> bool:
    return lookup_kind(database_type) is not None


def profile_for(database_type: str) -> DatabaseProfile:
    """Profile used for templating; unknown types get the MySQL profile."""
    kind = lookup_kind(database_type)
    if kind is None:
        return DEFAULT_PROFILE
    return PROFILES[kind]


def credential_keys(database_type: str) -> Tuple[str, str]:
    """
    Secret keys holding the username and password for a database type.

    Raises:
        UnsupportedDatabaseKindError: If the type is not in the profile table
    """
    kind = lookup_kind(database_type)
    if kind is None:
        raise UnsupportedDatabaseKindError(database_type)
    profile = PROFILES[kind]
    return profile.user_key, profile.password_key
