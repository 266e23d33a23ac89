"""
Credential provisioning for database instances.

Credentials are generated once and then treated as owned by the running
database: existing keys are never regenerated, only missing keys are
backfilled.
"""
import base64
import copy
import secrets
from dataclasses import dataclass
from typing import Any, Dict, List

from database_operator.config.logging import get_logger
from database_operator.core.naming import ChildRole, child_ref
from database_operator.core.profiles import credential_keys
from database_operator.exceptions import NotFoundError
from database_operator.models.database_instance import DatabaseInstance
from database_operator.services.object_store import ObjectStore
from database_operator.services.templates import build_secret

logger = get_logger(__name__)

USERNAME_BYTES = 8
PASSWORD_BYTES = 16


@dataclass
class Credential:
    """Username and password stored in a credential Secret."""

    secret_name: str
    user_key: str
    password_key: str
    username: bytes
    password: bytes


def generate_random_value(length: int) -> str:
    """Base64 encoding of ``length`` cryptographically random bytes."""
    return base64.b64encode(secrets.token_bytes(length)).decode("ascii")


def _encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def _decode(value: str) -> bytes:
    return base64.b64decode(value)


class CredentialProvisioner:
    """Ensures the credential Secret of an instance exists and is complete."""

    def __init__(self, store: ObjectStore):
        self.store = store

    async def ensure_credential(self, instance: DatabaseInstance) -> Credential:
        """
        Get or create the credential Secret for an instance.

        Args:
            instance: DatabaseInstance being reconciled

        Returns:
            The credential as stored

        Raises:
            UnsupportedDatabaseKindError: If the database type has no credential keys
            StoreError: If the Secret cannot be read or written
        """
        database_type = instance.spec.database_type
        user_key, password_key = credential_keys(database_type)
        ref = child_ref(instance.namespace, instance.name, ChildRole.CREDENTIAL, database_type)

        try:
            existing = await self.store.get(ref)
        except NotFoundError:
            data = {
                user_key: _encode(generate_random_value(USERNAME_BYTES)),
                password_key: _encode(generate_random_value(PASSWORD_BYTES)),
            }
            await self.store.create(build_secret(instance, ref.name, data))
            logger.info(
                "credential_secret_created",
                namespace=ref.namespace,
                secret=ref.name,
                database_type=database_type,
            )
            return self._credential(ref.name, user_key, password_key, data)

        data: Dict[str, Any] = dict(existing.get("data") or {})
        backfilled: List[str] = []
        if user_key not in data:
            data[user_key] = _encode(generate_random_value(USERNAME_BYTES))
            backfilled.append(user_key)
        if password_key not in data:
            data[password_key] = _encode(generate_random_value(PASSWORD_BYTES))
            backfilled.append(password_key)

        if backfilled:
            merged = copy.deepcopy(existing)
            merged["data"] = data
            await self.store.update(merged)
            logger.info(
                "credential_secret_backfilled",
                namespace=ref.namespace,
                secret=ref.name,
                keys=backfilled,
            )
        else:
            logger.debug("credential_secret_unchanged", namespace=ref.namespace, secret=ref.name)

        return self._credential(ref.name, user_key, password_key, data)

    @staticmethod
    def _credential(
        secret_name: str,
        user_key: str,
        password_key: str,
        data: Dict[str, str],
    ) -> Credential:
        return Credential(
            secret_name=secret_name,
            user_key=user_key,
            password_key=password_key,
            username=_decode(data[user_key]),
            password=_decode(data[password_key]),
        )
