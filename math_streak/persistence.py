"""
Persistence layer for the Math Streak drill.

Exactly two values outlive a session: the high score and the user
settings. Both are stored as JSON text under their own key in a small
key-value store:
- MemoryStore: in-process only, used by default and in tests
- FileStore: a JSON file on the local disk
- DynamoDbStore: one DynamoDB item per player, written through the ASK SDK
  persistence adapter

Storage failures never reach the game. Reads fall back to defaults and
writes report failure through their return value; both are logged.
"""

import json
import logging
import os
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

from ask_sdk_core.exceptions import PersistenceException

from math_streak import config
from math_streak.models import UserSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors a store may raise for a failed read or write
STORAGE_ERRORS = (PersistenceException, OSError, ValueError, TypeError)


class KeyValueStore(Protocol):
    """Durable storage of text values by key."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStore:
    """Store backed by a plain dictionary."""

    def __init__(self, items: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStore:
    """
    Store backed by a single JSON file mapping keys to text values.

    The file is re-read on every access so several sessions can share it.
    """

    def __init__(self, path: str):
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def _read_all(self) -> dict[str, str]:
        try:
            with open(self._path, encoding="utf-8") as f:
                items = json.load(f)
        except FileNotFoundError:
            return {}
        if not isinstance(items, dict):
            raise ValueError(f"{self._path} does not contain a JSON object")
        return items

    def _write_all(self, items: dict[str, str]) -> None:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        temp_path = f"{self._path}.tmp"
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(items, f, indent=2, sort_keys=True)
        os.replace(temp_path, self._path)

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if items.pop(key, None) is not None:
            self._write_all(items)


class DynamoDbStore:
    """
    Store backed by DynamoDB through the ASK SDK persistence adapter.

    All values for a player live in a single item: the player id is the
    partition key and the values are kept in its ``attributes`` map.
    """

    def __init__(
        self,
        table_name: str,
        player_id: str,
        dynamodb_resource=None,
        create_table: bool = False,
    ):
        """
        Initialize the store.

        Args:
            table_name: DynamoDB table holding the player items.
            player_id: Partition key value for this player.
            dynamodb_resource: boto3 DynamoDB resource. Defaults to the
                               adapter's own resource.
            create_table: Create the table if it does not exist.
        """
        # The adapter module builds a default boto3 resource at import time,
        # which requires an AWS region to be configured
        from ask_sdk_dynamodb.adapter import DynamoDbAdapter

        kwargs = {}
        if dynamodb_resource is not None:
            kwargs["dynamodb_resource"] = dynamodb_resource

        self._player_id = player_id
        self._adapter = DynamoDbAdapter(
            table_name=table_name,
            partition_key_name="id",
            attribute_name="attributes",
            create_table=create_table,
            partition_keygen=lambda request_envelope: self._player_id,
            **kwargs,
        )
        self._attributes: dict | None = None

    def _load_attributes(self) -> dict:
        """Lazy-load the player's attributes from DynamoDB."""
        if self._attributes is None:
            self._attributes = dict(self._adapter.get_attributes(request_envelope=None))
        return self._attributes

    def _save_attributes(self, attributes: dict) -> None:
        self._adapter.save_attributes(request_envelope=None, attributes=attributes)
        self._attributes = attributes

    def get_item(self, key: str) -> str | None:
        return self._load_attributes().get(key)

    def set_item(self, key: str, value: str) -> None:
        attributes = dict(self._load_attributes())
        attributes[key] = value
        self._save_attributes(attributes)

    def remove_item(self, key: str) -> None:
        attributes = dict(self._load_attributes())
        if attributes.pop(key, None) is not None:
            self._save_attributes(attributes)


class PersistenceManager:
    """
    Manages persistence of the high score and user settings.

    This class provides a clean interface for loading and saving values,
    abstracting away the storage backend and its failure modes.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store

    def load(self, key: str, default: T, parse: Callable[[Any], T] | None = None) -> T:
        """
        Load and decode a value.

        Args:
            key: Storage key.
            default: Returned when the value is missing, corrupt or unreadable.
            parse: Optional conversion of the decoded JSON value; a
                   ValueError or TypeError from it counts as corruption.

        Returns:
            The stored value, or ``default``.
        """
        try:
            raw = self._store.get_item(key)
        except STORAGE_ERRORS as e:
            logger.warning(f"Error reading storage key {key!r}: {e}")
            return default

        if raw is None:
            return default

        try:
            value = json.loads(raw)
            return parse(value) if parse is not None else value
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring corrupt value for storage key {key!r}: {e}")
            return default

    def save(self, key: str, value: Any) -> bool:
        """
        Encode and write a value (best effort).

        Returns:
            True if the value was written, False if storage failed.
        """
        try:
            self._store.set_item(key, json.dumps(value))
        except STORAGE_ERRORS as e:
            logger.error(f"Error writing storage key {key!r}: {e}")
            return False
        return True

    def remove(self, key: str) -> bool:
        """Delete a value (best effort)."""
        try:
            self._store.remove_item(key)
        except STORAGE_ERRORS as e:
            logger.error(f"Error removing storage key {key!r}: {e}")
            return False
        return True

    def get_high_score(self) -> int:
        return self.load(config.HIGH_SCORE_KEY, 0, _parse_score)

    def save_high_score(self, score: int) -> bool:
        return self.save(config.HIGH_SCORE_KEY, score)

    def get_settings(self, default: UserSettings | None = None) -> UserSettings:
        """Load user settings, or the default if none (or corrupt ones) are stored."""
        if default is None:
            default = UserSettings()
        return self.load(config.SETTINGS_KEY, default, UserSettings.from_dict)

    def save_settings(self, settings: UserSettings) -> bool:
        return self.save(config.SETTINGS_KEY, settings.to_dict())

    def reset_settings(self) -> bool:
        return self.remove(config.SETTINGS_KEY)


def _parse_score(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"High score must be a non-negative integer, got {value!r}")
    return value


def create_store_from_env(backend: str | None = None) -> KeyValueStore:
    """
    Create the storage backend selected by configuration.

    Args:
        backend: One of ``memory``, ``file`` or ``dynamodb``. Defaults to
                 the MATH_STREAK_STORAGE environment variable.

    Raises:
        ValueError: If the backend is unknown.
    """
    backend = backend or config.STORAGE_BACKEND
    if backend == config.STORAGE_MEMORY:
        return MemoryStore()
    if backend == config.STORAGE_FILE:
        return FileStore(config.STORAGE_PATH)
    if backend == config.STORAGE_DYNAMODB:
        return DynamoDbStore(config.DYNAMODB_TABLE_NAME, config.PLAYER_ID)
    raise ValueError(f"Unknown storage backend: {backend!r}")


def get_persistence_manager(store: KeyValueStore | None = None) -> PersistenceManager:
    """
    Factory function to get a PersistenceManager.

    Args:
        store: Storage backend. Defaults to the configured backend.
    """
    return PersistenceManager(store if store is not None else create_store_from_env())
