"""
Persistent key/value store.

Every value is serialized to JSON text on save and parsed again on load;
nothing is cached between calls. Backends only differ in where the text lives.

Keys used by PillPal
--------------------
medications              : list of Medication dicts
doseHistory              : list of Dose dicts (ISO-8601 timestamps)
notification_permission  : "granted" | "denied" | "default"
"""

from __future__ import annotations

import abc
import json
import logging
import os
import pathlib
import re
from typing import Any, Callable, Optional, TypeVar

T = TypeVar("T")

MEDICATIONS_KEY = "medications"
DOSE_HISTORY_KEY = "doseHistory"
NOTIFICATION_PERMISSION_KEY = "notification_permission"

_VALID_KEY = re.compile(r"^[A-Za-z0-9_\-]+$")


class KeyValueStore(metaclass=abc.ABCMeta):
    """
    Serializing front-end over a text backend.

    `load` never raises for bad stored data: a parse or decode failure is
    logged and the caller's default is returned.
    """

    @abc.abstractmethod
    def read_text(self, key: str) -> Optional[str]:
        # return None when nothing is stored under key
        raise NotImplementedError

    @abc.abstractmethod
    def write_text(self, key: str, text: str) -> None:
        raise NotImplementedError

    def load(self, key: str, default: T, decode: Optional[Callable[[Any], T]] = None) -> T:
        raw = self.read_text(key)
        if not raw:
            return default
        try:
            value = json.loads(raw)
            return decode(value) if decode is not None else value
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logging.error(f"Parsing error on stored value for {key!r}: {e}")
            return default

    def save(self, key: str, value: Any, encode: Optional[Callable[[Any], Any]] = None) -> None:
        payload = encode(value) if encode is not None else value
        self.write_text(key, json.dumps(payload, ensure_ascii=False))
        logging.debug(f"Saved {key!r}")


class MemoryStore(KeyValueStore):
    """Process-local store; keeps serialized text so round-trips are real."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def read_text(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write_text(self, key: str, text: str) -> None:
        self._data[key] = text


class FileStore(KeyValueStore):
    """
    One `<key>.json` file per key inside `directory`.
    Writes go to a temporary file that then replaces the target.
    """

    def __init__(self, directory: str | os.PathLike):
        self.directory = pathlib.Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> pathlib.Path:
        if not _VALID_KEY.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.directory / f"{key}.json"

    def read_text(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def write_text(self, key: str, text: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
