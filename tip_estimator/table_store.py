"""
Versioned on-disk board for the aggregate table.

Layout::

    <board_dir>/<name>/versions/<version>/data.parquet
    <board_dir>/<name>/versions/<version>/meta.json
    <board_dir>/<name>/latest.json        -> {"version": "<version>"}

A new version is staged in a hidden directory, moved into ``versions/`` and
only then made current by atomically replacing ``latest.json``. Readers that
resolve ``latest.json`` therefore always see a complete version.
"""

import json
import logging
import os
import shutil
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple

import pandas as pd
from pydantic import ValidationError

import tip_estimator.data_contract as dc
from tip_estimator.errors import UpstreamUnavailableError
from tip_estimator.models import AggregateRow

logger = logging.getLogger(__name__)

DATA_FILE = "data.parquet"
META_FILE = "meta.json"
POINTER_FILE = "latest.json"


def validate_frame(df: pd.DataFrame) -> Tuple[AggregateRow, ...]:
    """Check an aggregate frame row by row and return the typed rows."""
    missing = [c for c in dc.AGGREGATE_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Aggregate table missing columns {missing}")

    if df.duplicated(subset=dc.GROUP_KEYS).any():
        raise ValueError(f"Aggregate table has duplicate keys on {dc.GROUP_KEYS}")

    try:
        return tuple(AggregateRow(**record) for record in df[dc.AGGREGATE_COLUMNS].to_dict(orient="records"))
    except ValidationError as e:
        raise ValueError(f"Invalid aggregate row: {e}") from e


class AggregateTable:
    """Immutable snapshot of one published version."""

    def __init__(self, frame: pd.DataFrame, name: str = "", version: str = ""):
        self.rows = validate_frame(frame)
        self.name = name
        self.version = version
        self._frame = frame[dc.AGGREGATE_COLUMNS].reset_index(drop=True).copy()

    @property
    def frame(self) -> pd.DataFrame:
        # Callers get a copy so the snapshot cannot be edited in place.
        return self._frame.copy()

    def __len__(self) -> int:
        return len(self.rows)


class TableWriter:
    """Write handle returned by TableStore.open_writer()."""

    def __init__(self, staging_dir: str, version: str):
        self.staging_dir = staging_dir
        self.version = version
        self.rows = 0
        self.written = False

    def write(self, df: pd.DataFrame, source: str = "") -> None:
        validate_frame(df)
        table = df[dc.AGGREGATE_COLUMNS].reset_index(drop=True)
        table.to_parquet(os.path.join(self.staging_dir, DATA_FILE), index=False)

        meta = {
            "version": self.version,
            "created": datetime.now(timezone.utc).isoformat(),
            "rows": len(table),
            "contract_version": dc.CONTRACT_VERSION,
            "source": source,
        }
        with open(os.path.join(self.staging_dir, META_FILE), "w") as f:
            json.dump(meta, f, indent=2)

        self.rows = len(table)
        self.written = True


class TableStore:
    def __init__(self, board_dir: str, name: str):
        self.board_dir = board_dir
        self.name = name
        self.root = os.path.join(board_dir, name)
        self.versions_dir = os.path.join(self.root, "versions")

    def _new_version(self) -> str:
        ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        return f"{ts}-{uuid.uuid4().hex[:6]}"

    def _write_pointer(self, version: str) -> None:
        pointer = os.path.join(self.root, POINTER_FILE)
        tmp = f"{pointer}.{uuid.uuid4().hex}.tmp"
        with open(tmp, "w") as f:
            json.dump({"version": version}, f)
        os.replace(tmp, pointer)

    @contextmanager
    def open_writer(self) -> Iterator[TableWriter]:
        """Stage a new version; commit it only if the block exits cleanly."""
        os.makedirs(self.versions_dir, exist_ok=True)
        version = self._new_version()
        staging_dir = os.path.join(self.root, f".staging-{version}")
        os.makedirs(staging_dir)
        writer = TableWriter(staging_dir, version)
        final_dir = os.path.join(self.versions_dir, version)
        moved = False

        try:
            yield writer
            if not writer.written:
                raise ValueError("Writer closed without writing a table")
            os.replace(staging_dir, final_dir)
            moved = True
            self._write_pointer(version)
        except BaseException:
            logger.error(f"Discarding staged version {version} of '{self.name}'")
            shutil.rmtree(final_dir if moved else staging_dir, ignore_errors=True)
            raise

        logger.info(f"Published '{self.name}' version {version} ({writer.rows} rows)")

    def publish(self, df: pd.DataFrame, source: str = "") -> str:
        with self.open_writer() as writer:
            writer.write(df, source=source)
        return writer.version

    def versions(self) -> List[str]:
        if not os.path.isdir(self.versions_dir):
            return []
        return sorted(
            v for v in os.listdir(self.versions_dir)
            if os.path.isdir(os.path.join(self.versions_dir, v))
        )

    def latest_version(self) -> str:
        pointer = os.path.join(self.root, POINTER_FILE)
        try:
            with open(pointer) as f:
                return json.load(f)["version"]
        except (OSError, ValueError, KeyError) as e:
            raise UpstreamUnavailableError(f"No published version of '{self.name}' in {self.board_dir}: {e}") from e

    def meta(self, version: Optional[str] = None) -> dict:
        version = version or self.latest_version()
        path = os.path.join(self.versions_dir, version, META_FILE)
        try:
            with open(path) as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise UpstreamUnavailableError(f"Cannot read metadata of '{self.name}' {version}: {e}") from e

    def read(self, version: Optional[str] = None) -> AggregateTable:
        version = version or self.latest_version()
        path = os.path.join(self.versions_dir, version, DATA_FILE)
        logger.info(f"Reading '{self.name}' version {version}...")
        try:
            frame = pd.read_parquet(path)
        except Exception as e:
            logger.error(f"Failed to read aggregate table: {e}")
            raise UpstreamUnavailableError(f"Cannot read '{self.name}' version {version}: {e}") from e

        return AggregateTable(frame, name=self.name, version=version)

    def prune(self, keep: int) -> List[str]:
        """Delete all but the newest `keep` versions. Never deletes the current one."""
        if keep < 1:
            raise ValueError("keep must be at least 1")

        try:
            current = self.latest_version()
        except UpstreamUnavailableError:
            current = None

        removed = []
        for version in self.versions()[:-keep]:
            if version == current:
                continue
            shutil.rmtree(os.path.join(self.versions_dir, version), ignore_errors=True)
            removed.append(version)

        if removed:
            logger.info(f"Pruned {len(removed)} old versions of '{self.name}'")
        return removed
