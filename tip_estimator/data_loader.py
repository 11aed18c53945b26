import logging
import os
from datetime import datetime
from typing import List, Union

import pandas as pd

import tip_estimator.data_contract as dc
from tip_estimator.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class DataLoader:
    """
    Defensive trip loader:
    - Reads one or more parquet files
    - Validates required schema
    - Sanitizes rows using contract rules
    - Writes a sample of dropped rows to a writable artifact dir
    - Attaches stats + artifact paths on df.attrs for main.py to log
    """

    def __init__(
        self,
        paths: Union[str, List[str]],
        artifact_dir: str | None = None,
        year_min: int = dc.PICKUP_YEAR_MIN,
        year_max: int = dc.PICKUP_YEAR_MAX,
        max_unclean_ratio: float = dc.MAX_UNCLEAN_RATIO,
    ):
        self.paths = [paths] if isinstance(paths, str) else list(paths)
        self.artifact_dir = artifact_dir or os.environ.get("LOCAL_ARTIFACT_DIR", "/tmp/tip_estimator_artifacts")
        self.year_min = year_min
        self.year_max = year_max
        self.max_unclean_ratio = max_unclean_ratio

    def _ensure_artifact_dir(self) -> str:
        os.makedirs(self.artifact_dir, exist_ok=True)
        return self.artifact_dir

    def _read(self) -> pd.DataFrame:
        if not self.paths:
            raise UpstreamUnavailableError("No trip files configured")

        frames = []
        for path in self.paths:
            logger.info(f"Loading trips from {path}...")
            try:
                frames.append(pd.read_parquet(path))
            except Exception as e:
                logger.error(f"Failed to read parquet file: {e}")
                raise UpstreamUnavailableError(f"Cannot read trip file {path}: {e}") from e

        return pd.concat(frames, ignore_index=True)

    def load_data(self) -> pd.DataFrame:
        df = self._read()

        # 1) Critical schema check (fail fast)
        missing_cols = [c for c in dc.REQUIRED_COLUMNS if c not in df.columns]
        if missing_cols:
            raise ValueError(f"Schema Violation: Missing columns {missing_cols}")

        raw_count = len(df)
        logger.info(f"Initial row count: {raw_count}")

        # 2) Type enforcement
        df[dc.PICKUP_COLUMN] = pd.to_datetime(df[dc.PICKUP_COLUMN], errors="coerce")
        df[dc.DROPOFF_COLUMN] = pd.to_datetime(df[dc.DROPOFF_COLUMN], errors="coerce")
        for col in ["passenger_count", "trip_distance", "fare_amount", "tip_amount", dc.ZONE_COLUMN]:
            df[col] = pd.to_numeric(df[col], errors="coerce")

        # 3) Drop nulls in required columns
        df = df.dropna(subset=dc.REQUIRED_COLUMNS)
        after_null_drop = len(df)

        # 4) Calculate rule masks (observability)
        pickup_year = df[dc.PICKUP_COLUMN].dt.year
        mask_distance = df["trip_distance"] >= dc.TRIP_DISTANCE_MIN
        mask_fare = df["fare_amount"] >= dc.FARE_AMOUNT_MIN
        mask_tip = df["tip_amount"] >= dc.TIP_AMOUNT_MIN
        mask_order = df[dc.DROPOFF_COLUMN] >= df[dc.PICKUP_COLUMN]
        mask_year = (pickup_year >= self.year_min) & (pickup_year <= self.year_max)

        valid_mask = mask_distance & mask_fare & mask_tip & mask_order & mask_year

        df_clean = df[valid_mask].copy()
        df_clean[dc.ZONE_COLUMN] = df_clean[dc.ZONE_COLUMN].astype("int64")

        # 5) Stats
        clean_rows = len(df_clean)
        dropped_rows = raw_count - clean_rows
        cleaning_ratio = (dropped_rows / raw_count) if raw_count > 0 else 0.0

        stats = {
            "initial_rows": raw_count,
            "after_null_drop_rows": after_null_drop,
            "clean_rows": clean_rows,
            "dropped_rows": dropped_rows,
            "cleaning_ratio": cleaning_ratio,
            "violation_distance": int((~mask_distance).sum()),
            "violation_fare": int((~mask_fare).sum()),
            "violation_tip": int((~mask_tip).sum()),
            "violation_order": int((~mask_order).sum()),
            "violation_year": int((~mask_year).sum()),
        }

        logger.info(f"Cleaned trip stats: {stats}")

        # 6) Save dropped sample to writable dir
        dropped_sample_path = None
        if clean_rows < after_null_drop:
            try:
                self._ensure_artifact_dir()
                ts = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
                dropped_sample_path = os.path.join(self.artifact_dir, f"dropped_trips_sample_{ts}.csv")
                dropped_df = df[~valid_mask].head(100)
                dropped_df.to_csv(dropped_sample_path, index=False)
                logger.info(f"Saved dropped rows sample to: {dropped_sample_path}")
            except Exception as e:
                # The sample is a debugging aid; the quality gates below still apply.
                logger.warning(f"Could not write dropped sample CSV: {e}")
                dropped_sample_path = None

        # Guards
        if clean_rows == 0:
            raise ValueError("Data Quality Critical: Resulting dataset is empty after cleaning.")

        if cleaning_ratio > self.max_unclean_ratio:
            error_msg = (
                f"Data Quality Breach! Removed {cleaning_ratio:.2%} of rows, "
                f"exceeding the limit of {self.max_unclean_ratio:.2%}. "
                f"Dropped sample: {dropped_sample_path or 'not written'}"
            )
            logger.error(error_msg)
            raise ValueError(error_msg)

        # Attach metadata for main.py (MLflow logging)
        df_clean.attrs["stats"] = stats
        df_clean.attrs["dropped_sample_path"] = dropped_sample_path

        return df_clean


def load_zones(path: str) -> pd.DataFrame:
    """Read the TLC zone lookup CSV into (LocationID, Borough)."""
    logger.info(f"Loading zone lookup from {path}...")
    try:
        # "N/A" is a real borough value in the lookup, not a missing one.
        zones = pd.read_csv(path, keep_default_na=False)
    except Exception as e:
        logger.error(f"Failed to read zone lookup: {e}")
        raise UpstreamUnavailableError(f"Cannot read zone lookup {path}: {e}") from e

    missing_cols = [c for c in [dc.ZONE_ID_COLUMN, dc.BOROUGH_COLUMN] if c not in zones.columns]
    if missing_cols:
        raise UpstreamUnavailableError(f"Zone lookup missing columns {missing_cols}")

    zones = zones[[dc.ZONE_ID_COLUMN, dc.BOROUGH_COLUMN]].copy()
    zones[dc.ZONE_ID_COLUMN] = zones[dc.ZONE_ID_COLUMN].astype("int64")
    zones[dc.BOROUGH_COLUMN] = zones[dc.BOROUGH_COLUMN].astype(str).str.strip()

    if zones[dc.ZONE_ID_COLUMN].duplicated().any():
        raise ValueError("Zone lookup has duplicate LocationID values")

    logger.info(f"Loaded {len(zones)} zones")
    return zones
