"""Download NYC TLC trip records and the taxi zone lookup.

This module exposes:

- :func:`trip_data_url` – public TLC URL of a monthly trip parquet.
- :func:`download_file` – generic streamed downloader.
- :func:`download_trip_data` – fetch a list of months plus the zone lookup.
"""

import logging
import os
from typing import Iterable, List, Tuple

import requests

from tip_estimator.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

TRIP_DATA_BASE_URL = "https://d37ci6vzurychx.cloudfront.net/trip-data"
ZONE_LOOKUP_URL = "https://d37ci6vzurychx.cloudfront.net/misc/taxi_zone_lookup.csv"


def trip_data_url(service: str, year: int, month: int) -> str:
    """Build the TLC URL of a monthly file, e.g. ``yellow_tripdata_2024-01.parquet``."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be in 1..12, got {month}")
    return f"{TRIP_DATA_BASE_URL}/{service}_tripdata_{year}-{month:02d}.parquet"


def download_file(url: str, output_path: str, timeout: float = 60.0) -> str:
    """Stream a remote file to disk.

    Parent folders are created if they do not exist. The body is written to
    a temporary sibling first so an interrupted transfer never leaves a
    truncated file at ``output_path``.

    Raises
    ------
    UpstreamUnavailableError
        If the request fails or returns a non-successful status code.
    """
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    tmp_path = f"{output_path}.part"
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(tmp_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=8192):
                    f.write(chunk)
    except requests.RequestException as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        logger.error(f"Download failed for {url}: {e}")
        raise UpstreamUnavailableError(f"Could not download {url}: {e}") from e

    os.replace(tmp_path, output_path)
    logger.info(f"Downloaded {url} -> {output_path}")
    return output_path


def download_trip_data(
    months: Iterable[Tuple[int, int]],
    raw_dir: str,
    service: str = "yellow",
    zone_lookup_path: str | None = None,
) -> List[str]:
    """Download each (year, month) trip file and the zone lookup.

    Returns the local paths of the trip files in the order requested.
    """
    paths = []
    for year, month in months:
        url = trip_data_url(service, year, month)
        path = os.path.join(raw_dir, os.path.basename(url))
        paths.append(download_file(url, path))

    zone_lookup_path = zone_lookup_path or os.path.join(raw_dir, "taxi_zone_lookup.csv")
    download_file(ZONE_LOOKUP_URL, zone_lookup_path)

    return paths
