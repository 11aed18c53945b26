import argparse
import json
import logging
import os

import mlflow
import uvicorn
import yaml

from tip_estimator.aggregator import Aggregator
from tip_estimator.data_loader import DataLoader, load_zones
from tip_estimator.data_validation import AggregateValidator
from tip_estimator.download import download_trip_data, trip_data_url
from tip_estimator.table_store import TableStore
import tip_estimator.data_contract as dc


# Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logging.getLogger("great_expectations").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def load_params(params_path: str) -> dict:
    with open(params_path, "r") as f:
        return yaml.safe_load(f)


def serialize_gx_results(results) -> dict:
    output = {"success": results.success, "results": []}
    for r in results.results:
        output["results"].append(
            {
                "success": r.success,
                "expectation": r.expectation_config.type,
                "column": r.expectation_config.kwargs.get("column"),
                "unexpected_list": r.result.get("partial_unexpected_list", []),
            }
        )
    return output


def safe_log_artifact(path: str, artifact_path: str | None = None) -> None:
    """Log file to MLflow if it exists (no crash if missing)."""
    if path and os.path.exists(path):
        mlflow.log_artifact(path, artifact_path=artifact_path)


def configured_months(params: dict) -> list:
    return [(int(m["year"]), int(m["month"])) for m in params["data"]["months"]]


def trip_paths(params: dict) -> list:
    raw_dir = params["data"]["raw_dir"]
    service = params["data"].get("service", "yellow")
    return [
        os.path.join(raw_dir, os.path.basename(trip_data_url(service, year, month)))
        for year, month in configured_months(params)
    ]


def run_download(params: dict) -> None:
    data = params["data"]
    paths = download_trip_data(
        configured_months(params),
        raw_dir=data["raw_dir"],
        service=data.get("service", "yellow"),
        zone_lookup_path=data["zone_lookup"],
    )
    logger.info(f"Downloaded {len(paths)} trip files.")


def run_aggregate(params: dict) -> str:
    data = params["data"]
    board = params["board"]

    artifact_dir = os.environ.get("LOCAL_ARTIFACT_DIR", "/tmp/tip_estimator_artifacts")
    paths = trip_paths(params)
    loader = DataLoader(
        paths,
        artifact_dir=artifact_dir,
        year_min=int(data.get("year_min", dc.PICKUP_YEAR_MIN)),
        year_max=int(data.get("year_max", dc.PICKUP_YEAR_MAX)),
        max_unclean_ratio=float(data.get("max_unclean_ratio", dc.MAX_UNCLEAN_RATIO)),
    )
    aggregator = Aggregator()
    store = TableStore(board["dir"], board["name"])

    mlflow.set_experiment(params["mlflow"]["experiment_name"])

    with mlflow.start_run() as run:
        logger.info(f"Starting Run: {run.info.run_id}")

        mlflow.log_param("contract_version", dc.CONTRACT_VERSION)
        mlflow.log_param("trip_files", ",".join(paths))
        mlflow.log_param("zone_lookup", data["zone_lookup"])
        mlflow.log_param("table_name", board["name"])

        # 1) Load & Clean
        try:
            trips = loader.load_data()
            zones = load_zones(data["zone_lookup"])

            stats = trips.attrs.get("stats", {})
            for k, v in stats.items():
                mlflow.log_metric(f"loader_{k}", float(v) if isinstance(v, (int, float)) else 0.0)

            safe_log_artifact(trips.attrs.get("dropped_sample_path"))

        except Exception as e:
            mlflow.set_tag("status", "load_failed")
            logger.exception(f"Loader failed: {e}")
            raise

        # 2) Aggregate
        try:
            table = aggregator.aggregate(trips, zones)
            mlflow.log_metric("aggregate_rows", len(table))
        except Exception as e:
            mlflow.set_tag("status", "aggregate_failed")
            logger.exception(f"Aggregation failed: {e}")
            raise

        # 3) Validate with Great Expectations
        validator = AggregateValidator(table)
        try:
            validator.validate()
            mlflow.set_tag("data_quality", "passed")
        except Exception as e:
            mlflow.set_tag("data_quality", "failed")
            logger.exception(f"Validation failed: {e}")

            os.makedirs(artifact_dir, exist_ok=True)
            gx_report_path = os.path.join(artifact_dir, "gx_report.json")
            if validator.validation_results:
                with open(gx_report_path, "w") as f:
                    json.dump(serialize_gx_results(validator.validation_results), f, indent=2)
                safe_log_artifact(gx_report_path)

            raise

        # 4) Publish (swap-on-commit; a failure leaves the current version in place)
        version = store.publish(table, source=",".join(paths))
        mlflow.set_tag("table_version", version)

        keep = int(board.get("keep_versions", 0))
        if keep:
            store.prune(keep)

        logger.info(f"Aggregation finished. Published version {version}.")
        return version


def run_serve(params: dict) -> None:
    board = params["board"]
    serve = params.get("serve", {})

    # The app factory reads its table location from the environment.
    os.environ.setdefault("TIP_BOARD_DIR", board["dir"])
    os.environ.setdefault("TIP_TABLE_NAME", board["name"])

    uvicorn.run(
        "tip_estimator.app:create_app_from_env",
        factory=True,
        host=serve.get("host", "0.0.0.0"),
        port=int(serve.get("port", 8000)),
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", default="params.yaml", help="Path to config file")
    parser.add_argument("--stage", choices=["download", "aggregate", "all", "serve"], default="all")
    args = parser.parse_args()

    params = load_params(args.config)
    if args.stage in ("download", "all"):
        run_download(params)
    if args.stage in ("aggregate", "all"):
        run_aggregate(params)
    if args.stage == "serve":
        run_serve(params)
