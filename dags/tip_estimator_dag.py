from airflow import DAG
from airflow.operators.bash import BashOperator
from datetime import datetime, timedelta

default_args = {
    "owner": "mlops_engineer",
    "depends_on_past": False,
    "retries": 1,
    "retry_delay": timedelta(minutes=1),
}

with DAG(
    dag_id="nyc_taxi_tip_aggregate",
    default_args=default_args,
    description="Download TLC trips, rebuild the tip aggregate table and publish a new version",
    start_date=datetime(2025, 1, 1),
    schedule="@monthly",
    catchup=False,
    max_active_runs=1,      # one rebuild at a time
    tags=["tips", "aggregate"],
) as dag:

    download = BashOperator(
        task_id="download_trip_data",
        bash_command="cd /opt/airflow/project && python main.py --stage download",
    )

    aggregate = BashOperator(
        task_id="aggregate_and_publish",
        bash_command="cd /opt/airflow/project && python main.py --stage aggregate",
        env={
            "MLFLOW_TRACKING_URI": "http://mlflow_server:5000",
            "LOCAL_ARTIFACT_DIR": "/tmp/tip_estimator_artifacts",
        },
        append_env=True,
    )

    download >> aggregate
