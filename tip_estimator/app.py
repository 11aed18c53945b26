import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Request
from prometheus_fastapi_instrumentator import Instrumentator

from tip_estimator.errors import InvalidInputError, NotFoundError
from tip_estimator.models import (
    BoroughsResponse,
    HealthResponse,
    PeriodsResponse,
    PredictionRequest,
    TipQuantiles,
)
from tip_estimator.predictor import Predictor
from tip_estimator.table_store import TableStore

logger = logging.getLogger(__name__)


def get_predictor(request: Request) -> Predictor:
    return request.app.state.predictor


def create_app(predictor: Predictor) -> FastAPI:
    """Build the API around an already-loaded predictor."""
    app = FastAPI(
        title="Taxi Tip Prediction API",
        description="Predicts tip quantiles based on day, time period, and borough",
    )
    app.state.predictor = predictor

    # Expose /metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health", response_model=HealthResponse)
    def health_check(predictor: Predictor = Depends(get_predictor)):
        return HealthResponse(
            status="ok",
            table_name=predictor.table.name,
            table_version=predictor.table.version,
            rows=len(predictor.table),
        )

    @app.post("/predict", response_model=TipQuantiles)
    def predict(query: PredictionRequest, predictor: Predictor = Depends(get_predictor)):
        try:
            return predictor.predict(query.day_of_week, query.period, query.borough)
        except InvalidInputError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.get("/boroughs", response_model=BoroughsResponse)
    def boroughs(predictor: Predictor = Depends(get_predictor)):
        return BoroughsResponse(boroughs=predictor.boroughs())

    @app.get("/periods", response_model=PeriodsResponse)
    def periods(predictor: Predictor = Depends(get_predictor)):
        return PeriodsResponse(periods=predictor.periods())

    return app


def create_app_from_env() -> FastAPI:
    """uvicorn --factory entry point. Fails at startup if no table is published.

    The table version is resolved once, here. Publishing a new version does
    not change what a running process serves; restart the service after a
    rebuild to pick up the new latest.json.
    """
    board_dir = os.environ.get("TIP_BOARD_DIR", "board")
    name = os.environ.get("TIP_TABLE_NAME", "nyc_tip_aggregate")
    version = os.environ.get("TIP_TABLE_VERSION") or None

    table = TableStore(board_dir, name).read(version)
    logger.info(f"Serving '{name}' version {table.version} ({len(table)} rows)")
    return create_app(Predictor(table))
