"""
FastAPI Server for the KNN Classification Service

This module exposes the classification service over HTTP: configuring k,
classifying test points against the reference datasets, explaining and
plotting individual classifications, and reporting service status.
"""

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr
from datetime import datetime
import logging
from typing import List, Union

from knn_service.errors import (
    AmbiguousClassification,
    DimensionMismatch,
    InvalidK,
    UnknownDataset
)
from knn_service.state import (
    get_service,
    get_service_config,
    record_analysis,
    get_analysis_history,
    get_analysis_stats,
    load_config_or_default
)
from knn_service.utils import setup_logging
from knn_service.visualization import plot_neighbourhood, figure_to_png


app = FastAPI(
    title="KNN Classification Service",
    description="REST API for K-Nearest-Neighbours classification against fixed reference datasets",
    version="1.0.0"
)

logger = logging.getLogger("knn_service")
_initialized = False


class AnalysisRequest(BaseModel):
    """Request body for classifying a single test point."""
    data_set: StrictStr = Field(..., description="Registered dataset name, e.g. 'cancer' or 'customer'")
    test_point: List[Union[StrictFloat, StrictInt]] = Field(..., description="Coordinates with the dataset's dimensionality")

    model_config = {
        "json_schema_extra": {
            "example": {"data_set": "cancer", "test_point": [13.9, 1.9]}
        }
    }


class ConfigureRequest(BaseModel):
    """Request body for replacing k."""
    k: StrictInt = Field(..., description="Number of nearest neighbours")


def _initialize_server():
    """Initialize logging and the classification service."""
    global logger, _initialized

    if _initialized:
        return

    config = load_config_or_default()
    logger = setup_logging(config.get("log_level", "INFO"))
    logger.info("Classification server starting up")
    logger.info(f"Configuration: {config}")

    get_service()
    _initialized = True


@app.on_event("startup")
async def startup_event():
    """Initialize server on startup."""
    _initialize_server()


def _to_http_exception(e: Exception) -> HTTPException:
    """Map a classification error to an HTTP error carrying its message verbatim."""
    if isinstance(e, UnknownDataset):
        status_code = 404
    elif isinstance(e, AmbiguousClassification):
        status_code = 409
    elif isinstance(e, (DimensionMismatch, InvalidK, ValueError)):
        status_code = 400
    else:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    logger.warning(f"Request rejected ({status_code}): {e}")
    return HTTPException(status_code=status_code, detail=str(e))


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "KNN Classification Service",
        "version": "1.0.0",
        "endpoints": {
            "configure": "POST /configure",
            "run_analysis": "POST /run_analysis",
            "explain": "POST /explain",
            "plot": "POST /plot",
            "evaluate": "GET /evaluate/{data_set}",
            "datasets": "GET /datasets",
            "status": "GET /status"
        }
    }


@app.post("/configure")
async def configure(request: ConfigureRequest):
    """
    Replace the number of nearest neighbours.

    Args:
        request: Body with the new k

    Returns:
        JSON response with the previous and new k
    """
    _initialize_server()
    service = get_service()

    try:
        previous_k = service.k
        new_k = service.configure(request.k)

        return JSONResponse(
            status_code=200,
            content={
                "status": "success",
                "previous_k": previous_k,
                "k": new_k,
                "even_k_warning": new_k % 2 == 0,
                "timestamp": datetime.now().isoformat()
            }
        )
    except Exception as e:
        raise _to_http_exception(e)


@app.post("/run_analysis")
async def run_analysis(request: AnalysisRequest):
    """
    Classify a test point against a reference dataset.

    Args:
        request: Body with the dataset name and test point

    Returns:
        JSON response with the predicted class
    """
    _initialize_server()
    service = get_service()

    try:
        analysis = service.explain_analysis(request.data_set, request.test_point)
    except Exception as e:
        record_analysis(request.data_set, request.test_point, service.k, error=str(e))
        raise _to_http_exception(e)

    logger.info(f"The test point class is: {analysis.predicted_class}")
    record_analysis(analysis.data_set, analysis.test_point, analysis.k,
                    predicted_class=analysis.predicted_class)

    return JSONResponse(
        status_code=200,
        content={
            "data_set": analysis.data_set,
            "test_point": analysis.test_point,
            "k": analysis.k,
            "class": analysis.predicted_class
        }
    )


@app.post("/explain")
async def explain(request: AnalysisRequest):
    """
    Classify a test point and return the neighbours and votes behind the decision.
    """
    _initialize_server()
    service = get_service()

    try:
        analysis = service.explain_analysis(request.data_set, request.test_point)
    except Exception as e:
        raise _to_http_exception(e)

    return JSONResponse(status_code=200, content=analysis.to_dict())


@app.post("/plot")
async def plot(request: AnalysisRequest):
    """
    Render the classification of a test point as a PNG scatter plot.

    Only 2-feature datasets can be plotted.
    """
    _initialize_server()
    service = get_service()

    try:
        analysis = service.explain_analysis(request.data_set, request.test_point)
        dataset = service.registry.lookup(analysis.data_set)
        fig = plot_neighbourhood(
            dataset,
            analysis.test_point,
            [nb["index"] for nb in analysis.neighbors],
            predicted_class=analysis.predicted_class
        )
        png = figure_to_png(fig)
    except Exception as e:
        raise _to_http_exception(e)

    return Response(content=png, media_type="image/png")


@app.get("/evaluate/{data_set}")
async def evaluate(data_set: str):
    """
    Classify every point of a dataset against the dataset itself.

    Returns:
        JSON response with predictions, accuracy and confusion matrix
    """
    _initialize_server()
    service = get_service()

    try:
        result = service.evaluate(data_set)
    except Exception as e:
        raise _to_http_exception(e)

    return JSONResponse(status_code=200, content={"status": "success", **result})


@app.get("/datasets")
async def list_datasets():
    """List the registered reference datasets."""
    _initialize_server()
    service = get_service()

    return {"datasets": service.registry.describe()}


@app.get("/status")
async def get_status():
    """
    Get service status: current k, tie policy, datasets and analysis counters.
    """
    _initialize_server()

    try:
        service = get_service()
        config = get_service_config()

        return JSONResponse(
            status_code=200,
            content={
                "server_status": "running",
                "timestamp": datetime.now().isoformat(),
                "k": service.k,
                "tie_policy": service.tie_policy,
                "datasets": service.registry.names(),
                "history_size": config.get("history_size"),
                **get_analysis_stats(),
                "recent_analyses": get_analysis_history(limit=10)
            }
        )

    except Exception as e:
        logger.error(f"Error getting status: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get status: {str(e)}")


# Health check endpoint
@app.get("/health")
async def health_check():
    """Simple health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}
