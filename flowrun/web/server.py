#!/usr/bin/env python3
"""
Web server for flowrun.

Hosts the natural-language filter service used by filter steps, and a REST
API to list step kinds, validate and execute workflows.
"""
import logging
from functools import lru_cache
from typing import Dict, Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import uvicorn

from flowrun.engine.errors import EngineError, StepExecutionError, UnknownStepKindError
from flowrun.engine.executor import WorkflowExecutor
from flowrun.engine.validation import validate_graph
from flowrun.filtering.service import (
    FilterError,
    FilterService,
    InvalidFilterTypeError,
    create_filter_service,
)
from flowrun.steps.registry import StepRegistry, registry_from_config
from flowrun.utils.config import FlowConfig, get_config_manager
from flowrun.workflows.serialization import WorkflowFormatError, WorkflowSerializer

logger = logging.getLogger(__name__)

app = FastAPI(title="flowrun")


class FilterRequest(BaseModel):
    type: str = "array"
    condition: Optional[str] = None
    data: Any = None
    context: Dict[str, Any] = {}


@lru_cache(maxsize=1)
def get_config() -> FlowConfig:
    return get_config_manager().effective()


@lru_cache(maxsize=1)
def get_filter_service() -> FilterService:
    """Filter service backing /api/filter, built once per process"""
    config = get_config()
    return create_filter_service(
        api_key=config.filter.openai_api_key,
        model=config.filter.model,
        temperature=config.filter.temperature,
    )


@lru_cache(maxsize=1)
def get_registry() -> StepRegistry:
    return registry_from_config(get_config())


def _parse_workflow(payload: Dict[str, Any]):
    try:
        graph, _ = WorkflowSerializer().deserialize_workflow(payload)
    except WorkflowFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return graph


@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.post("/api/filter")
def filter_data(request: FilterRequest,
                service: FilterService = Depends(get_filter_service)):
    """Filter an array or object with a natural-language condition"""
    try:
        result = service.filter(request.type, request.condition, request.data, request.context)
    except InvalidFilterTypeError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except FilterError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    except Exception as e:
        logger.exception("Filter request failed")
        return JSONResponse(status_code=500, content={"error": str(e)})

    return {"result": result}


@app.get("/api/steps")
async def list_steps(registry: StepRegistry = Depends(get_registry)):
    """Get all available step kinds"""
    return {"steps": registry.describe()}


@app.post("/api/workflow/validate")
def validate_workflow(payload: Dict[str, Any] = Body(...),
                      registry: StepRegistry = Depends(get_registry)):
    """Validate a workflow"""
    errors = validate_graph(_parse_workflow(payload), registry)
    return {
        "valid": len(errors) == 0,
        "errors": errors
    }


@app.post("/api/workflow/execute")
def execute_workflow(payload: Dict[str, Any] = Body(...),
                     registry: StepRegistry = Depends(get_registry),
                     config: FlowConfig = Depends(get_config)):
    """Execute a workflow synchronously"""
    graph = _parse_workflow(payload)
    executor = WorkflowExecutor(registry=registry, max_workers=config.engine.max_workers)

    try:
        result = executor.execute_workflow(graph)
    except (StepExecutionError, UnknownStepKindError) as e:
        return {"success": False, "error": str(e), "step_id": e.step_id, "label": e.label}
    except EngineError as e:
        return {"success": False, "error": str(e), "step_id": None, "label": None}

    return {
        "success": True,
        "results": result.results,
        "order": result.order,
        "execution_time": result.execution_time,
    }


def main():
    """Run the web server"""
    import argparse
    parser = argparse.ArgumentParser(description="flowrun filter service and workflow API")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "flowrun.web.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
