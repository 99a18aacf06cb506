"""
FastAPI web interface for nl2sql.
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..config import settings
from ..core.exceptions import (
    ConnectivityError,
    InputValidationError,
    NL2SQLError,
)
from ..core.models import ColumnInfo, ForeignKeyInfo, ModelStatus, TableInfo
from ..generation import get_example_queries
from ..orchestrator import QueryOrchestrator

# Set up logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@lru_cache
def get_orchestrator() -> QueryOrchestrator:
    """One orchestrator, and so one database engine, per process."""
    return QueryOrchestrator()


# FastAPI app
app = FastAPI(
    title="nl2sql API",
    description="Natural language to SQL with a local model and rule-based fallback",
    version=__version__
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic models
class QueryRequest(BaseModel):
    query: str = Field(..., description="Natural language query")
    model: Optional[str] = Field(default=None, description="Ollama model name")
    use_llm: Optional[bool] = Field(default=None, description="Override the model-enabled setting")
    tables: Optional[List[str]] = Field(default=None, description="Tables to focus generation on")


class QueryResponse(BaseModel):
    sql: str
    explanation: str
    data: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    source: str


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected request to {request.url.path}: {exc.errors()}")
    if request.url.path == "/api/generate-sql":
        message = "Query is required and must be a string"
    else:
        message = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(InputValidationError)
async def input_error_handler(request: Request, exc: InputValidationError):
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(ConnectivityError)
async def connectivity_error_handler(request: Request, exc: ConnectivityError):
    logger.error(f"Collaborator unavailable for {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"error": exc.message})


@app.exception_handler(NL2SQLError)
async def pipeline_error_handler(request: Request, exc: NL2SQLError):
    logger.error(f"Error handling {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": exc.message})


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "nl2sql API",
        "version": __version__,
        "docs": "/docs"
    }


@app.post("/api/generate-sql", response_model=QueryResponse, response_model_exclude_none=True)
def generate_sql(request: QueryRequest, orchestrator: QueryOrchestrator = Depends(get_orchestrator)):
    """Convert natural language query to SQL and execute it.

    Execution failures still answer 200 with an ``error`` field, since the
    SQL itself was generated.
    """
    result = orchestrator.generate_and_execute(
        request.query,
        model=request.model,
        use_llm=request.use_llm,
        tables=request.tables,
    )
    return QueryResponse(**result.model_dump())


@app.get("/api/tables", response_model=List[TableInfo])
def list_tables(orchestrator: QueryOrchestrator = Depends(get_orchestrator)):
    """List database tables with row counts."""
    return orchestrator.list_tables()


@app.get("/api/tables/{table_name}/schema", response_model=List[ColumnInfo])
def get_table_schema(table_name: str, orchestrator: QueryOrchestrator = Depends(get_orchestrator)):
    """Get column metadata for a table."""
    return orchestrator.get_table_schema(table_name)


@app.get("/api/tables/{table_name}/sample")
def get_sample_data(
    table_name: str,
    limit: int = 10,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """Fetch the first rows of a table."""
    return {"table": table_name, "data": orchestrator.fetch_sample_data(table_name, limit=limit)}


@app.get("/api/relationships", response_model=List[ForeignKeyInfo])
def get_relationships(orchestrator: QueryOrchestrator = Depends(get_orchestrator)):
    """Get foreign key relationships."""
    return orchestrator.get_relationships()


@app.get("/api/models", response_model=ModelStatus)
def get_models(orchestrator: QueryOrchestrator = Depends(get_orchestrator)):
    """Check whether Ollama is running and list installed models."""
    return orchestrator.check_model_status()


@app.get("/api/db-test")
def test_database(orchestrator: QueryOrchestrator = Depends(get_orchestrator)):
    """Test the database connection."""
    return orchestrator.test_connection()


@app.get("/api/examples")
def get_examples():
    """Suggested example questions."""
    return {"queries": get_example_queries()}


@app.get("/api/stats")
def get_stats(orchestrator: QueryOrchestrator = Depends(get_orchestrator)):
    """Get system statistics."""
    return orchestrator.get_stats()


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "nl2sql.api.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug
    )
