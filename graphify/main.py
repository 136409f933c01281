import logging
import os
from pathlib import Path
from typing import List, Literal, Optional
from uuid import UUID

from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from graphify.data_service import DataService, NotFoundError
from graphify.markdown_errors import MarkdownError
from graphify.markdown_renderer import render_markdown
from graphify.markdown_serializer import serialize
from graphify.models import FullGraph, ServicesDetails, ServicesOverview, UseCasesDetails

# Load environment variables from .env file (GRAPHIFY_DATA_DIR etc.)
load_dotenv()

# Configure Logging
logging.basicConfig(
    level=os.getenv("GRAPHIFY_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("graphify")

data = DataService(Path(os.getenv("GRAPHIFY_DATA_DIR", "data")))

app = FastAPI(title="graphify")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

DocumentFormat = Literal["markdown", "html"]


class DocumentResponse(BaseModel):
    """A graph document rendered in the requested format."""
    content: str
    format: str


class ServiceRequest(BaseModel):
    name: str
    description: str
    id: Optional[UUID] = None
    code_path: Optional[str] = None


class EndpointRequest(BaseModel):
    name: str
    description: str
    type: str
    id: Optional[UUID] = None
    code_path: Optional[str] = None


class RelationRequest(BaseModel):
    target_endpoint_id: UUID


class UseCaseRequest(BaseModel):
    name: str
    description: str
    initiating_endpoint_id: UUID
    id: Optional[UUID] = None


class StepRequest(BaseModel):
    name: str
    description: str
    service_id: Optional[UUID] = None
    endpoint_id: Optional[UUID] = None
    relative_code_path: Optional[str] = None


class StepUpdateRequest(BaseModel):
    """Fields left as None are not changed; nil UUID / empty string clear a value."""
    name: Optional[str] = None
    description: Optional[str] = None
    service_id: Optional[UUID] = None
    endpoint_id: Optional[UUID] = None
    relative_code_path: Optional[str] = None


def _document(instance, format: str) -> DocumentResponse:
    content = serialize(instance)
    if format == "html":
        content = render_markdown(content)
    return DocumentResponse(content=content, format=format)


# -------------------------------------------------------------------------
# Error mapping
# -------------------------------------------------------------------------

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def invalid_argument_handler(request: Request, exc: ValueError):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(MarkdownError)
async def markdown_error_handler(request: Request, exc: MarkdownError):
    logger.error(f"{request.method} {request.url.path}: stored document is invalid: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# -------------------------------------------------------------------------
# Services
# -------------------------------------------------------------------------

@app.get("/api/services")
async def get_services(format: DocumentFormat = Query(default="markdown")) -> DocumentResponse:
    logger.info(f"SERVICES Request: format='{format}'")
    return _document(data.get_services(), format)


@app.post("/api/services")
async def create_or_update_service(req: ServiceRequest):
    logger.info(f"SERVICE Request: name='{req.name}', id={req.id}")
    service_id = data.create_or_update_service(req.name, req.description, req.id, req.code_path)
    return {"id": service_id}


@app.delete("/api/services/{service_id}", status_code=204)
async def delete_service(service_id: UUID):
    logger.info(f"DELETE SERVICE Request: id={service_id}")
    data.delete_service(service_id)


@app.get("/api/overview")
async def get_overview(format: DocumentFormat = Query(default="markdown")) -> DocumentResponse:
    logger.info(f"OVERVIEW Request: format='{format}'")
    graph = data.get_full_graph()
    return _document(ServicesOverview.from_entities(s.service for s in graph.services), format)


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------

@app.get("/api/services/{service_id}/endpoints")
async def get_endpoints(service_id: UUID,
                        format: DocumentFormat = Query(default="markdown")) -> DocumentResponse:
    logger.info(f"ENDPOINTS Request: service={service_id}, format='{format}'")
    return _document(data.get_endpoints(service_id), format)


@app.post("/api/services/{service_id}/endpoints")
async def create_or_update_endpoint(service_id: UUID, req: EndpointRequest):
    logger.info(f"ENDPOINT Request: service={service_id}, name='{req.name}', type='{req.type}'")
    endpoint_id = data.create_or_update_endpoint(service_id, req.name, req.description,
                                                 req.type, req.id, req.code_path)
    return {"id": endpoint_id}


@app.delete("/api/endpoints/{endpoint_id}", status_code=204)
async def delete_endpoint(endpoint_id: UUID):
    logger.info(f"DELETE ENDPOINT Request: id={endpoint_id}")
    data.delete_endpoint(endpoint_id)


# -------------------------------------------------------------------------
# Relations
# -------------------------------------------------------------------------

@app.get("/api/services/{service_id}/relations")
async def get_relations(service_id: UUID,
                        format: DocumentFormat = Query(default="markdown")) -> DocumentResponse:
    logger.info(f"RELATIONS Request: service={service_id}, format='{format}'")
    return _document(data.get_relations(service_id), format)


@app.post("/api/services/{service_id}/relations", status_code=204)
async def add_relation(service_id: UUID, req: RelationRequest):
    logger.info(f"RELATION Request: service={service_id} -> endpoint={req.target_endpoint_id}")
    data.add_relation(service_id, req.target_endpoint_id)


@app.delete("/api/services/{service_id}/relations/{endpoint_id}", status_code=204)
async def delete_relation(service_id: UUID, endpoint_id: UUID):
    logger.info(f"DELETE RELATION Request: service={service_id} -> endpoint={endpoint_id}")
    data.delete_relation(service_id, endpoint_id)


# -------------------------------------------------------------------------
# Use cases
# -------------------------------------------------------------------------

@app.get("/api/services/{service_id}/use-cases")
async def get_use_cases(service_id: UUID,
                        format: DocumentFormat = Query(default="markdown")) -> DocumentResponse:
    logger.info(f"USE CASES Request: service={service_id}, format='{format}'")
    return _document(data.get_use_cases(service_id), format)


@app.post("/api/services/{service_id}/use-cases")
async def create_or_update_use_case(service_id: UUID, req: UseCaseRequest):
    logger.info(f"USE CASE Request: service={service_id}, name='{req.name}'")
    use_case_id = data.create_or_update_use_case(service_id, req.name, req.description,
                                                 req.initiating_endpoint_id, req.id)
    return {"id": use_case_id}


@app.get("/api/use-cases/{use_case_id}")
async def get_use_case(use_case_id: UUID,
                       format: DocumentFormat = Query(default="markdown")) -> DocumentResponse:
    logger.info(f"USE CASE DETAILS Request: id={use_case_id}, format='{format}'")
    return _document(data.get_use_case_details(use_case_id), format)


@app.delete("/api/use-cases/{use_case_id}", status_code=204)
async def delete_use_case(use_case_id: UUID):
    logger.info(f"DELETE USE CASE Request: id={use_case_id}")
    data.delete_use_case(use_case_id)


@app.post("/api/use-cases/{use_case_id}/steps")
async def add_step(use_case_id: UUID, req: StepRequest):
    logger.info(f"STEP Request: use_case={use_case_id}, name='{req.name}'")
    index = data.add_step(use_case_id, req.name, req.description, req.service_id,
                          req.endpoint_id, req.relative_code_path)
    return {"index": index}


@app.put("/api/use-cases/{use_case_id}/steps/{step_index}", status_code=204)
async def update_step(use_case_id: UUID, step_index: int, req: StepUpdateRequest):
    logger.info(f"UPDATE STEP Request: use_case={use_case_id}, index={step_index}")
    data.update_step(use_case_id, step_index, req.name, req.description, req.service_id,
                     req.endpoint_id, req.relative_code_path)


@app.delete("/api/use-cases/{use_case_id}/steps", status_code=204)
async def delete_all_steps(use_case_id: UUID):
    logger.info(f"DELETE STEPS Request: use_case={use_case_id}")
    data.delete_all_steps(use_case_id)


# -------------------------------------------------------------------------
# Graph
# -------------------------------------------------------------------------

@app.get("/api/graph")
async def get_graph() -> FullGraph:
    logger.info("GRAPH Request")
    return data.get_full_graph()


def _services_details(service_ids: Optional[List[UUID]], show_endpoints: bool,
                      show_use_cases: bool) -> ServicesDetails:
    return ServicesDetails.from_graph(data.get_full_graph(), service_ids=service_ids,
                                      with_endpoints=show_endpoints, with_use_cases=show_use_cases)


@app.get("/api/full-graph", response_class=PlainTextResponse)
async def get_full_graph_markdown(service_ids: Optional[List[UUID]] = Query(default=None),
                                  show_endpoints: bool = True, show_use_cases: bool = True):
    logger.info(f"FULL GRAPH Request: services={service_ids}, endpoints={show_endpoints}, "
                f"use_cases={show_use_cases}")
    return serialize(_services_details(service_ids, show_endpoints, show_use_cases))


@app.get("/api/render/full-graph")
async def render_full_graph(format: DocumentFormat = Query(default="html"),
                            service_ids: Optional[List[UUID]] = Query(default=None),
                            show_endpoints: bool = True,
                            show_use_cases: bool = True) -> DocumentResponse:
    logger.info(f"RENDER FULL GRAPH Request: format='{format}', services={service_ids}")
    return _document(_services_details(service_ids, show_endpoints, show_use_cases), format)


@app.get("/api/use-case-details")
async def get_use_cases_details(ids: List[UUID] = Query(...),
                                format: DocumentFormat = Query(default="markdown")) -> DocumentResponse:
    logger.info(f"USE CASES DETAILS Request: ids={len(ids)}, format='{format}'")
    return _document(UseCasesDetails.from_entities(data.get_use_cases_by_ids(ids)), format)
