"""
Documentation graph models.

Entities (``Service``, ``Endpoints``, ``Relations``, ``UseCase``) are what the
data service persists as Markdown files. The remaining models are read views
assembled from entities for the API.
"""

from datetime import datetime
from typing import Annotated, Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from graphify.markdown_schema import (
    MarkdownHeader,
    MarkdownIgnore,
    MarkdownModel,
    MarkdownSubHeader,
    markdown_serializable,
)

NIL_UUID = UUID(int=0)

ENDPOINT_TYPE_HTTP = "http"
ENDPOINT_TYPE_QUEUE = "queue"
ENDPOINT_TYPE_JOB = "job"
ENDPOINT_TYPES = (ENDPOINT_TYPE_HTTP, ENDPOINT_TYPE_QUEUE, ENDPOINT_TYPE_JOB)


def is_valid_endpoint_type(endpoint_type: str) -> bool:
    return endpoint_type in ENDPOINT_TYPES


# -------------------------------------------------------------------------
# Entities
# -------------------------------------------------------------------------

@markdown_serializable
class Service(MarkdownModel):
    id: UUID
    name: Annotated[str, MarkdownHeader()]
    description: str
    last_analyzed_at: datetime
    relative_code_path: Optional[str] = None


@markdown_serializable
class Endpoint(MarkdownModel):
    id: UUID
    name: Annotated[str, MarkdownHeader()]
    description: str
    type: str
    last_analyzed_at: datetime
    relative_code_path: Optional[str] = None


@markdown_serializable
class Endpoints(MarkdownModel):
    endpoint_list: List[Endpoint] = Field(default_factory=list)


@markdown_serializable
class Relations(MarkdownModel):
    target_endpoint_ids: List[UUID] = Field(default_factory=list)


@markdown_serializable
class UseCaseStep(MarkdownModel):
    name: Annotated[str, MarkdownHeader()]
    description: str
    service_id: Optional[UUID] = None
    endpoint_id: Optional[UUID] = None
    relative_code_path: Optional[str] = None


@markdown_serializable
class UseCase(MarkdownModel):
    # Both ids are implied by the file location.
    id: Annotated[UUID, MarkdownIgnore()] = NIL_UUID
    service_id: Annotated[UUID, MarkdownIgnore()] = NIL_UUID
    name: Annotated[str, MarkdownHeader()]
    description: str
    initiating_endpoint_id: UUID
    last_analyzed_at: datetime
    steps: List[UseCaseStep] = Field(default_factory=list)


# -------------------------------------------------------------------------
# Read models
# -------------------------------------------------------------------------

@markdown_serializable
class ServiceSummary(MarkdownModel):
    id: UUID
    name: Annotated[str, MarkdownHeader()]
    description: str
    has_endpoints: bool = False
    has_relations: bool = False
    last_analyzed: datetime
    code_path: Optional[str] = None


@markdown_serializable
class Services(MarkdownModel):
    service_list: List[ServiceSummary] = Field(default_factory=list)


@markdown_serializable
class ServiceItem(MarkdownModel):
    id: UUID
    name: Annotated[str, MarkdownHeader()]
    description: str
    last_analyzed_at: datetime
    relative_code_path: Optional[str] = None


@markdown_serializable(title="Services overview")
class ServicesOverview(MarkdownModel):
    service_list: List[ServiceItem] = Field(default_factory=list)

    @classmethod
    def from_entities(cls, services: Iterable[Service]) -> "ServicesOverview":
        return cls(service_list=[
            ServiceItem(
                id=srv.id,
                name=srv.name,
                description=srv.description,
                last_analyzed_at=srv.last_analyzed_at,
                relative_code_path=srv.relative_code_path,
            )
            for srv in services
        ])


@markdown_serializable
class DetailedServiceEndpoint(MarkdownModel):
    id: UUID
    name: Annotated[str, MarkdownHeader()]
    description: str
    type: str
    last_analyzed_at: datetime
    relative_code_path: Optional[str] = None


@markdown_serializable
class DetailedServiceUseCase(MarkdownModel):
    id: UUID
    name: Annotated[str, MarkdownHeader()]
    description: str
    initiating_endpoint_id: UUID
    last_analyzed_at: datetime


@markdown_serializable
class DetailedService(MarkdownModel):
    id: UUID
    name: Annotated[str, MarkdownHeader()]
    endpoints: Annotated[List[DetailedServiceEndpoint], MarkdownSubHeader("Endpoints")] = Field(default_factory=list)
    use_cases: Annotated[List[DetailedServiceUseCase], MarkdownSubHeader("Use cases")] = Field(default_factory=list)


@markdown_serializable(title="Services details")
class ServicesDetails(MarkdownModel):
    services: List[DetailedService] = Field(default_factory=list)

    @classmethod
    def from_graph(cls, graph: "FullGraph", service_ids: Optional[Iterable[UUID]] = None,
                   with_endpoints: bool = True, with_use_cases: bool = True) -> "ServicesDetails":
        """
        Build the details view of a graph.

        Args:
            graph: The full graph
            service_ids: Services to include, in graph order; None includes all
            with_endpoints: Include each service's endpoints
            with_use_cases: Include each service's use cases
        """
        wanted = set(service_ids) if service_ids is not None else None
        services = []
        for data in graph.services:
            if wanted is not None and data.service.id not in wanted:
                continue
            endpoints = []
            if with_endpoints:
                endpoints = [
                    DetailedServiceEndpoint(
                        id=e.id,
                        name=e.name,
                        description=e.description,
                        type=e.type,
                        last_analyzed_at=e.last_analyzed_at,
                        relative_code_path=e.relative_code_path,
                    )
                    for e in data.endpoints
                ]
            use_cases = []
            if with_use_cases:
                use_cases = [
                    DetailedServiceUseCase(
                        id=u.id,
                        name=u.name,
                        description=u.description,
                        initiating_endpoint_id=u.initiating_endpoint_id,
                        last_analyzed_at=u.last_analyzed_at,
                    )
                    for u in data.use_cases
                ]
            services.append(DetailedService(
                id=data.service.id,
                name=data.service.name,
                endpoints=endpoints,
                use_cases=use_cases,
            ))
        return cls(services=services)


@markdown_serializable
class UseCaseSummary(MarkdownModel):
    id: UUID
    name: Annotated[str, MarkdownHeader()]
    description: str
    initiating_endpoint_id: UUID
    last_analyzed: datetime
    step_count: int = 0


@markdown_serializable
class UseCases(MarkdownModel):
    use_case_list: List[UseCaseSummary] = Field(default_factory=list)


@markdown_serializable
class DetailedUseCaseStep(MarkdownModel):
    name: Annotated[str, MarkdownHeader()]
    description: str
    service_id: Optional[UUID] = None
    endpoint_id: Optional[UUID] = None
    relative_code_path: Optional[str] = None


@markdown_serializable
class DetailedUseCase(MarkdownModel):
    id: UUID
    name: Annotated[str, MarkdownHeader()]
    steps: List[DetailedUseCaseStep] = Field(default_factory=list)


@markdown_serializable(title="Use cases details")
class UseCasesDetails(MarkdownModel):
    use_cases: List[DetailedUseCase] = Field(default_factory=list)

    @classmethod
    def from_entities(cls, use_cases: Iterable[UseCase]) -> "UseCasesDetails":
        return cls(use_cases=[
            DetailedUseCase(
                id=u.id,
                name=u.name,
                steps=[
                    DetailedUseCaseStep(
                        name=s.name,
                        description=s.description,
                        service_id=s.service_id,
                        endpoint_id=s.endpoint_id,
                        relative_code_path=s.relative_code_path,
                    )
                    for s in u.steps
                ],
            )
            for u in use_cases
        ])


# -------------------------------------------------------------------------
# JSON graph
# -------------------------------------------------------------------------

class ServiceData(BaseModel):
    service: Service
    endpoints: List[Endpoint] = Field(default_factory=list)
    relations: Relations = Field(default_factory=Relations)
    use_cases: List[UseCase] = Field(default_factory=list)


class FullGraph(BaseModel):
    services: List[ServiceData] = Field(default_factory=list)
