import logging
import os
import shutil
import threading
from pathlib import Path
from typing import List, Optional
from uuid import UUID, uuid4

from graphify.markdown_parser import deserialize
from graphify.markdown_serializer import serialize
from graphify.markdown_values import utc_now
from graphify.models import (
    ENDPOINT_TYPES,
    NIL_UUID,
    Endpoint,
    Endpoints,
    FullGraph,
    Relations,
    Service,
    ServiceData,
    Services,
    ServiceSummary,
    UseCase,
    UseCases,
    UseCaseStep,
    UseCaseSummary,
    is_valid_endpoint_type,
)

DATA_DIR = Path(os.getenv("GRAPHIFY_DATA_DIR", "data"))

SERVICE_FILE_NAME = "service.md"
ENDPOINTS_FILE_NAME = "endpoints.md"
RELATIONS_FILE_NAME = "relations.md"
USECASES_DIR_NAME = "usecases"

logger = logging.getLogger("graphify.data")


class NotFoundError(LookupError):
    """A service, endpoint or use case does not exist."""


def _check_text(**values: Optional[str]):
    """
    Reject text that would not fit on one document line.

    Raises:
        ValueError: If a value contains a line break
    """
    for label, value in values.items():
        if value is not None and ("\n" in value or "\r" in value):
            raise ValueError(f"{label} must not contain line breaks")


def _check_name(name: str):
    # Names head their sections in listings.
    if not name.strip():
        raise ValueError("name must not be empty")
    _check_text(name=name)


class DataService:
    """
    Stores the documentation graph as Markdown files.

    Storage Layout:
        data/
        └── <service-id>/
            ├── service.md          # Service
            ├── endpoints.md        # Endpoints of the service
            ├── relations.md        # Endpoint ids this service calls
            └── usecases/
                └── <usecase-id>.md # UseCase with its steps

    Every file is a document of the Markdown codec. Writes hold a
    per-process lock; nothing guards against other processes.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else DATA_DIR
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def _service_dir(self, service_id: UUID) -> Path:
        return self.data_dir / str(service_id)

    def _service_dirs(self) -> List[Path]:
        return sorted(p for p in self.data_dir.iterdir() if p.is_dir())

    def _require_service_dir(self, service_id: UUID) -> Path:
        service_dir = self._service_dir(service_id)
        if not service_dir.is_dir():
            raise NotFoundError(f"Service with ID {service_id} does not exist")
        return service_dir

    def _read(self, path: Path, model: type):
        """Parse a document, or None if the file is missing or blank."""
        if not path.is_file():
            return None
        markdown = path.read_text(encoding="utf-8")
        if not markdown.strip():
            return None
        return deserialize(model, markdown)

    def _write(self, path: Path, instance):
        # Serialize before touching the file so a bad value never truncates it.
        markdown = serialize(instance)
        path.write_text(markdown, encoding="utf-8")
        logger.info(f"Wrote {path.relative_to(self.data_dir)} ({len(markdown)} chars)")

    def _use_case_path(self, use_case_id: UUID) -> Optional[Path]:
        for service_dir in self._service_dirs():
            path = service_dir / USECASES_DIR_NAME / f"{use_case_id}.md"
            if path.is_file():
                return path
        return None

    def _load_use_case(self, path: Path) -> Optional[UseCase]:
        try:
            UUID(path.stem)
        except ValueError:
            logger.warning(f"Skipping {path.relative_to(self.data_dir)}: file name is not a use case id")
            return None
        use_case = self._read(path, UseCase)
        if use_case is not None:
            use_case.id = UUID(path.stem)
            use_case.service_id = UUID(path.parent.parent.name)
        return use_case

    def _endpoint_exists(self, endpoint_id: UUID) -> bool:
        for service_dir in self._service_dirs():
            endpoints = self._read(service_dir / ENDPOINTS_FILE_NAME, Endpoints)
            if endpoints and any(e.id == endpoint_id for e in endpoints.endpoint_list):
                return True
        return False

    # -------------------------------------------------------------------------
    # Services
    # -------------------------------------------------------------------------

    def get_services(self) -> Services:
        summaries = []
        for service_dir in self._service_dirs():
            service = self._read(service_dir / SERVICE_FILE_NAME, Service)
            if service is None:
                continue
            summaries.append(ServiceSummary(
                id=service.id,
                name=service.name,
                description=service.description,
                has_endpoints=(service_dir / ENDPOINTS_FILE_NAME).is_file(),
                has_relations=(service_dir / RELATIONS_FILE_NAME).is_file(),
                last_analyzed=service.last_analyzed_at,
                code_path=service.relative_code_path,
            ))
        return Services(service_list=summaries)

    def create_or_update_service(self, name: str, description: str,
                                 service_id: Optional[UUID] = None,
                                 code_path: Optional[str] = None) -> UUID:
        _check_name(name)
        _check_text(description=description, code_path=code_path)
        with self._lock:
            service_id = service_id or uuid4()
            service_dir = self._service_dir(service_id)
            service_dir.mkdir(parents=True, exist_ok=True)
            service = Service(
                id=service_id,
                name=name,
                description=description,
                last_analyzed_at=utc_now(),
                relative_code_path=code_path,
            )
            self._write(service_dir / SERVICE_FILE_NAME, service)
            return service_id

    def delete_service(self, service_id: UUID):
        """Delete a service and every relation that targets one of its endpoints."""
        with self._lock:
            service_dir = self._require_service_dir(service_id)
            endpoint_ids = {e.id for e in self.get_endpoints(service_id).endpoint_list}
            if endpoint_ids:
                self._remove_relations_to(endpoint_ids)
            shutil.rmtree(service_dir)
            logger.info(f"Deleted service {service_id}")

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    def get_endpoints(self, service_id: UUID) -> Endpoints:
        endpoints = self._read(self._service_dir(service_id) / ENDPOINTS_FILE_NAME, Endpoints)
        return endpoints or Endpoints()

    def create_or_update_endpoint(self, service_id: UUID, name: str, description: str,
                                  endpoint_type: str, endpoint_id: Optional[UUID] = None,
                                  code_path: Optional[str] = None) -> UUID:
        """
        Add an endpoint to a service, replacing any endpoint with the same id.

        The written endpoint always moves to the end of the list.
        """
        with self._lock:
            service_dir = self._require_service_dir(service_id)
            if not is_valid_endpoint_type(endpoint_type):
                raise ValueError(f"Invalid endpoint type: {endpoint_type}. "
                                 f"Must be one of: {', '.join(ENDPOINT_TYPES)}")
            _check_name(name)
            _check_text(description=description, code_path=code_path)

            endpoint_id = endpoint_id or uuid4()
            endpoints = self.get_endpoints(service_id)
            endpoints.endpoint_list = [e for e in endpoints.endpoint_list if e.id != endpoint_id]
            endpoints.endpoint_list.append(Endpoint(
                id=endpoint_id,
                name=name,
                description=description,
                type=endpoint_type,
                last_analyzed_at=utc_now(),
                relative_code_path=code_path,
            ))
            self._write(service_dir / ENDPOINTS_FILE_NAME, endpoints)
            return endpoint_id

    def delete_endpoint(self, endpoint_id: UUID):
        """
        Delete an endpoint wherever it is declared.

        Also drops relations targeting it and use cases it initiates.
        Unknown ids are ignored.
        """
        with self._lock:
            for service_dir in self._service_dirs():
                path = service_dir / ENDPOINTS_FILE_NAME
                endpoints = self._read(path, Endpoints)
                if endpoints is None:
                    continue
                remaining = [e for e in endpoints.endpoint_list if e.id != endpoint_id]
                if len(remaining) == len(endpoints.endpoint_list):
                    continue

                endpoints.endpoint_list = remaining
                self._write(path, endpoints)
                self._remove_relations_to({endpoint_id})
                self._remove_use_cases_initiated_by(endpoint_id)
                return

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    def get_relations(self, service_id: UUID) -> Relations:
        relations = self._read(self._service_dir(service_id) / RELATIONS_FILE_NAME, Relations)
        return relations or Relations()

    def add_relation(self, source_service_id: UUID, target_endpoint_id: UUID):
        with self._lock:
            service_dir = self._require_service_dir(source_service_id)
            relations = self.get_relations(source_service_id)
            if target_endpoint_id in relations.target_endpoint_ids:
                return
            relations.target_endpoint_ids.append(target_endpoint_id)
            self._write(service_dir / RELATIONS_FILE_NAME, relations)

    def delete_relation(self, source_service_id: UUID, target_endpoint_id: UUID):
        with self._lock:
            service_dir = self._require_service_dir(source_service_id)
            path = service_dir / RELATIONS_FILE_NAME
            relations = self._read(path, Relations)
            if relations is None or target_endpoint_id not in relations.target_endpoint_ids:
                return
            relations.target_endpoint_ids = [i for i in relations.target_endpoint_ids
                                             if i != target_endpoint_id]
            self._write(path, relations)

    def _remove_relations_to(self, endpoint_ids: set):
        for service_dir in self._service_dirs():
            path = service_dir / RELATIONS_FILE_NAME
            relations = self._read(path, Relations)
            if relations is None:
                continue
            remaining = [i for i in relations.target_endpoint_ids if i not in endpoint_ids]
            if len(remaining) != len(relations.target_endpoint_ids):
                relations.target_endpoint_ids = remaining
                self._write(path, relations)

    # -------------------------------------------------------------------------
    # Use cases
    # -------------------------------------------------------------------------

    def get_use_cases(self, service_id: UUID) -> UseCases:
        use_cases_dir = self._service_dir(service_id) / USECASES_DIR_NAME
        if not use_cases_dir.is_dir():
            return UseCases()

        summaries = []
        for path in sorted(use_cases_dir.glob("*.md")):
            use_case = self._load_use_case(path)
            if use_case is None:
                continue
            summaries.append(UseCaseSummary(
                id=use_case.id,
                name=use_case.name,
                description=use_case.description,
                initiating_endpoint_id=use_case.initiating_endpoint_id,
                last_analyzed=use_case.last_analyzed_at,
                step_count=len(use_case.steps),
            ))
        return UseCases(use_case_list=summaries)

    def get_use_case_details(self, use_case_id: UUID) -> UseCase:
        path = self._use_case_path(use_case_id)
        use_case = self._load_use_case(path) if path else None
        if use_case is None:
            raise NotFoundError(f"Use case with ID {use_case_id} does not exist")
        return use_case

    def get_use_cases_by_ids(self, use_case_ids: List[UUID]) -> List[UseCase]:
        """Use cases among ``use_case_ids``, ordered by service then file name; unknown ids are skipped."""
        wanted = set(use_case_ids)
        found = []
        for service_dir in self._service_dirs():
            use_cases_dir = service_dir / USECASES_DIR_NAME
            if not use_cases_dir.is_dir():
                continue
            for path in sorted(use_cases_dir.glob("*.md")):
                use_case = self._load_use_case(path)
                if use_case is not None and use_case.id in wanted:
                    found.append(use_case)
        return found

    def create_or_update_use_case(self, service_id: UUID, name: str, description: str,
                                  initiating_endpoint_id: UUID,
                                  use_case_id: Optional[UUID] = None) -> UUID:
        _check_name(name)
        _check_text(description=description)
        with self._lock:
            service_dir = self._require_service_dir(service_id)
            endpoints = self.get_endpoints(service_id)
            if not any(e.id == initiating_endpoint_id for e in endpoints.endpoint_list):
                raise NotFoundError(f"Endpoint with ID {initiating_endpoint_id} "
                                    f"does not exist in service {service_id}")

            use_case_id = use_case_id or uuid4()
            use_cases_dir = service_dir / USECASES_DIR_NAME
            use_cases_dir.mkdir(parents=True, exist_ok=True)
            path = use_cases_dir / f"{use_case_id}.md"

            use_case = self._load_use_case(path)
            if use_case is not None:
                use_case.name = name
                use_case.description = description
                use_case.initiating_endpoint_id = initiating_endpoint_id
                use_case.last_analyzed_at = utc_now()
            else:
                use_case = UseCase(
                    id=use_case_id,
                    service_id=service_id,
                    name=name,
                    description=description,
                    initiating_endpoint_id=initiating_endpoint_id,
                    last_analyzed_at=utc_now(),
                )
            self._write(path, use_case)
            return use_case_id

    def add_step(self, use_case_id: UUID, name: str, description: str,
                 service_id: Optional[UUID] = None, endpoint_id: Optional[UUID] = None,
                 relative_code_path: Optional[str] = None) -> int:
        """Append a step and return its index."""
        _check_name(name)
        _check_text(description=description, relative_code_path=relative_code_path)
        with self._lock:
            if service_id is not None:
                self._require_service_dir(service_id)
            if endpoint_id is not None and not self._endpoint_exists(endpoint_id):
                raise NotFoundError(f"Endpoint with ID {endpoint_id} does not exist")

            use_case = self.get_use_case_details(use_case_id)
            use_case.steps.append(UseCaseStep(
                name=name,
                description=description,
                service_id=service_id,
                endpoint_id=endpoint_id,
                relative_code_path=relative_code_path,
            ))
            use_case.last_analyzed_at = utc_now()
            self._write(self._use_case_path(use_case_id), use_case)
            return len(use_case.steps) - 1

    def update_step(self, use_case_id: UUID, step_index: int,
                    name: Optional[str] = None, description: Optional[str] = None,
                    service_id: Optional[UUID] = None, endpoint_id: Optional[UUID] = None,
                    relative_code_path: Optional[str] = None):
        """
        Update the given fields of a step; None leaves a field unchanged.

        The nil UUID clears ``service_id`` / ``endpoint_id`` and an empty
        string clears ``relative_code_path``.
        """
        if name is not None:
            _check_name(name)
        _check_text(description=description, relative_code_path=relative_code_path)
        with self._lock:
            use_case = self.get_use_case_details(use_case_id)
            if step_index < 0 or step_index >= len(use_case.steps):
                raise ValueError(f"Step index {step_index} is out of range. "
                                 f"Use case has {len(use_case.steps)} steps.")
            if service_id is not None and service_id != NIL_UUID:
                self._require_service_dir(service_id)
            if endpoint_id is not None and endpoint_id != NIL_UUID and not self._endpoint_exists(endpoint_id):
                raise NotFoundError(f"Endpoint with ID {endpoint_id} does not exist")

            step = use_case.steps[step_index]
            if name is not None:
                step.name = name
            if description is not None:
                step.description = description
            if service_id is not None:
                step.service_id = None if service_id == NIL_UUID else service_id
            if endpoint_id is not None:
                step.endpoint_id = None if endpoint_id == NIL_UUID else endpoint_id
            if relative_code_path is not None:
                step.relative_code_path = relative_code_path or None

            use_case.last_analyzed_at = utc_now()
            self._write(self._use_case_path(use_case_id), use_case)

    def delete_all_steps(self, use_case_id: UUID):
        with self._lock:
            use_case = self.get_use_case_details(use_case_id)
            use_case.steps = []
            use_case.last_analyzed_at = utc_now()
            self._write(self._use_case_path(use_case_id), use_case)

    def delete_use_case(self, use_case_id: UUID):
        with self._lock:
            path = self._use_case_path(use_case_id)
            if path is None:
                raise NotFoundError(f"Use case with ID {use_case_id} does not exist")
            path.unlink()
            logger.info(f"Deleted use case {use_case_id}")

    def _remove_use_cases_initiated_by(self, endpoint_id: UUID):
        for service_dir in self._service_dirs():
            use_cases_dir = service_dir / USECASES_DIR_NAME
            if not use_cases_dir.is_dir():
                continue
            for path in sorted(use_cases_dir.glob("*.md")):
                use_case = self._load_use_case(path)
                if use_case is not None and use_case.initiating_endpoint_id == endpoint_id:
                    path.unlink()
                    logger.info(f"Deleted use case {path.stem} initiated by endpoint {endpoint_id}")

    # -------------------------------------------------------------------------
    # Graph
    # -------------------------------------------------------------------------

    def get_full_graph(self) -> FullGraph:
        services = []
        for service_dir in self._service_dirs():
            service = self._read(service_dir / SERVICE_FILE_NAME, Service)
            if service is None:
                continue

            use_cases = []
            use_cases_dir = service_dir / USECASES_DIR_NAME
            if use_cases_dir.is_dir():
                for path in sorted(use_cases_dir.glob("*.md")):
                    use_case = self._load_use_case(path)
                    if use_case is not None:
                        use_cases.append(use_case)

            services.append(ServiceData(
                service=service,
                endpoints=self.get_endpoints(service.id).endpoint_list,
                relations=self.get_relations(service.id),
                use_cases=use_cases,
            ))
        return FullGraph(services=services)
