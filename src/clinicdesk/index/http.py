"""
HTTP Entity Index

Client for the clinic record store REST API:
- GET   {search_path}?search=...&limit=...  -> {"success": true, "data": [...]}
- POST  {create_path}                       -> {"success": true, "data": {...}}
- PATCH {update_path}/{id}                  -> {"success": true, "data": {...}}

Wire records use camelCase (firstName, phoneNumber, dateOfBirth, ...) and
are mapped to block field names here.
"""

from typing import Any

import httpx
import structlog

from clinicdesk.config import get_settings
from clinicdesk.exceptions import EntityIndexError
from clinicdesk.index.base import EntityIndex, PersistResult
from clinicdesk.models.core import EntityId
from clinicdesk.models.resolution import CandidateEntity

logger = structlog.get_logger(__name__)


# Wire name -> block field name
FACILITY_FIELDS = {
    "name": "name",
    "address": "address",
    "phoneNumber": "phone",
    "email": "email",
    "website": "website",
    "type": "category",
}

SUBJECT_FIELDS = {
    "firstName": "given_name",
    "lastName": "family_name",
    "gender": "gender",
    "age": "age",
    "dateOfBirth": "birth_date",
    "guardianName": "guardian_name",
    "address": "address",
    "phoneNumber": "phone",
    "email": "email",
    "bloodGroup": "blood_group",
    "occupation": "occupation",
    # Companion values, stored on the patient
    "guardianAge": "guardian_age",
    "guardianDOB": "guardian_birth_date",
    "guardianGender": "guardian_gender",
    "guardianOccupation": "guardian_occupation",
    "guardianPhone": "guardian_phone",
    "guardianEmail": "guardian_email",
    "husbandName": "guardian_name",
    "husbandAge": "guardian_age",
    "husbandDOB": "guardian_birth_date",
    "husbandGender": "guardian_gender",
    "husbandOccupation": "guardian_occupation",
    "husbandPhone": "guardian_phone",
    "husbandEmail": "guardian_email",
}


def facility_candidate(record: dict[str, Any]) -> CandidateEntity:
    fields = {
        target: record[source]
        for source, target in FACILITY_FIELDS.items()
        if record.get(source) is not None
    }
    return CandidateEntity(id=record["id"], kind="facility", label=record.get("name", ""), fields=fields)


def subject_candidate(record: dict[str, Any]) -> CandidateEntity:
    fields = {
        target: record[source]
        for source, target in SUBJECT_FIELDS.items()
        if record.get(source) is not None
    }
    label = record.get("fullName") or " ".join(
        part for part in (record.get("firstName"), record.get("lastName")) if part
    )
    return CandidateEntity(id=record["id"], kind="subject", label=label, fields=fields)


CANDIDATE_MAPPERS = {
    "facility": facility_candidate,
    "subject": subject_candidate,
}


class HttpEntityIndex(EntityIndex):
    """
    Entity index over the record store REST API.

    Timeouts and transport errors during search raise EntityIndexError.
    Create and update never raise; failures come back as PersistResult
    with the server's field-level detail when it sent any.
    """

    def __init__(
        self,
        kind: str,
        search_path: str,
        create_path: str | None = None,
        update_path: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        api_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if kind not in CANDIDATE_MAPPERS:
            raise ValueError(f"Unknown entity kind: {kind}")

        settings = get_settings().index
        self.kind = kind
        self.search_path = search_path
        self.create_path = create_path
        self.update_path = update_path or create_path
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.timeout = settings.timeout_seconds if timeout is None else timeout
        if api_token is None and settings.api_token is not None:
            api_token = settings.api_token.get_secret_value()
        self._api_token = api_token
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def search(self, query: str, limit: int) -> list[CandidateEntity]:
        try:
            async with self._client() as client:
                response = await client.get(self.search_path, params={"search": query, "limit": limit})
        except httpx.HTTPError as e:
            raise EntityIndexError(f"Search request failed: {e}") from e

        if response.status_code != 200:
            raise EntityIndexError(
                f"Search failed: HTTP {response.status_code}",
                detail={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise EntityIndexError("Search returned a non-JSON body") from e

        if not body.get("success", False):
            raise EntityIndexError(body.get("error") or "Search failed", detail=body)

        mapper = CANDIDATE_MAPPERS[self.kind]
        candidates = [mapper(record) for record in body.get("data") or [] if "id" in record]
        logger.debug("entity_search_completed", kind=self.kind, count=len(candidates))
        return candidates[:limit]

    async def create(self, record: dict[str, Any]) -> PersistResult:
        if not self.create_path:
            return PersistResult(success=False, error="This index does not accept new records")
        return await self._persist("POST", self.create_path, record)

    async def update(self, entity_id: EntityId, record: dict[str, Any]) -> PersistResult:
        if not self.update_path:
            return PersistResult(success=False, error="This index does not accept updates")
        return await self._persist("PATCH", f"{self.update_path.rstrip('/')}/{entity_id}", record)

    async def _persist(self, method: str, path: str, record: dict[str, Any]) -> PersistResult:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=record)
        except httpx.HTTPError as e:
            logger.warning("record_persist_failed", kind=self.kind, method=method, error=str(e))
            return PersistResult(
                success=False,
                error="Unable to connect to server. Please check your internet connection.",
            )

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_success and body.get("success", True):
            return PersistResult(success=True, stored_entity=body.get("data") or {})

        logger.warning(
            "record_persist_rejected",
            kind=self.kind,
            method=method,
            status_code=response.status_code,
        )
        return PersistResult(
            success=False,
            error=body.get("message") or body.get("error") or f"HTTP {response.status_code}",
            field_errors=body.get("details") or body.get("fieldErrors"),
        )
