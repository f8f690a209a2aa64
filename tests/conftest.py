import asyncio
from datetime import date

import pytest

from clinicdesk.catalog import LineItemCatalog
from clinicdesk.engine.graph import RecordGraph
from clinicdesk.engine.validation import ValidationGate
from clinicdesk.index.base import EntityIndex, PersistResult
from clinicdesk.models.financial import LineItem
from clinicdesk.models.resolution import CandidateEntity
from clinicdesk.workflows.infertility import INFERTILITY
from clinicdesk.workflows.pathology import PATHOLOGY

TODAY = date(2026, 10, 19)


class ScriptedIndex(EntityIndex):
    """
    Entity index whose search responses are released by the test.

    Each query blocks until `respond(query, ...)` is called, so responses
    can be delivered in any order.
    """

    def __init__(self):
        self.calls: list[str] = []
        self.created: list[dict] = []
        self.updated: list[tuple] = []
        self.persist_result = PersistResult(success=True, stored_entity={"id": 42})
        self.persist_error: Exception | None = None
        self._events: dict[str, asyncio.Event] = {}
        self._responses: dict[str, object] = {}

    def _event(self, query: str) -> asyncio.Event:
        return self._events.setdefault(query, asyncio.Event())

    def respond(self, query: str, candidates=None, error: Exception | None = None):
        self._responses[query] = error if error is not None else list(candidates or [])
        self._event(query).set()

    async def search(self, query: str, limit: int):
        self.calls.append(query)
        await self._event(query).wait()
        response = self._responses[query]
        if isinstance(response, Exception):
            raise response
        return response[:limit]

    async def create(self, record):
        self.created.append(record)
        if self.persist_error:
            raise self.persist_error
        return self.persist_result

    async def update(self, entity_id, record):
        self.updated.append((entity_id, record))
        if self.persist_error:
            raise self.persist_error
        return self.persist_result


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def scripted_index():
    return ScriptedIndex()


@pytest.fixture
def flat_catalog():
    return LineItemCatalog([
        LineItem(code="PROTHROMBIN", name="Prothombin Time", category="Hematology", price=1000),
        LineItem(code="HB", name="HB%", category="Hematology", price=200),
    ])


@pytest.fixture
def pathology_graph(flat_catalog):
    return RecordGraph(
        PATHOLOGY.template,
        gate=ValidationGate(PATHOLOGY.rules),
        catalog=flat_catalog,
        today=lambda: TODAY,
    )


@pytest.fixture
def infertility_graph():
    return RecordGraph(
        INFERTILITY.template,
        gate=ValidationGate(INFERTILITY.rules),
        today=lambda: TODAY,
    )


@pytest.fixture
def jane():
    return CandidateEntity(
        id=7,
        kind="subject",
        label="Jane Doe",
        fields={
            "given_name": "Jane",
            "family_name": "Doe",
            "gender": "Female",
            "birth_date": "1996-10-19",
            "phone": "01712345678",
            "email": "jane@example.com",
            "address": "House 4, Road 2, Dhaka",
            "blood_group": "O+",
            "guardian_name": "John Doe",
            "guardian_age": 35,
            "guardian_gender": "Male",
            "guardian_phone": "01812345678",
        },
    )


@pytest.fixture
def janet():
    return CandidateEntity(
        id=8,
        kind="subject",
        label="Janet Roe",
        fields={"given_name": "Janet", "family_name": "Roe", "age": 41},
    )


@pytest.fixture
def city_hospital():
    return CandidateEntity(
        id=3,
        kind="facility",
        label="City Hospital",
        fields={
            "name": "City Hospital",
            "address": "12 Green Road, Dhaka",
            "phone": "02 9123 4567",
            "email": "info@cityhospital.example",
            "category": "Hospital",
        },
    )
