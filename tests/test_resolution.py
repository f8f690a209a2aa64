"""
Tests for entity resolution: last-query-wins ordering, binding and
unbinding, and lookup failure handling.
"""

import asyncio

import pytest

from clinicdesk.engine.resolution import EntityResolutionController, FacilityBinder, SubjectBinder
from clinicdesk.exceptions import EntityIndexError, LockedFieldError
from clinicdesk.models.core import Block
from clinicdesk.models.resolution import CandidateEntity, NoticeKind, ResolutionMode
from clinicdesk.workflows.infertility import INFERTILITY


def subject_controller(graph, index, **kwargs):
    return EntityResolutionController(
        graph, index, SubjectBinder(INFERTILITY.template), min_query_length=2, limit=10, **kwargs
    )


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestLastQueryWins:
    @pytest.mark.asyncio
    async def test_out_of_order_responses(self, infertility_graph, scripted_index, jane, janet):
        controller = subject_controller(infertility_graph, scripted_index)

        controller.on_query_changed("Jane")
        controller.on_query_changed("Jane D")
        await settle()

        scripted_index.respond("Jane D", [jane])
        await settle()
        scripted_index.respond("Jane", [jane, janet])
        await controller.wait_idle()

        assert scripted_index.calls == ["Jane", "Jane D"]
        assert controller.state.query == "Jane D"
        assert [c.id for c in controller.state.candidates] == [jane.id]

    @pytest.mark.asyncio
    async def test_in_order_responses(self, infertility_graph, scripted_index, jane, janet):
        controller = subject_controller(infertility_graph, scripted_index)

        controller.on_query_changed("Jane")
        controller.on_query_changed("Jane D")
        scripted_index.respond("Jane", [jane, janet])
        await settle()
        scripted_index.respond("Jane D", [jane])
        await controller.wait_idle()

        assert [c.id for c in controller.state.candidates] == [jane.id]

    @pytest.mark.asyncio
    async def test_short_query_never_reaches_index(self, infertility_graph, scripted_index):
        controller = subject_controller(infertility_graph, scripted_index)

        controller.on_query_changed("J")
        await controller.wait_idle()

        assert scripted_index.calls == []
        assert controller.state.candidates == []
        assert controller.state.mode is ResolutionMode.DRAFT
        assert infertility_graph.snapshot().subject.given_name == "J"

    @pytest.mark.asyncio
    async def test_selection_discards_in_flight_lookup(self, infertility_graph, scripted_index, jane, janet):
        controller = subject_controller(infertility_graph, scripted_index)

        controller.on_query_changed("Jan")
        controller.on_candidate_selected(jane)
        scripted_index.respond("Jan", [jane, janet])
        await controller.wait_idle()

        assert controller.state.mode is ResolutionMode.BOUND
        assert controller.state.candidates == []
        assert controller.state.selected == jane


class TestBinding:
    @pytest.mark.asyncio
    async def test_select_populates_and_locks(self, infertility_graph, scripted_index, jane):
        controller = subject_controller(infertility_graph, scripted_index)

        controller.on_candidate_selected(jane)
        snapshot = infertility_graph.snapshot()

        assert snapshot.subject.bound_entity_id == 7
        assert snapshot.subject.full_name == "Jane Doe"
        assert snapshot.subject.phone == "01712345678"
        assert snapshot.subject.age == 30
        assert snapshot.companion.name == "John Doe"
        assert snapshot.companion.age == 35
        assert snapshot.companion.phone == "01812345678"
        assert snapshot.subject.guardian_name == "John Doe"
        assert infertility_graph.is_locked(Block.SUBJECT, "phone")

        with pytest.raises(LockedFieldError):
            infertility_graph.patch(Block.SUBJECT, {"blood_group": "A+"})

    @pytest.mark.asyncio
    async def test_typing_after_select_unbinds(self, infertility_graph, scripted_index, jane):
        controller = subject_controller(infertility_graph, scripted_index)
        controller.on_candidate_selected(jane)

        controller.on_query_changed("Mary Ann Smith")
        snapshot = infertility_graph.snapshot()

        assert controller.state.mode is ResolutionMode.DRAFT
        assert controller.state.selected is None
        assert snapshot.subject.bound_entity_id is None
        assert snapshot.subject.given_name == "Mary"
        assert snapshot.subject.family_name == "Ann Smith"
        assert snapshot.subject.phone == ""
        assert snapshot.subject.age is None
        assert snapshot.subject.gender == "Female"
        assert snapshot.companion.name == ""
        assert snapshot.companion.gender == "Male"
        assert not infertility_graph.is_locked(Block.SUBJECT, "phone")

        infertility_graph.patch(Block.SUBJECT, {"phone": "01999999999"})
        scripted_index.respond("Mary Ann Smith", [])
        await controller.wait_idle()

    @pytest.mark.asyncio
    async def test_candidate_age_is_a_fallback_without_birth_date(self, infertility_graph, scripted_index, janet):
        controller = subject_controller(infertility_graph, scripted_index)
        controller.on_candidate_selected(janet)
        assert infertility_graph.snapshot().subject.age == 41

    @pytest.mark.asyncio
    async def test_clear_resets_subject_and_companion(self, infertility_graph, scripted_index, jane):
        controller = subject_controller(infertility_graph, scripted_index)
        controller.on_candidate_selected(jane)

        controller.on_clear()
        snapshot = infertility_graph.snapshot()

        assert controller.state.mode is ResolutionMode.DRAFT
        assert controller.state.query == ""
        assert snapshot.subject.bound_entity_id is None
        assert snapshot.subject.full_name == ""
        assert snapshot.companion.name == ""

    @pytest.mark.asyncio
    async def test_facility_typing_keeps_details_and_create_new_blanks_them(
        self, infertility_graph, scripted_index, city_hospital
    ):
        controller = EntityResolutionController(
            infertility_graph, scripted_index, FacilityBinder(), min_query_length=2, limit=10
        )
        controller.on_candidate_selected(city_hospital)
        assert infertility_graph.snapshot().facility.bound_entity_id == 3
        assert infertility_graph.is_locked(Block.FACILITY, "address")

        controller.on_query_changed("City Hosp")
        facility = infertility_graph.snapshot().facility
        assert facility.bound_entity_id is None
        assert facility.name == "City Hosp"
        assert facility.address == "12 Green Road, Dhaka"

        controller.on_create_new()
        facility = infertility_graph.snapshot().facility
        assert facility.name == "City Hosp"
        assert facility.address == ""
        assert controller.state.mode is ResolutionMode.DRAFT

        scripted_index.respond("City Hosp", [city_hospital])
        await controller.wait_idle()
        assert controller.state.candidates == []

    @pytest.mark.asyncio
    async def test_candidates_of_other_kinds_are_ignored(self, infertility_graph, scripted_index, jane, city_hospital):
        controller = subject_controller(infertility_graph, scripted_index)
        controller.on_query_changed("Ci")
        scripted_index.respond("Ci", [city_hospital, jane])
        await controller.wait_idle()
        assert [c.kind for c in controller.state.candidates] == ["subject"]


class TestLookupFailure:
    @pytest.mark.asyncio
    async def test_failure_becomes_empty_draft_and_notice(self, infertility_graph, scripted_index, jane):
        notices = []
        controller = subject_controller(infertility_graph, scripted_index, on_notice=notices.append)

        controller.on_query_changed("Ja")
        scripted_index.respond("Ja", [jane])
        await controller.wait_idle()
        assert len(controller.state.candidates) == 1

        controller.on_query_changed("Jane")
        scripted_index.respond("Jane", error=EntityIndexError("index unreachable"))
        await controller.wait_idle()

        assert controller.state.candidates == []
        assert controller.state.mode is ResolutionMode.DRAFT
        assert controller.last_notice.kind is NoticeKind.LOOKUP_FAILED
        assert notices == [controller.last_notice]

    @pytest.mark.asyncio
    async def test_stale_failure_is_silent(self, infertility_graph, scripted_index, jane):
        controller = subject_controller(infertility_graph, scripted_index)

        controller.on_query_changed("Jane")
        controller.on_query_changed("Jane D")
        scripted_index.respond("Jane", error=RuntimeError("connection reset"))
        scripted_index.respond("Jane D", [jane])
        await controller.wait_idle()

        assert controller.last_notice is None
        assert [c.id for c in controller.state.candidates] == [jane.id]

    @pytest.mark.asyncio
    async def test_cancel_pending(self, infertility_graph, scripted_index):
        controller = subject_controller(infertility_graph, scripted_index)
        controller.on_query_changed("Jane")
        await settle()
        assert controller.pending == 1

        controller.cancel_pending()
        await controller.wait_idle()
        assert controller.pending == 0
        assert controller.state.candidates == []


def test_split_name():
    assert SubjectBinder.split_name("  Mary Ann Smith ") == ("Mary", "Ann Smith")
    assert SubjectBinder.split_name("Mary") == ("Mary", "")


def test_candidate_model_defaults():
    candidate = CandidateEntity(id="abc", kind="subject")
    assert candidate.label == ""
    assert candidate.fields == {}
