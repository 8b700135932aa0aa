"""Tests for link reconciliation."""

from __future__ import annotations

from leadgraph.entity_resolution.links import (
    COMPANY_PEOPLE,
    JOB_POST_PEOPLE,
    dedupe_links,
    decision_maker_links,
    link_contacts,
    upsert_company_people,
)


class TestDedupeLinks:
    def test_first_occurrence_wins(self):
        rows = [
            {"company_id": "c", "person_id": "p", "role": "contact_person", "n": 1},
            {"company_id": "c", "person_id": "p", "role": "contact_person", "n": 2},
            {"company_id": "c", "person_id": "p", "role": "decision_maker", "n": 3},
        ]
        out = dedupe_links(rows, "company_id")
        assert [r["n"] for r in out] == [1, 3]


class TestUpsertLinks:
    def test_counts_new_and_existing(self, store):
        store.insert(COMPANY_PEOPLE, company_id="c", person_id="p1", role="contact_person")
        counts = upsert_company_people(
            store,
            [
                {"company_id": "c", "person_id": "p1", "role": "contact_person"},
                {"company_id": "c", "person_id": "p2", "role": "contact_person"},
                {"company_id": "c", "person_id": "p2", "role": "contact_person"},
            ],
        )
        assert counts.as_dict() == {"inserted": 1, "existing": 1}
        assert len(store.rows(COMPANY_PEOPLE)) == 2

    def test_same_person_new_role_is_new(self, store):
        store.insert(COMPANY_PEOPLE, company_id="c", person_id="p1", role="contact_person")
        counts = upsert_company_people(store, [{"company_id": "c", "person_id": "p1", "role": "decision_maker"}])
        assert counts.inserted == 1

    def test_empty_batch(self, store):
        assert upsert_company_people(store, []).as_dict() == {"inserted": 0, "existing": 0}


class TestDecisionMakerPropagation:
    def test_company_decision_makers_carried_to_post(self, store):
        store.insert(COMPANY_PEOPLE, company_id="c", person_id="boss", role="decision_maker")
        store.insert(COMPANY_PEOPLE, company_id="c", person_id="clerk", role="contact_person")
        links = decision_maker_links(store, job_post_id="j", company_id="c", batch=[])
        assert links == [{"job_post_id": "j", "person_id": "boss", "role": "decision_maker"}]

    def test_batch_members_excluded(self, store):
        store.insert(COMPANY_PEOPLE, company_id="c", person_id="boss", role="decision_maker")
        batch = [{"job_post_id": "j", "person_id": "boss", "role": "decision_maker"}]
        assert decision_maker_links(store, job_post_id="j", company_id="c", batch=batch) == []


class TestLinkContacts:
    def test_links_company_and_post(self, store):
        result = link_contacts(
            store, company_id="c", job_post_id="j", contacts=[("p1", "contact_person")]
        )
        assert result["company_people"] == {"inserted": 1, "existing": 0}
        assert result["job_post_people"] == {"inserted": 1, "existing": 0}
        assert result["decision_makers_linked"] == 0

    def test_earlier_decision_makers_accumulate(self, store):
        store.insert(COMPANY_PEOPLE, company_id="c", person_id="boss", role="decision_maker")
        result = link_contacts(
            store, company_id="c", job_post_id="j2", contacts=[("p1", "recruiter")]
        )
        assert result["decision_makers_linked"] == 1
        post_people = {(r["person_id"], r["role"]) for r in store.rows(JOB_POST_PEOPLE)}
        assert post_people == {("p1", "recruiter"), ("boss", "decision_maker")}

    def test_decision_maker_on_this_posting_not_duplicated(self, store):
        result = link_contacts(
            store, company_id="c", job_post_id="j", contacts=[("boss", "decision_maker")]
        )
        assert result["decision_makers_linked"] == 0
        assert len(store.rows(JOB_POST_PEOPLE)) == 1

    def test_rerun_reports_existing(self, store):
        contacts = [("p1", "contact_person")]
        link_contacts(store, company_id="c", job_post_id="j", contacts=contacts)
        again = link_contacts(store, company_id="c", job_post_id="j", contacts=contacts)
        assert again["company_people"] == {"inserted": 0, "existing": 1}
        assert again["job_post_people"] == {"inserted": 0, "existing": 1}

    def test_without_job_post(self, store):
        result = link_contacts(store, company_id="c", job_post_id=None, contacts=[("p1", "other")])
        assert result["job_post_people"] == {"inserted": 0, "existing": 0}
        assert store.rows(JOB_POST_PEOPLE) == []
