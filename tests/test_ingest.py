"""End-to-end tests for single posting ingestion."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from leadgraph.errors import KeyDerivationError, PayloadValidationError
from leadgraph.pipelines.ingest import ingest_job_posting


class TestIngestJobPosting:
    def test_canonical_scenario(self, store, settings, job_payload):
        counts = ingest_job_posting(store, job_payload, "systek", settings=settings)

        assert counts["finn_id"] == "445216243"
        assert counts["companies"]["inserted"] == 1
        assert counts["companies"]["matched_existing"] is False
        assert counts["companies"]["company_key"] == "acme-energy.no"
        assert counts["job_posts"]["inserted"] == 1
        assert counts["people"] == {"inserted": 1, "updated": 0, "skipped": 0}
        assert counts["company_people"] == {"inserted": 1, "existing": 0}
        assert counts["job_post_people"] == {"inserted": 1, "existing": 0}

        company = store.rows("companies")[0]
        assert company["company_key"] == "acme-energy.no"
        assert company["clean_name"] == "acmeenergy"
        assert store.rows("job_posts")[0]["finn_id"] == "445216243"
        assert store.rows("people")[0]["person_key"] == "99988877"
        assert store.rows("company_people")[0]["role"] == "contact_person"
        assert store.rows("job_post_people")[0]["role"] == "contact_person"
        assert store.commits == 1

    def test_rerun_matches_existing(self, store, settings, job_payload):
        ingest_job_posting(store, job_payload, "systek", settings=settings)
        counts = ingest_job_posting(store, job_payload, "systek", settings=settings)

        assert counts["companies"]["matched_existing"] is True
        assert counts["companies"]["inserted"] == 0
        assert counts["job_posts"]["inserted"] == 0
        assert counts["people"]["inserted"] == 0
        assert counts["company_people"] == {"inserted": 0, "existing": 1}
        assert counts["job_post_people"] == {"inserted": 0, "existing": 1}
        assert len(store.rows("companies")) == 1
        assert len(store.rows("job_posts")) == 1
        assert len(store.rows("people")) == 1

    def test_second_source_merged(self, store, settings, job_payload):
        ingest_job_posting(store, job_payload, "systek", settings=settings)
        counts = ingest_job_posting(store, job_payload, "ilder", settings=settings)
        ingest_job_posting(store, job_payload, "systek", settings=settings)
        assert counts["job_posts"]["source"] == "ilder,systek"
        assert len(store.rows("job_posts")) == 1
        assert store.rows("job_posts")[0]["source"] == "ilder,systek"

    def test_source_order_irrelevant(self, store, settings, job_payload):
        ingest_job_posting(store, job_payload, "ilder", settings=settings)
        ingest_job_posting(store, job_payload, "systek", settings=settings)
        assert store.rows("job_posts")[0]["source"] == "ilder,systek"

    def test_job_row_fields(self, store, settings, job_payload):
        job_payload.update(
            publicationDate="15.04.2025",
            expirationDate="Snarest",
            industries=["Energi", "Kraft"],
            email="jobb@acme-energy.no",
        )
        ingest_job_posting(store, job_payload, "systek", settings=settings)
        job = store.rows("job_posts")[0]
        assert job["publication_date"] == "2025-04-15T00:00:00+00:00"
        assert job["expiration_date"] is None
        assert job["industries"] == ["Energi", "Kraft"]
        assert job["contact_email"] == "jobb@acme-energy.no"
        assert job["company_domain_host"] == "acme-energy.no"
        assert job["raw_payload"]["company"] == "ACME Energy"
        assert store.rows("companies")[0]["industry"] == "Energi"

    def test_single_token_contact_skipped(self, store, settings, job_payload):
        job_payload["contactPersons"].append({"name": "Wiggen", "email": "w@acme-energy.no"})
        counts = ingest_job_posting(store, job_payload, "systek", settings=settings)
        assert counts["people"]["skipped"] == 1
        assert len(store.rows("people")) == 1

    def test_decision_maker_title(self, store, settings, job_payload):
        job_payload["contactPersons"] = [
            {"name": "Ola Wiggen", "role": "Daglig leder", "email": "ola@acme-energy.no"}
        ]
        ingest_job_posting(store, job_payload, "systek", settings=settings)
        assert store.rows("company_people")[0]["role"] == "decision_maker"

    def test_decision_makers_propagate_to_later_posts(self, store, settings, job_payload):
        job_payload["contactPersons"] = [
            {"name": "Ola Wiggen", "role": "CEO", "email": "ola@acme-energy.no"}
        ]
        ingest_job_posting(store, job_payload, "systek", settings=settings)

        second = dict(job_payload, url="https://www.finn.no/job/ad/999", contactPersons=[])
        counts = ingest_job_posting(store, second, "systek", settings=settings)
        assert counts["decision_makers_linked"] == 1
        assert len(store.rows("job_post_people")) == 2

    def test_name_only_contact_keyed_by_domain(self, store, settings, job_payload):
        job_payload["contactPersons"] = [{"name": "Kari Nordmann"}]
        ingest_job_posting(store, job_payload, "systek", settings=settings)
        assert store.rows("people")[0]["person_key"] == "acme-energy.no_kari nordmann"

    def test_placeholder_domain_falls_back_to_name(self, store, settings, job_payload):
        job_payload["domain"] = "https://www.finn.no"
        job_payload["contactPersons"] = [{"name": "Kari Nordmann"}]
        counts = ingest_job_posting(store, job_payload, "systek", settings=settings)
        assert counts["companies"]["company_key"] == "acmeenergy"
        assert store.rows("people")[0]["person_key"] == "acme energy_kari nordmann"

    def test_finnkode_used_when_url_has_no_id(self, store, settings, job_payload):
        job_payload["url"] = "https://www.finn.no/job/fulltime"
        job_payload["finnkode"] = "777"
        assert ingest_job_posting(store, job_payload, "systek", settings=settings)["finn_id"] == "777"

    def test_missing_posting_id_rejected(self, store, settings, job_payload):
        job_payload["url"] = "https://www.finn.no/job/fulltime"
        with pytest.raises(PayloadValidationError) as exc:
            ingest_job_posting(store, job_payload, "systek", settings=settings)
        assert exc.value.issues[0]["loc"] == "url"
        assert store.rows("companies") == []

    def test_invalid_payload_rejected_with_issues(self, store, settings):
        with pytest.raises(PayloadValidationError) as exc:
            ingest_job_posting(store, {"url": "not a url", "title": "x"}, "systek", settings=settings)
        locs = {issue["loc"] for issue in exc.value.issues}
        assert {"url", "description", "company"} <= locs
        assert store.rows("job_posts") == []

    def test_company_without_key_rejected(self, store, settings, job_payload):
        job_payload["company"] = "!!!"
        job_payload["domain"] = "finn.no"
        with pytest.raises(KeyDerivationError):
            ingest_job_posting(store, job_payload, "systek", settings=settings)

    def test_settings_required(self, store, job_payload):
        with pytest.raises(TypeError):
            ingest_job_posting(store, job_payload, "systek")
        assert store.rows("job_posts") == []


class TestEnrichmentScheduling:
    def test_push_scheduled_after_commit(self, store, settings, job_payload):
        webhook = MagicMock()
        order = []
        store_commit = store.commit
        store.commit = lambda: (order.append("commit"), store_commit())
        with patch(
            "leadgraph.pipelines.ingest.schedule_enrichment_push",
            side_effect=lambda *a, **k: order.append("push"),
        ) as mock_push:
            ingest_job_posting(store, job_payload, "systek", settings=settings, webhook=webhook)
        assert order == ["commit", "push"]
        assert mock_push.call_args.args[2] == store.rows("job_posts")[0]["id"]

    def test_push_failure_does_not_fail_ingest(self, store, settings, job_payload):
        webhook = MagicMock()
        webhook.enabled = True
        webhook.dispatch.side_effect = RuntimeError("queue closed")
        counts = ingest_job_posting(store, job_payload, "systek", settings=settings, webhook=webhook)
        assert counts["job_posts"]["inserted"] == 1
