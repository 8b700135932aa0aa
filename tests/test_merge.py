"""Tests for the administrative duplicate-company merge."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

from leadgraph.entity_resolution.merge import (
    find_duplicate_groups,
    keeper_score,
    merge_companies,
    run_duplicate_merge,
)


def _ts(day: int) -> datetime:
    return datetime(2025, 1, day, tzinfo=timezone.utc)


class TestKeeperScore:
    def test_weights(self):
        assert keeper_score({"orgnr": "1", "clean_domain": "a.no", "proff_url": "x", "industry": "y"}) == 116

    def test_empty(self):
        assert keeper_score({}) == 0


class TestFindDuplicateGroups:
    def test_groups_by_shared_identifier(self, store):
        store.insert("companies", company_key="acmeenergy", name="Acme Energy", clean_name="acmeenergy",
                     created_at=_ts(1))
        store.insert("companies", company_key="912345678", name="Acme Energy AS", clean_name="acmeenergy",
                     orgnr="912345678", created_at=_ts(2))
        store.insert("companies", company_key="other.no", name="Other", clean_name="other",
                     clean_domain="other.no", created_at=_ts(3))
        groups = find_duplicate_groups(store)
        assert len(groups) == 1
        # The orgnr-bearing row is the keeper despite being newer
        assert [r["company_key"] for r in groups[0]] == ["912345678", "acmeenergy"]

    def test_oldest_wins_on_equal_score(self, store):
        store.insert("companies", company_key="b", name="Acme", clean_name="acme", created_at=_ts(5))
        store.insert("companies", company_key="a", name="ACME", clean_name="acme", created_at=_ts(1))
        groups = find_duplicate_groups(store)
        assert groups[0][0]["company_key"] == "a"

    def test_placeholder_domain_ignored(self, store):
        store.insert("companies", company_key="x", name="X", clean_name="x", clean_domain="finn.no")
        store.insert("companies", company_key="y", name="Y", clean_name="y", clean_domain="finn.no")
        assert find_duplicate_groups(store) == []


class TestMergeCompanies:
    def test_repoints_links_and_posts(self, store):
        keep = store.insert("companies", company_key="912345678", name="Acme AS", orgnr="912345678")
        dup = store.insert("companies", company_key="acme", name="Acme", industry="Energi")
        store.insert("company_people", company_id=dup["id"], person_id="p1", role="decision_maker")
        store.insert("company_people", company_id=dup["id"], person_id="p2", role="contact_person")
        store.insert("company_people", company_id=keep["id"], person_id="p2", role="contact_person")
        store.insert("job_posts", finn_id="1", finn_url="u", company_id=dup["id"])

        result = merge_companies(store, keep, dup)

        assert result["job_posts_moved"] == 1
        assert result["links_moved"] == 2
        assert result["fields_updated"] == ["industry"]
        assert store.get("companies", id=dup["id"]) is None
        assert store.get("job_posts", finn_id="1")["company_id"] == keep["id"]
        links = {(r["company_id"], r["person_id"], r["role"]) for r in store.rows("company_people")}
        assert links == {
            (keep["id"], "p1", "decision_maker"),
            (keep["id"], "p2", "contact_person"),
        }

    def test_keeper_values_not_overwritten(self, store):
        keep = store.insert("companies", company_key="k", name="Keep", industry="Kraft")
        dup = store.insert("companies", company_key="d", name="Dup", industry="Energi")
        merge_companies(store, keep, dup)
        assert store.get("companies", id=keep["id"])["industry"] == "Kraft"


class TestRunDuplicateMerge:
    def _seed(self, store):
        store.insert("companies", company_key="acme", name="Acme", clean_name="acme", created_at=_ts(1))
        store.insert("companies", company_key="acme.no", name="Acme AS", clean_name="acme",
                     clean_domain="acme.no", created_at=_ts(2))

    def test_preview_changes_nothing(self, store):
        self._seed(store)
        stats = run_duplicate_merge(store)
        assert stats["groups"] == 1
        assert stats["merged"] == 0
        assert stats["preview"] == [{"keep_key": "acme.no", "duplicate_keys": ["acme"]}]
        assert len(store.rows("companies")) == 2

    def test_apply_merges_and_commits(self, store):
        self._seed(store)
        stats = run_duplicate_merge(store, apply=True)
        assert stats["merged"] == 1
        assert stats["failed"] == 0
        assert [r["company_key"] for r in store.rows("companies")] == ["acme.no"]
        assert store.commits == 1

    def test_failed_group_rolled_back(self, store):
        self._seed(store)
        store.commit()
        with patch(
            "leadgraph.entity_resolution.merge.merge_companies",
            side_effect=RuntimeError("boom"),
        ):
            stats = run_duplicate_merge(store, apply=True)
        assert stats["failed"] == 1
        assert stats["merged"] == 0
        assert store.rollbacks == 1
        assert len(store.rows("companies")) == 2
