"""
Tests for the short link pass: scanning, primary correction and link sync.
"""
from datetime import datetime, timedelta
from unittest import mock

import pytest

from reconciler_app.errors import ConfigurationError
from reconciler_app.schemas.documents import LinkDocument, PrimaryResourceRecord
from reconciler_app.services.change_scanner import ChangeScanner
from reconciler_app.services.diff_syncer import DiffSyncer
from reconciler_app.services.link_deriver import LinkDeriver
from reconciler_app.services.primary_corrector import PrimaryCorrector


@pytest.fixture
def deriver(config):
    return LinkDeriver.from_config(config)


def make_record(resource_id=42, **fields):
    values = {
        "id": resource_id,
        "title": "Clinical guidelines",
        "resource_url": "https://example.org/guidelines.pdf",
        "short_url": f"https://s.example.com/r{resource_id}",
        "active": True,
        "primary": True,
        "updated_at": datetime(2024, 3, 1, 11, 0, 0),
    }
    values.update(fields)
    return PrimaryResourceRecord(**values)


class TestChangeScanner:
    """Test candidate selection from the primary store"""

    def test_selects_recent_active_primary_absolute(self, gateway, clock, add_resource):
        add_resource(1)
        add_resource(2, active=False)
        add_resource(3, primary=False)
        add_resource(4, resource_url="/files/relative.pdf")
        add_resource(5, updated_at=clock.now - timedelta(days=3))
        add_resource(6, resource_url="http://example.org/plain-http")

        records = ChangeScanner(gateway).scan_candidates(1)

        assert [record.id for record in records] == [1, 6]

    def test_lookback_widens_window(self, gateway, clock, add_resource):
        add_resource(1, updated_at=clock.now - timedelta(days=3))

        scanner = ChangeScanner(gateway)

        assert scanner.scan_candidates(1) == []
        assert [record.id for record in scanner.scan_candidates(5)] == [1]

    def test_null_short_url_is_none(self, gateway, clock, add_resource):
        add_resource(1, short_url=None, name="Title")

        record = ChangeScanner(gateway).scan_candidates(1)[0]

        assert record.short_url is None
        assert record.title == "Title"
        assert record.resource_url == "https://example.org/resources/1"

    @pytest.mark.parametrize("lookback", [0, -1, True, "1"])
    def test_rejects_invalid_lookback(self, gateway, lookback):
        with pytest.raises(ConfigurationError):
            ChangeScanner(gateway).scan_candidates(lookback)


class TestPrimaryCorrector:
    """Test short_url correction in the primary store"""

    def test_empty_short_url_is_corrected_and_bumped(
        self, gateway, clock, deriver, add_resource, load_resource
    ):
        add_resource(42, short_url="")
        before = load_resource(42).updated_at
        record = ChangeScanner(gateway).scan_candidates(1)[0]

        clock.advance(minutes=5)
        correction = PrimaryCorrector(gateway, deriver).correct(record)

        row = load_resource(42)
        assert correction.corrected is True
        assert row.short_url == "https://s.example.com/r42"
        assert row.updated_at > before
        assert row.updated_at == clock.now
        assert correction.record.short_url == row.short_url
        assert correction.record.updated_at == row.updated_at

    def test_wrong_short_url_is_corrected(self, gateway, clock, deriver, add_resource, load_resource):
        add_resource(7, short_url="https://old.example.com/x7")
        record = ChangeScanner(gateway).scan_candidates(1)[0]

        PrimaryCorrector(gateway, deriver).correct(record)

        assert load_resource(7).short_url == "https://s.example.com/r7"

    def test_correct_short_url_is_left_alone(self, gateway, clock, deriver, add_resource, load_resource):
        add_resource(42, short_url="https://s.example.com/r42")
        before = load_resource(42).updated_at
        record = ChangeScanner(gateway).scan_candidates(1)[0]

        clock.advance(minutes=5)
        with mock.patch.object(gateway.primary, "set_short_url") as set_short_url:
            correction = PrimaryCorrector(gateway, deriver).correct(record)

        assert correction.corrected is False
        assert correction.record is record
        set_short_url.assert_not_called()
        assert load_resource(42).updated_at == before

    def test_corrected_record_is_picked_up_by_next_scan(
        self, gateway, clock, deriver, add_resource
    ):
        """The bumped updated_at keeps an old record inside the next window"""
        add_resource(42, short_url=None, updated_at=clock.now - timedelta(hours=23))
        record = ChangeScanner(gateway).scan_candidates(1)[0]
        PrimaryCorrector(gateway, deriver).correct(record)

        clock.advance(hours=12)
        records = ChangeScanner(gateway).scan_candidates(1)

        assert [r.id for r in records] == [42]

    def test_vanished_row_is_not_counted(self, gateway, deriver, add_resource):
        add_resource(42, short_url=None)
        record = ChangeScanner(gateway).scan_candidates(1)[0]

        with mock.patch.object(gateway.primary, "set_short_url", return_value=None):
            correction = PrimaryCorrector(gateway, deriver).correct(record)

        assert correction.corrected is False
        assert correction.record.short_url == "https://s.example.com/r42"
        assert correction.record.updated_at == record.updated_at


class TestDiffSyncer:
    """Test per-record link document sync"""

    def test_creates_missing_document(self, gateway, derived_store, clock, deriver):
        record = make_record()

        written = DiffSyncer(gateway, deriver, clock=clock).sync(record)

        document = derived_store.get_link("r42")
        assert written is True
        assert document is not None
        assert document.created_at == document.updated_at == clock.now
        assert document.title == record.title
        assert document.long_url == record.resource_url
        assert document.active is True

    def test_second_run_issues_no_upsert(self, gateway, derived_store, clock, deriver):
        record = make_record()
        syncer = DiffSyncer(gateway, deriver, clock=clock)
        syncer.sync(record)
        stored = derived_store.get_link("r42")

        clock.advance(hours=1)
        with mock.patch.object(derived_store, "upsert_link", wraps=derived_store.upsert_link) as upsert:
            written = syncer.sync(record)

        assert written is False
        assert upsert.call_count == 0
        assert derived_store.get_link("r42") == stored

    def test_full_match_is_a_no_op(self, gateway, derived_store, clock, deriver):
        record = make_record()
        derived_store.put_link(LinkDocument(
            short_path="r42",
            long_url=record.resource_url,
            title=record.title,
            active=True,
            created_at=datetime(2023, 1, 1),
            updated_at=datetime(2023, 6, 1),
        ))

        with mock.patch.object(derived_store, "upsert_link") as upsert:
            written = DiffSyncer(gateway, deriver, clock=clock).sync(record)

        assert written is False
        upsert.assert_not_called()

    def test_title_change_keeps_created_at(self, gateway, derived_store, clock, deriver):
        created = datetime(2023, 1, 1)
        derived_store.put_link(LinkDocument(
            short_path="r42",
            long_url="https://example.org/guidelines.pdf",
            title="Old title",
            active=True,
            created_at=created,
            updated_at=created,
        ))

        DiffSyncer(gateway, deriver, clock=clock).sync(make_record(title="New title"))

        document = derived_store.get_link("r42")
        assert document.title == "New title"
        assert document.created_at == created
        assert document.updated_at == clock.now

    def test_long_url_change_is_synced(self, gateway, derived_store, clock, deriver):
        derived_store.put_link(LinkDocument(
            short_path="r42",
            long_url="https://example.org/old.pdf",
            title="Clinical guidelines",
            active=True,
            created_at=datetime(2023, 1, 1),
            updated_at=datetime(2023, 1, 1),
        ))

        written = DiffSyncer(gateway, deriver, clock=clock).sync(make_record())

        assert written is True
        assert derived_store.get_link("r42").long_url == "https://example.org/guidelines.pdf"

    def test_missing_updated_at_is_filled(self, gateway, derived_store, clock, deriver):
        created = datetime(2023, 1, 1)
        derived_store.put_link(LinkDocument(
            short_path="r42",
            long_url="https://example.org/guidelines.pdf",
            title="Clinical guidelines",
            active=True,
            created_at=created,
        ))

        DiffSyncer(gateway, deriver, clock=clock).sync(make_record())

        document = derived_store.get_link("r42")
        assert document.created_at == created
        assert document.updated_at == clock.now

    def test_upsert_leaves_other_fields_alone(self, gateway, derived_store, clock, deriver):
        derived_store.links["r42"] = {"shortUrl": "r42", "title": "Old", "hits": 17}

        DiffSyncer(gateway, deriver, clock=clock).sync(make_record())

        assert derived_store.links["r42"]["hits"] == 17
        assert derived_store.links["r42"]["title"] == "Clinical guidelines"
