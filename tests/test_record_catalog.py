"""Tests for record selection and stamping."""

import re
from datetime import datetime, timezone

from scanjobs.services.record_catalog import RecordCatalog, sanitize_key


def test_sanitize_key():
    assert sanitize_key(" Post ") == "post"
    assert sanitize_key("my_type-2") == "my_type-2"
    assert sanitize_key("<b>page</b>") == "bpageb"


def test_sanitize_types(catalog):
    assert catalog.sanitize_types(["page", "post", "page"]) == ["page", "post"]
    assert catalog.sanitize_types("post,unknown, BOOK") == ["post", "book"]
    assert catalog.sanitize_types(None) == []
    assert catalog.sanitize_types([]) == []


def test_default_types_intersect_supported(session_factory):
    catalog = RecordCatalog(session_factory, supported_types={"page": "Page"}, default_types=["post", "page"])

    assert catalog.get_default_types() == ["page"]


def test_empty_labels_are_unsupported(session_factory):
    catalog = RecordCatalog(session_factory, supported_types={"post": "Post", "hidden": ""})

    assert catalog.get_supported_types() == {"post": "Post"}


def test_find_ids_only_published_and_ascending(catalog, records):
    ids = catalog.find_ids(["post", "page"])

    assert ids == sorted(records["post"] + records["page"])
    assert records["draft"][0] not in ids
    assert records["other"][0] not in ids
    assert catalog.find_ids([]) == []


def test_stamp_writes_utc_timestamp(catalog, records):
    record_id = records["post"][0]
    when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    assert catalog.stamp(record_id, when) == "2026-01-02 03:04:05"
    assert catalog.get_last_scan(record_id) == "2026-01-02 03:04:05"

    # Second stamp overwrites
    catalog.stamp(record_id)
    assert re.match(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$", catalog.get_last_scan(record_id))


def test_stamp_missing_record(catalog):
    assert catalog.stamp(9999) is None
    assert catalog.get_last_scan(9999) is None
