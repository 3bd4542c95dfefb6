import pytest
from fakes import make_device, make_order

from stockaudit.schemas.audit import AuditFilters
from stockaudit.services.filters import (
    FILTER_FIELDS,
    audit_counts,
    audit_working_set,
    facet_values,
    filter_devices,
)


def test_all_selection_means_no_filter():
    devices = [make_device(warehouse="Trichy"), make_device(warehouse="Indore")]

    filters = AuditFilters(warehouse="All", model=["All"])

    assert filter_devices(devices, filters) == devices


def test_filters_combine_across_fields():
    keep = make_device(warehouse="Trichy", asset_type="TV", product="Lead")
    devices = [
        keep,
        make_device(warehouse="Trichy", asset_type="Tablet", product="Lead"),
        make_device(warehouse="Indore", asset_type="TV", product="Lead"),
    ]

    filters = AuditFilters(warehouse={"Trichy"}, asset_type={"TV"})

    assert filter_devices(devices, filters) == [keep]


def test_search_is_case_insensitive_substring():
    hit = make_device(serial_number="XYZ-001", school_name="Green Valley")
    devices = [hit, make_device(serial_number="ABC")]

    assert filter_devices(devices, AuditFilters(search="valley")) == [hit]
    assert filter_devices(devices, AuditFilters(search="xyz")) == [hit]


def test_date_range_needs_both_bounds():
    old = make_device(updated_at="2024-01-05T10:00:00Z")
    new = make_device(updated_at="2024-03-05T10:00:00Z")

    assert filter_devices([old, new], AuditFilters(updated_from="2024-01-01T00:00:00Z")) == [old, new]
    window = AuditFilters(updated_from="2024-01-01T00:00:00Z", updated_to="2024-02-01T00:00:00Z")
    assert filter_devices([old, new], window) == [old]


def test_working_set_dedupes_and_drops_out_of_scope_units():
    outward = make_order(material_type="Outward")
    shipped = make_device(serial_number="S1", order_id=outward.id, created_at="2024-02-01T00:00:00Z")
    stale = make_device(serial_number="S1", created_at="2024-01-01T00:00:00Z")
    on_shelf = make_device(serial_number="S2")
    cover = make_device(serial_number="S3", asset_type="Cover")

    working = audit_working_set([stale, shipped, on_shelf, cover], [outward])

    assert working == [on_shelf]


def test_facets_are_sorted_distinct_values():
    devices = [make_device(warehouse="Trichy"), make_device(warehouse="Indore"), make_device(warehouse="Trichy")]

    facets = facet_values(devices)

    assert set(facets) == set(FILTER_FIELDS)
    assert facets["warehouse"] == ["Indore", "Trichy"]


def test_counts_treat_missing_and_found_elsewhere_as_unmatched():
    devices = [
        make_device(asset_check="Matched"),
        make_device(asset_check=None),
        make_device(asset_check="Found in Indore"),
    ]

    counts = audit_counts(devices)

    assert (counts.matched, counts.unmatched) == (1, 2)


@pytest.mark.parametrize("name", sorted(FILTER_FIELDS))
def test_each_filter_reads_its_own_selection(name):
    hit = make_device(**{name: "wanted"})
    miss = make_device(**{name: "other"})

    assert filter_devices([hit, miss], AuditFilters(**{name: ["wanted"]})) == [hit]
    assert FILTER_FIELDS[name].value(hit) == "wanted"
