# piecesync/tests/test_grouping_service.py
import pytest

from piecesync.errors import CorruptBatchError
from piecesync.schemas.piece import PieceRecord
from piecesync.services.grouping_service import GroupingService, record_key
from piecesync.services.xml_ingest_service import XmlIngestService


def _record(name="P1", quantity=1, ids=(), **kwargs):
    base = dict(piece_type="PILAR", section="30x30", length=600.0, weight=1000.0, unit_volume=0.5, material_class="C30")
    base.update(kwargs)
    return PieceRecord(name=name, quantity=quantity, piece_ids=tuple(ids), **base)


def test_identical_records_are_merged_with_ordered_id_union():
    groups = GroupingService().group([
        _record(ids=["A1", "A2"], quantity=2),
        _record(ids=["A2", "A3"], quantity=2),
    ])
    assert len(groups) == 1
    assert groups[0].piece_ids == ("A1", "A2", "A3")
    assert groups[0].quantity == 3


def test_any_attribute_difference_makes_a_new_group():
    groups = GroupingService().group([
        _record(ids=["A1"]),
        _record(ids=["A2"], weight=1000.5),
        _record(ids=["A3"], material_class="C40"),
    ])
    assert len(groups) == 3


def test_records_without_ids_sum_declared_quantity():
    groups = GroupingService().group([_record(quantity=5), _record(quantity=2)])
    assert groups[0].quantity == 7
    assert groups[0].piece_ids == ()


def test_identifier_in_two_groups_is_corrupt():
    with pytest.raises(CorruptBatchError) as exc:
        GroupingService().group([
            _record(name="P1", ids=["X1"]),
            _record(name="P2", ids=["X1"]),
        ])
    assert exc.value.piece_ids == ["X1"]


def test_grouping_conserves_volume(detailing_xml):
    pieces = [
        {"name": "P1", "quantity": "3", "unit_volume": "0,54", "ids": ["a", "b", "c"]},
        {"name": "P1", "quantity": "1", "unit_volume": "0,54", "ids": ["d"]},
        {"name": "P2", "quantity": "5", "unit_volume": "0,36"},
        {"name": "P2", "quantity": "4", "unit_volume": "0,36"},
        {"name": "P3", "quantity": "2", "unit_volume": "1,25", "ids": ["e", "f"]},
    ]
    batch = XmlIngestService().parse_batch([("v.xml", detailing_xml(pieces))])
    groups = GroupingService().group(batch.records)

    before = sum(r.unit_volume * r.quantity for r in batch.records)
    after = sum(g.unit_volume * g.quantity for g in groups)
    assert after == pytest.approx(before)
    assert [g.name for g in groups] == ["P1", "P2", "P3"]


def test_select_by_group_name():
    groups = GroupingService().group([_record(name="P1"), _record(name="P2"), _record(name="P3")])
    assert [g.name for g in GroupingService.select(groups, ["P3", "P1"])] == ["P1", "P3"]


def test_group_carries_every_key_attribute():
    record = _record(ids=["A1"])
    group = GroupingService().group([record])[0]
    assert (
        group.name, group.piece_type, group.section, group.length,
        group.weight, group.unit_volume, group.material_class,
    ) == record_key(record)
