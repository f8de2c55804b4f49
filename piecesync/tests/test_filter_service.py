# piecesync/tests/test_filter_service.py
import pytest

from piecesync.schemas.filters import FilterState
from piecesync.schemas.piece import PieceRecord
from piecesync.services import filter_service as fs


@pytest.fixture
def pieces():
    def p(name, piece_type, section, material_class, **kwargs):
        return PieceRecord(name=name, piece_type=piece_type, section=section, material_class=material_class, **kwargs)

    return [
        p("P1", "PILAR", "30x30", "C30", quantity=3, weight=1200.0),
        p("P2", "PILAR", "40x40", "C40", quantity=1, weight=1500.0),
        p("V1", "VIGA", "20x40", "C30", quantity=5, weight=800.0),
        p("V10", "VIGA", "20x100", "C30", quantity=2, weight=950.0),
        p("L1", "LAJE", "8", "C25", quantity=10, weight=300.0),
    ]


@pytest.fixture
def session(pieces):
    return fs.new_session(pieces, display_label="ob1.xml")


def test_unfiltered_options_are_sorted(session):
    options = fs.session_options(session)
    assert options.types == ("LAJE", "PILAR", "VIGA")
    assert options.sections == ("8", "20x40", "20x100", "30x30", "40x40")
    assert options.material_classes == ("C25", "C30", "C40")


def test_each_dimension_ignores_its_own_selection(session):
    staged = fs.stage(session, types=["VIGA"])
    options = fs.session_options(staged)

    # 类型选项不受类型选择影响
    assert options.types == ("LAJE", "PILAR", "VIGA")
    assert options.sections == ("20x40", "20x100")
    assert options.material_classes == ("C30",)


def test_narrowing_section_never_grows_type_options(session):
    full = fs.session_options(session).types
    narrowed = fs.session_options(fs.stage(session, sections=["30x30"])).types
    assert set(narrowed) <= set(full)
    assert narrowed == ("PILAR",)


def test_clear_restores_full_option_lists(session):
    full = fs.session_options(session)
    narrowed = fs.stage(session, types=["PILAR"], material_classes=["C40"])
    assert fs.session_options(fs.clear(narrowed)) == full


def test_staging_does_not_change_visible_pieces_until_apply(session):
    staged = fs.stage(session, name="v")
    assert len(fs.visible_pieces(staged)) == 5

    applied = fs.apply(staged)
    assert [p.name for p in fs.visible_pieces(applied)] == ["V1", "V10"]
    assert applied.applied == applied.staged


def test_filters_combine_with_and(session):
    applied = fs.apply(fs.stage(session, types=["PILAR", "VIGA"], material_classes=["C30"]))
    assert [p.name for p in fs.visible_pieces(applied)] == ["P1", "V1", "V10"]


def test_clear_resets_both_states(session):
    applied = fs.apply(fs.stage(session, types=["VIGA"]))
    cleared = fs.clear(applied)
    assert cleared.applied == FilterState()
    assert cleared.staged == FilterState()
    assert len(fs.visible_pieces(cleared)) == 5


def test_transitions_do_not_mutate_input(session):
    fs.apply(fs.stage(session, types=["VIGA"]))
    assert session.applied.is_empty
    assert session.staged.is_empty


def test_toggle_released(session):
    marked = fs.toggle_released(session, "P1-1")
    assert marked.released_ids == ("P1-1",)
    assert fs.toggle_released(marked, "P1-1").released_ids == ()
    assert session.released_ids == ()


def test_sort_pieces(pieces):
    assert [p.name for p in fs.sort_pieces(pieces, "name")] == ["L1", "P1", "P2", "V1", "V10"]
    assert [p.name for p in fs.sort_pieces(pieces, "weight", descending=True)][:2] == ["P2", "P1"]
    assert [p.section for p in fs.sort_pieces(pieces, "section")][:3] == ["8", "20x40", "20x100"]


def test_natural_key():
    assert sorted(["P10", "P2", "p1"], key=fs.natural_key) == ["p1", "P2", "P10"]
