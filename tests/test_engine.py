from copydedup.config import EngineSettings
from copydedup.engine import DedupEngine
from copydedup.models import TextItem
from copydedup.similarity import exact_jaccard

CORE = (
    "the lord is my shepherd i shall not want he makes me lie down in green pastures "
    "he leads me beside still waters"
)


def test_title_and_call_to_action_variants_grouped():
    engine = DedupEngine()
    items = [
        TextItem(id="1", text="THE MOST POWERFUL PRAYER. God loves you deeply. Type Amen"),
        TextItem(id="2", text="God loves you deeply. Share this if you believe."),
    ]
    result = engine.dedup(items)
    assert result.unique_items == []
    assert len(result.duplicate_groups) == 1
    group = result.duplicate_groups[0]
    assert group.representative.id == "1"
    assert [(d.item.id, d.similarity) for d in group.duplicates] == [("2", 1.0)]
    assert result.stats.duplicate_count == 1
    assert result.stats.total_input == 2


def test_disjoint_items_stay_unique():
    engine = DedupEngine()
    items = [TextItem(id="a", text="cat dog bird"), TextItem(id="b", text="xyz qrs tuv")]
    result = engine.dedup(items)
    assert [i.id for i in result.unique_items] == ["a", "b"]
    assert result.duplicate_groups == []
    assert result.stats.unique_count == 2


def test_library_match_excludes_item():
    engine = DedupEngine()
    engine.add_to_library([TextItem(id="lib1", text="pray for peace today")])
    result = engine.dedup([TextItem(id="new1", text="pray for peace today")], check_library=True)
    assert len(result.library_matches) == 1
    match = result.library_matches[0]
    assert match.library_item.id == "lib1"
    assert match.similarity == 1.0
    assert match.match_count == 1
    assert result.unique_items == []
    assert result.duplicate_groups == []
    assert result.stats.library_match_count == 1


def test_library_check_can_be_skipped():
    engine = DedupEngine()
    engine.add_to_library([TextItem(id="lib1", text="pray for peace today")])
    result = engine.dedup([TextItem(id="new1", text="pray for peace today")], check_library=False)
    assert [i.id for i in result.unique_items] == ["new1"]
    assert result.library_matches == []


def test_group_dropped_when_representative_in_library():
    engine = DedupEngine()
    engine.add_to_library([TextItem(id="lib", text="walk by faith not by sight")])
    items = [
        TextItem(id="x", text="Walk by faith, not by sight. Amen"),
        TextItem(id="y", text="walk by faith not by sight!"),
    ]
    result = engine.dedup(items)
    assert result.duplicate_groups == []
    assert [m.new_item.id for m in result.library_matches] == ["x"]
    assert result.stats.duplicate_count == 1


def test_transitive_chain_forms_one_group():
    engine = DedupEngine(EngineSettings(num_hash_functions=128, num_bands=64))
    a = TextItem(id="A", text=CORE + " zzzz qqqq")
    b = TextItem(id="B", text=CORE)
    c = TextItem(id="C", text=CORE + " vvvv kkkk")
    sa, sb, sc = (engine.sign(i).shingles for i in (a, b, c))
    threshold = min(exact_jaccard(sa, sb), exact_jaccard(sb, sc))
    assert exact_jaccard(sa, sc) < threshold

    result = engine.dedup([a, b, c], threshold=threshold)
    assert len(result.duplicate_groups) == 1
    group = result.duplicate_groups[0]
    assert group.representative.id == "A"
    assert [d.item.id for d in group.duplicates] == ["B", "C"]
    assert group.duplicates[-1].similarity == 0.0


def test_threshold_gates_grouping():
    engine = DedupEngine(EngineSettings(num_hash_functions=128, num_bands=64))
    a = TextItem(id="a", text=CORE)
    b = TextItem(id="b", text=CORE + " and restores my soul")
    similarity = exact_jaccard(engine.sign(a).shingles, engine.sign(b).shingles)

    grouped = engine.dedup([a, b], threshold=similarity)
    assert len(grouped.duplicate_groups) == 1
    assert grouped.duplicate_groups[0].duplicates[0].similarity == similarity

    apart = engine.dedup([a, b], threshold=min(1.0, similarity + 0.01))
    assert apart.duplicate_groups == []
    assert len(apart.unique_items) == 2


def test_every_input_accounted_once():
    engine = DedupEngine()
    items = [
        TextItem(id="1", text="God loves you deeply. Type Amen"),
        TextItem(id="2", text="God loves you deeply."),
        TextItem(id="3", text="Blessed are the peacemakers"),
        TextItem(id="4", text="Rejoice always and pray without ceasing"),
    ]
    result = engine.dedup(items)
    seen = [i.id for i in result.unique_items]
    for group in result.duplicate_groups:
        seen.extend(group.member_ids)
    assert sorted(seen) == ["1", "2", "3", "4"]


def test_empty_inputs_degrade_gracefully():
    engine = DedupEngine()
    result = engine.dedup([])
    assert result.unique_items == []
    assert result.stats.total_input == 0
    single = engine.dedup([TextItem(id="e", text="")])
    assert [i.id for i in single.unique_items] == ["e"]


def test_dedup_does_not_mutate_library():
    engine = DedupEngine()
    engine.add_to_library([TextItem(id="lib1", text="pray for peace today")])
    engine.dedup([TextItem(id="n", text="a brand new blessing")])
    assert engine.get_library_size() == 1


def test_library_round_trip_preserves_signatures():
    engine = DedupEngine()
    engine.add_to_library(
        [
            TextItem(id="l1", text="Be still and know that I am God"),
            TextItem(id="l2", text="His mercies are new every morning", chinese_text="祂的怜悯每早晨都是新的"),
        ]
    )
    exported = engine.export_library()

    other = DedupEngine()
    other.import_library(exported)
    assert other.get_library_size() == 2
    for item in exported:
        assert other.library.signature(item.id).signature == engine.library.signature(item.id).signature
    assert other.library.item("l2").chinese_text == "祂的怜悯每早晨都是新的"


def test_add_skips_existing_and_remove_clear():
    engine = DedupEngine()
    assert engine.add_to_library([TextItem(id="l1", text="first")]) == 1
    assert engine.add_to_library([TextItem(id="l1", text="replacement")]) == 0
    assert engine.library.item("l1").text == "first"
    assert engine.remove_from_library(["l1", "missing"]) == 1
    engine.add_to_library([TextItem(id="l2", text="second")])
    engine.clear_library()
    assert engine.get_library_size() == 0
