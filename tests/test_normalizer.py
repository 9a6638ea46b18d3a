from copydedup.normalizer import normalize_text, remove_ending, remove_title
from copydedup.shingles import generate_shingles


def test_title_and_ending_removed():
    assert normalize_text("THE MOST POWERFUL PRAYER. God loves you deeply. Type Amen") == "god loves you deeply"
    assert normalize_text("God loves you deeply. Share this if you believe.") == "god loves you deeply"


def test_uppercase_title_before_body():
    assert remove_title("READ THIS TODAY Jesus walks with you") == "Jesus walks with you"


def test_dear_lord_opening():
    assert remove_title("Dear Lord, guide my steps") == "guide my steps"


def test_endings_removed_until_stable():
    text = "Peace be with you. Amen. Type Amen if you agree"
    assert remove_ending(text) == "Peace be with you."


def test_punctuation_and_whitespace():
    assert normalize_text("  Faith,   hope!\n\nand   love...  ") == "faith hope and love"


def test_empty_and_punctuation_only():
    assert normalize_text("") == ""
    assert normalize_text("!!! ...") == ""


def test_non_latin_text_kept():
    assert normalize_text("上帝爱你。") == "上帝爱你"


def test_shingles_sliding_window():
    assert generate_shingles("abcd", 3) == frozenset({"abc", "bcd"})


def test_short_text_is_single_shingle():
    assert generate_shingles("ab", 3) == frozenset({"ab"})
    assert generate_shingles("", 3) == frozenset({""})
