import pytest

from resolver.channel import ChannelMessage
from resolver.classifier import IndicatorSet, VOCABULARY, classify


def test_classify_is_case_insensitive_and_ordered():
    result = classify("Subs: ENGLISH, some text, then Swedish again and swedish")
    assert result == IndicatorSet({"swedish", "english"})
    # vocabulary order, not text order
    assert result.ordered() == ("swedish", "english")
    assert result.symbols() == "🇸🇪🇬🇧"


def test_classify_empty_and_no_match():
    assert classify("") == IndicatorSet()
    assert not classify("Subtitles: Spanish, Italian")


def test_classify_matches_substrings_anywhere():
    # substring semantics, like the keyword search on the tracker page
    assert classify("<td class='lang'>Danish/Norwegian</td>") == IndicatorSet({"danish", "norwegian"})


def test_every_language_has_unique_flag():
    full = classify(" ".join(VOCABULARY))
    assert full.ordered() == VOCABULARY
    assert len(full.symbols()) == 2 * len(VOCABULARY)


def test_unknown_token_rejected():
    with pytest.raises(ValueError):
        IndicatorSet({"klingon"})


def test_from_symbols_does_not_match_across_flags():
    # 🇫🇮🇸🇪 contains the code points of 🇮🇸 in the middle
    parsed = IndicatorSet.from_symbols("🇫🇮🇸🇪")
    assert parsed == IndicatorSet({"finnish", "swedish"})
    assert "icelandic" not in parsed


def test_from_symbols_accepts_empty_and_not_found_marker():
    assert IndicatorSet.from_symbols("") == IndicatorSet()
    assert IndicatorSet.from_symbols("❌") == IndicatorSet()


def test_from_symbols_rejects_garbage():
    with pytest.raises(ValueError):
        IndicatorSet.from_symbols("🇸🇪X")


@pytest.mark.parametrize("body", [
    "Swedish and English subtitles",
    "nothing here",
    "FRENCH german icelandic finnish",
])
def test_classification_survives_the_channel(body):
    url = "https://uindex.org/details/1"
    msg = ChannelMessage.decode(ChannelMessage.for_page(url, body).encode())
    assert msg.url == url
    assert msg.indicators == classify(body)
