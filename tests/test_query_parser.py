import pytest

from query_separator.errors import InputError
from query_separator.query_parser import (
    are_similar_sounds,
    match_detected_sounds,
    matches_for_target,
    parse_query,
    split_query,
)


def test_split_on_delimiters_and_whole_words():
    assert split_query("Hand drums AND piano; rain, wind or door") == ["hand drums", "piano", "rain", "wind", "door"]


def test_split_keeps_words_containing_and_or():
    assert split_query("sandy floor") == ["sandy floor"]


def test_parse_mixed_query_follows_vocabulary_scan():
    targets = parse_query("extract the speech, and dog barking")
    assert targets == ["speech", "dog"]


def test_parse_two_targets_in_order():
    assert parse_query("speech, music") == ["speech", "music"]


def test_synonyms_collapse_within_a_sub_query():
    assert parse_query("dog barking") == ["dog"]
    assert parse_query("speaking voice") == ["voice"]
    assert parse_query("dog, dog barking") == ["dog"]


@pytest.mark.parametrize(
    "query, expected",
    [
        ("water, rain", ["water", "rain"]),
        ("car, engine", ["car", "engine"]),
        ("noise and background", ["noise", "background"]),
        ("speech and voice", ["speech", "voice"]),
    ],
)
def test_separated_synonyms_keep_their_own_targets(query, expected):
    assert parse_query(query) == expected


def test_duplicates_across_sub_queries_are_suppressed():
    assert parse_query("rain; rain or wind") == ["rain", "wind"]


def test_literal_fallback_when_no_keyword_matches():
    assert parse_query("  A Whistling Kettle ") == ["a whistling kettle"]
    assert parse_query("kettle or siren, kettle") == ["kettle", "siren"]


@pytest.mark.parametrize(
    "query",
    [
        "speech",
        "guitar and piano and drums",
        "birds chirping outside, car engine",
        "door or phone",
        "something odd",
        "music; music; song",
    ],
)
def test_parse_is_non_empty_and_duplicate_free(query):
    targets = parse_query(query)
    assert targets
    assert len(targets) == len(set(targets))


@pytest.mark.parametrize("query", ["", "   ", " ,; and or ", "\t\n"])
def test_blank_or_separator_only_query_is_rejected(query):
    with pytest.raises(InputError):
        parse_query(query)


def test_similarity_is_symmetric_within_a_group():
    assert are_similar_sounds("speech", "Conversation")
    assert are_similar_sounds("Conversation", "speech")
    assert not are_similar_sounds("dog", "car")


def test_match_detected_sounds():
    detected = ["Speech", "Conversation", "Dog", "Music", "Speech"]
    assert match_detected_sounds(["speech"], detected) == ["Speech", "Conversation"]
    assert match_detected_sounds(["dog", "music"], detected) == ["Dog", "Music"]


def test_match_tolerates_empty_detector_output():
    assert match_detected_sounds(["dog"], []) == []


def test_substring_match_in_either_direction():
    assert match_detected_sounds(["bird"], ["Bird vocalization, bird call"]) == ["Bird vocalization, bird call"]
    assert match_detected_sounds(["church bell"], ["Bell"]) == ["Bell"]


def test_per_target_subset_of_batch_matches():
    matched = match_detected_sounds(["speech", "car"], ["Speech", "Vehicle", "Siren"])
    assert matched == ["Speech", "Vehicle"]
    assert matches_for_target("car", matched) == ["Vehicle"]
    assert matches_for_target("speech", matched) == ["Speech"]


def test_blank_detector_labels_are_ignored():
    assert match_detected_sounds(["dog", "speech"], ["", "   ", "Dog"]) == ["Dog"]
