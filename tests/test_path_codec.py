import itertools

import pytest

from facets.path_codec import (
    UrlMode,
    build_filter_url,
    decode,
    decode_location,
    encode,
    has_encoded_state,
    hash_for,
    search_url,
    split_search_path,
)
from facets.sorting import SORT_KEYS


def test_encode_sorts_keys_and_appends_non_default_sort():
    assert encode({"size": "small", "colour": "red"}) == "colour/red/size/small"
    assert encode({"size": "small", "colour": "red"}, "price-asc") == "colour/red/size/small/price-asc"
    assert encode({}) == ""
    assert encode(None, "name-asc") == "name-asc"


def test_encode_is_canonical_regardless_of_insertion_order():
    assert encode({"b": "2", "a": "1"}) == encode({"a": "1", "b": "2"})


def test_encode_rejects_unknown_sort_key():
    with pytest.raises(ValueError):
        encode({"size": "small"}, "popularity")


def test_round_trip_for_every_filter_set_and_sort_key():
    schema = {"colour": ("blue", "red"), "size": ("large", "small"), "brand": ("a&b c",)}
    keys = sorted(schema)
    filter_sets = [{}]
    for width in range(1, len(keys) + 1):
        for chosen in itertools.combinations(keys, width):
            for values in itertools.product(*(schema[key] for key in chosen)):
                filter_sets.append(dict(zip(chosen, values)))

    for filters in filter_sets:
        for sort_key in SORT_KEYS:
            assert decode(encode(filters, sort_key)) == (filters, sort_key)


def test_components_are_percent_encoded():
    path = encode({"brand": "a&b c", "size": "s/m"})

    assert path == "brand/a%26b%20c/size/s%2Fm"
    assert decode(path).filters == {"brand": "a&b c", "size": "s/m"}


@pytest.mark.parametrize(
    "path",
    [
        "size",
        "size/small/bogus",
        "size/small/size/large",
        "size/%E0%A4",
        "size//colour/red",
        None,
        42,
    ],
)
def test_decode_fails_open_to_empty_state(path):
    assert decode(path) == ({}, "default")


def test_decode_tolerates_slashes_and_explicit_default():
    assert decode("/colour/red/") == ({"colour": "red"}, "default")
    assert decode("colour/red/default") == ({"colour": "red"}, "default")
    assert decode("price-desc") == ({}, "price-desc")
    assert decode("") == ({}, "default")


def test_split_search_path():
    assert split_search_path("/categories/widgets/search/colour/red/") == ("/categories/widgets", "colour/red")
    assert split_search_path("/categories/widgets/search/") == ("/categories/widgets", "")
    assert split_search_path("/categories/widgets/") == ("/categories/widgets", "")
    assert split_search_path("/categories/research/") == ("/categories/research", "")


def test_search_and_filter_urls():
    assert search_url("/categories/widgets/", {"colour": "red"}) == "/categories/widgets/search/colour/red/"
    assert search_url("/categories/widgets", {}) == "/categories/widgets/"
    assert (
        build_filter_url("/categories/widgets/search/colour/red/", {"size": "small"}, "price-asc")
        == "/categories/widgets/search/size/small/price-asc/"
    )
    assert build_filter_url("/categories/widgets/search/colour/red/", {}) == "/categories/widgets/"


def test_hash_mode_helpers():
    assert hash_for({}) == ""
    assert hash_for({"colour": "red"}, "name-asc") == "#colour/red/name-asc"
    assert decode_location("/categories/widgets/", "#colour/red", UrlMode.HASH) == ({"colour": "red"}, "default")
    assert decode_location("/categories/widgets/search/colour/red/", "", "path") == ({"colour": "red"}, "default")
    assert has_encoded_state("/categories/widgets/", "#colour/red", "hash")
    assert not has_encoded_state("/categories/widgets/", "#colour/red", "path")
