import pytest

from src.errors import ConfigError
from src.models import FilterSpec
from src.query_builder import build_search_url, slugify_segment


def test_city_only_has_no_other_filter_tokens():
    url = build_search_url(FilterSpec(city="Lahore"))
    assert url == "https://www.pakwheels.com/used-cars/lahore/"
    assert "?" not in url


def test_empty_spec_is_the_bare_search_path():
    assert build_search_url(FilterSpec()) == "https://www.pakwheels.com/used-cars/"


def test_make_and_model_are_joined_into_one_segment():
    url = build_search_url(FilterSpec(city="Karachi", make="Toyota", model="Corolla Altis"))
    assert url == "https://www.pakwheels.com/used-cars/karachi/toyota-corolla-altis/"


def test_model_without_make_is_ignored():
    assert build_search_url(FilterSpec(model="Civic")) == "https://www.pakwheels.com/used-cars/"


def test_bounds_become_query_parameters():
    url = build_search_url(FilterSpec(make="Honda", min_price=1000000, max_price=5000000,
                                      min_year=2015, max_year=2020))
    assert url == ("https://www.pakwheels.com/used-cars/honda/"
                   "?price_from=1000000&price_to=5000000&year_from=2015&year_to=2020")


def test_zero_bound_is_kept():
    assert build_search_url(FilterSpec(min_price=0)).endswith("?price_from=0")


def test_start_url_overrides_every_filter():
    start = "https://www.pakwheels.com/used-cars/search/-/mk_suzuki/"
    spec = FilterSpec(city="Lahore", make="Toyota", min_price=5, start_url=start)
    assert build_search_url(spec) == start


def test_blank_start_url_is_ignored():
    assert build_search_url(FilterSpec(city="Multan", start_url="   ")).endswith("/used-cars/multan/")


@pytest.mark.parametrize("raw,expected", [
    ("Lahore", "lahore"),
    ("  Rahim Yar   Khan ", "rahim-yar-khan"),
    ("", ""),
])
def test_slugify_segment(raw, expected):
    assert slugify_segment(raw) == expected


def test_from_input_accepts_marketplace_keys():
    spec = FilterSpec.from_input({
        "city": "Islamabad",
        "make": "Suzuki",
        "minPrice": "500000",
        "maxYear": 2022,
        "results_wanted": "0",
        "max_pages": "abc",
        "startUrl": None,
        "proxyConfiguration": {"proxyUrls": ["http://10.0.0.1:8000"]},
    })
    assert spec.city == "Islamabad"
    assert spec.min_price == 500000
    assert spec.max_year == 2022
    assert spec.results_wanted == 1
    assert spec.max_pages == 20
    assert spec.start_url is None
    assert spec.proxy_configuration == {"proxyUrls": ["http://10.0.0.1:8000"]}


def test_defaults():
    spec = FilterSpec.from_input({})
    assert (spec.results_wanted, spec.max_pages) == (100, 20)
    assert spec.min_price is None and spec.max_year is None


@pytest.mark.parametrize("data", [{"minPrice": "-5"}, {"maxYear": "soon"}])
def test_invalid_bounds_raise_config_error(data):
    with pytest.raises(ConfigError):
        FilterSpec.from_input(data)


def test_from_input_rejects_non_objects():
    with pytest.raises(ConfigError):
        FilterSpec.from_input(["Lahore"])
