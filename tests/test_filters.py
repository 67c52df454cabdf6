import pytest

from ordscope.classifier import Category
from ordscope.filters import FilterError, FilterSet, parse_category


def test_no_filter_names_means_everything() -> None:
    assert FilterSet.from_names([]).is_everything
    assert FilterSet.from_names(None).is_everything
    assert FilterSet.from_names(None).describe() == "all"


def test_repeated_filters_combine_with_or() -> None:
    filters = FilterSet.from_names(["image", "text"])

    assert filters.accepts_category(Category.TEXT)
    assert filters.accepts_category(Category.IMAGE)
    assert not filters.accepts_category(Category.JSON)
    assert filters.describe() == "text,image"


def test_aliases_and_case_are_accepted() -> None:
    assert parse_category("BRC-20") is Category.BRC20
    assert parse_category(" TXT ") is Category.TEXT
    assert parse_category("binary") is Category.UNKNOWN


def test_unknown_filter_name_is_rejected() -> None:
    with pytest.raises(FilterError) as excinfo:
        FilterSet.from_names(["video"])

    assert "video" in str(excinfo.value)
    assert isinstance(excinfo.value, ValueError)


def test_toggle_returns_new_set() -> None:
    everything = FilterSet.all()

    without_text = everything.toggle(Category.TEXT)

    assert everything.is_everything
    assert not without_text.accepts_category(Category.TEXT)
    assert without_text.toggle(Category.TEXT) == everything
    assert FilterSet.none().describe() == "none"
    assert FilterSet.none().union(FilterSet.from_names(["html"])).enabled == frozenset({Category.HTML})
