"""Tests for entity records."""
import pytest

from vipx.models import Display, Snapshot


def test_from_dict_keeps_unknown_members():
    display = Display.from_dict({"id": 1, "name": "Main", "width": 1920})

    assert isinstance(display, Display)
    assert display.extra == {"width": 1920}
    assert display.to_dict() == {"id": 1, "name": "Main", "width": 1920}


def test_missing_name_is_empty():
    assert Snapshot.from_dict({"id": 4}).name == ""


@pytest.mark.parametrize("data", [None, [], {"name": "x"}, {"id": "1"}, {"id": True}])
def test_invalid_records_are_rejected(data):
    with pytest.raises(ValueError):
        Snapshot.from_dict(data)
