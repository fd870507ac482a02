import json
from datetime import datetime, timezone

from hezzlgoods.models import Goods

TIME_NOW = datetime(2025, 6, 14, tzinfo=timezone.utc)


def _sample():
    return Goods(
        id=4,
        project_id=2,
        name="lamp",
        description="desk lamp",
        priority=3,
        removed=True,
        created_at=TIME_NOW,
    )


def test_round_trip_through_dict():
    goods = _sample()
    assert Goods.from_dict(goods.to_dict()) == goods


def test_round_trip_through_json_text():
    goods = _sample()
    restored = Goods.from_dict(json.loads(json.dumps(goods.to_dict())))
    assert restored == goods


def test_dict_keys_follow_field_names():
    assert set(_sample().to_dict()) == {
        "ID",
        "ProjectID",
        "Name",
        "Description",
        "Priority",
        "Removed",
        "CreatedAt",
    }


def test_utc_time_written_with_z_suffix():
    assert _sample().to_dict()["CreatedAt"].endswith("Z")


def test_parses_nanosecond_fraction():
    goods = Goods.from_dict(
        {"ID": 1, "ProjectID": 1, "CreatedAt": "2025-06-14T00:00:00.123456789Z"}
    )
    assert goods.created_at.microsecond == 123456
    assert goods.created_at.tzinfo is not None
    assert goods.created_at.utcoffset().total_seconds() == 0


def test_missing_keys_take_zero_values():
    goods = Goods.from_dict({"ID": 9, "ProjectID": 5})
    assert goods.id == 9
    assert goods.project_id == 5
    assert goods.name == ""
    assert goods.removed is False
    assert goods.created_at == Goods(id=9, project_id=5).created_at


def test_non_utc_offset_survives_round_trip():
    goods = Goods(
        id=1,
        project_id=1,
        created_at=datetime.fromisoformat("2025-06-14T10:30:00+03:00"),
    )
    assert Goods.from_dict(goods.to_dict()).created_at == goods.created_at