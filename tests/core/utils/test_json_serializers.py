"""Tests for core.utils.json_serializers."""

import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from core.utils.json_serializers import json_serializer
from stormfeed.types import StormCategory


class TestJsonSerializer:
    def test_datetime_and_date(self):
        assert json_serializer(datetime(2024, 5, 26, 23, 37)) == "2024-05-26T23:37:00"
        assert json_serializer(date(2024, 5, 26)) == "2024-05-26"

    def test_decimal_and_path(self):
        assert json_serializer(Decimal("1.75")) == 1.75
        assert json_serializer(Path("/tmp/feed.csv")) == "/tmp/feed.csv"

    def test_enum_uses_value(self):
        assert json_serializer(StormCategory.WIND) == "wind"

    def test_fallback_to_str(self):
        assert json.dumps({"x": object()}, default=json_serializer).startswith('{"x": "<object')
