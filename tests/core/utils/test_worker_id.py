"""Tests for core.utils.worker_id module."""

from core.utils.worker_id import generate_worker_id


class TestGenerateWorkerId:
    def test_no_prefix(self):
        worker_id = generate_worker_id()
        assert isinstance(worker_id, str)
        assert "-" in worker_id

    def test_with_prefix(self):
        worker_id = generate_worker_id("stormfeed-producer")
        assert worker_id.startswith("stormfeed-producer-")
        assert worker_id.removeprefix("stormfeed-producer-")

    def test_unique(self):
        ids = {generate_worker_id() for _ in range(10)}
        assert len(ids) == 10

    def test_empty_prefix_treated_as_no_prefix(self):
        assert not generate_worker_id("").startswith("-")

    def test_slug_has_three_words(self):
        worker_id = generate_worker_id("stormfeed-processor")
        assert len(worker_id.removeprefix("stormfeed-processor-").split("-")) >= 3
