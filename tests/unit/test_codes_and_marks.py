"""
Unit tests for CodeGenerator and ExpiringMarks.
"""

import threading
from datetime import timedelta

import pytest

from domofon.auth import CodeGenerator, ExpiringMarks


class TestCodeGenerator:
    """Tests for CodeGenerator class."""

    @pytest.mark.unit
    def test_default_code_is_four_digits(self):
        """Test the default code is four digits."""
        code = CodeGenerator().generate()

        assert len(code) == 4
        assert code.isdigit()

    @pytest.mark.unit
    @pytest.mark.parametrize("length", [4, 5, 6])
    def test_code_width(self, length):
        """Test codes always have the configured width."""
        for _ in range(50):
            code = CodeGenerator(length).generate()
            assert len(code) == length
            assert code.isdigit()

    @pytest.mark.unit
    def test_leading_zeros_are_kept(self, monkeypatch):
        """Test small draws are zero padded."""
        monkeypatch.setattr("domofon.auth.codes.secrets.randbelow", lambda n: 42)

        assert CodeGenerator(4).generate() == "0042"

    @pytest.mark.unit
    def test_draws_over_full_range(self, monkeypatch):
        """Test the draw covers every code of the given width."""
        seen = []
        monkeypatch.setattr(
            "domofon.auth.codes.secrets.randbelow",
            lambda n: seen.append(n) or n - 1,
        )

        assert CodeGenerator(6).generate() == "999999"
        assert seen == [1000000]

    @pytest.mark.unit
    @pytest.mark.parametrize("length", [0, 3, 7])
    def test_invalid_length(self, length):
        """Test widths outside 4..6 are refused."""
        with pytest.raises(ValueError):
            CodeGenerator(length)


class TestExpiringMarks:
    """Tests for ExpiringMarks class."""

    @pytest.mark.unit
    def test_mark_is_live_until_ttl(self, clock):
        """Test a mark is live up to its TTL and evicted on read after."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)
        marks.mark("+71234567890")

        clock.advance(minutes=4, seconds=59)
        assert marks.is_marked("+71234567890") is True

        clock.advance(seconds=1)
        assert marks.is_marked("+71234567890") is False
        assert len(marks) == 0

    @pytest.mark.unit
    def test_unknown_key(self, clock):
        """Test a key that was never marked."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)

        assert marks.is_marked("+70000000000") is False
        assert marks.take("+70000000000") is None

    @pytest.mark.unit
    def test_take_consumes(self, clock):
        """Test take returns the expiry once and removes the mark."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)
        expiry = marks.mark("a")

        assert marks.take("a") == expiry
        assert marks.take("a") is None
        assert marks.is_marked("a") is False

    @pytest.mark.unit
    def test_take_expired_returns_none(self, clock):
        """Test an expired mark cannot be taken."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)
        marks.mark("a")
        clock.advance(minutes=6)

        assert marks.take("a") is None

    @pytest.mark.unit
    def test_restore_puts_mark_back(self, clock):
        """Test restore re-creates a taken mark."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)
        expiry = marks.mark("a")
        marks.take("a")

        marks.restore("a", expiry)
        assert marks.is_marked("a") is True

    @pytest.mark.unit
    def test_clear(self, clock):
        """Test clear drops a single mark."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)
        marks.mark("a")
        marks.mark("b")

        marks.clear("a")

        assert marks.is_marked("a") is False
        assert marks.is_marked("b") is True

    @pytest.mark.unit
    def test_purge_expired(self, clock):
        """Test purge_expired drops only expired marks."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)
        marks.mark("a")
        clock.advance(minutes=3)
        marks.mark("b")
        clock.advance(minutes=3)

        assert marks.purge_expired() == 1
        assert len(marks) == 1
        assert marks.is_marked("b") is True

    @pytest.mark.unit
    def test_mark_sweeps_expired_entries(self, clock):
        """Test stale marks nobody reads again are dropped on the next mark."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)
        for i in range(200):
            marks.mark(f"+7900000{i:04d}")
        assert len(marks) == 200

        clock.advance(hours=1)
        marks.mark("+79998887766")

        assert len(marks) == 1
        assert marks.is_marked("+79998887766") is True

    @pytest.mark.unit
    def test_mark_keeps_live_entries(self, clock):
        """Test the sweep on mark leaves unexpired marks alone."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)
        marks.mark("a")
        clock.advance(minutes=4)
        marks.mark("b")

        assert len(marks) == 2

    @pytest.mark.unit
    def test_instances_are_isolated(self, clock):
        """Test two instances do not share marks."""
        first = ExpiringMarks(timedelta(minutes=5), clock=clock)
        second = ExpiringMarks(timedelta(minutes=5), clock=clock)
        first.mark("a")

        assert second.is_marked("a") is False

    @pytest.mark.unit
    def test_concurrent_take_succeeds_once(self, clock):
        """Test only one of many concurrent takers gets the mark."""
        marks = ExpiringMarks(timedelta(minutes=5), clock=clock)
        marks.mark("a")
        results = []
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            results.append(marks.take("a"))

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(1 for r in results if r is not None) == 1
