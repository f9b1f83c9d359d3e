"""
Tests for Timer and timed().
"""

import pytest

from survcompare.core.compute import Timer, timed


class TestTimer:

    def test_sections_accumulate(self):
        timer = Timer()
        timer.start()
        with timer.section('newton_raphson'):
            pass
        with timer.section('newton_raphson'):
            pass
        timer.stop()

        result = timer.result()
        assert set(result) == {'total_seconds', 'newton_raphson'}
        assert result['total_seconds'] >= 0.0
        assert result['newton_raphson'] >= 0.0

    def test_section_recorded_on_exception(self):
        timer = Timer()
        timer.start()
        with pytest.raises(ValueError):
            with timer.section('baseline'):
                raise ValueError("boom")
        timer.stop()
        assert 'baseline' in timer.result()

    def test_stop_before_start(self):
        with pytest.raises(RuntimeError, match="before start"):
            Timer().stop()

    def test_result_before_stop(self):
        timer = Timer()
        timer.start()
        with pytest.raises(RuntimeError, match="before stop"):
            timer.result()


class TestTimed:

    def test_context_manager(self):
        with timed() as timer:
            sum(range(100))
        assert timer.result()['total_seconds'] >= 0.0
