"""
Tests for background execution with AnalysisRunner.
"""

import threading

import pytest

from depcorr.analysis import run_correlation_analysis
from depcorr.runner import AnalysisRunner


class TestAnalysisRunner:
    """Single-worker execution and latest-result publication."""

    def test_latest_set_when_future_resolves(self, small_context):
        with AnalysisRunner() as runner:
            assert runner.latest is None
            future = runner.submit(
                run_correlation_analysis, small_context, ["GENE0000", "GENE0001"], "analysis"
            )
            result = future.result(timeout=60)
            assert result.success
            assert runner.latest is result

    def test_runs_in_submission_order(self):
        order = []
        gate = threading.Event()

        def first():
            gate.wait(timeout=5)
            order.append("first")
            return "first"

        def second():
            order.append("second")
            return "second"

        with AnalysisRunner() as runner:
            a = runner.submit(first)
            b = runner.submit(second)
            gate.set()
            assert b.result(timeout=10) == "second"
            assert a.result(timeout=10) == "first"
            assert runner.latest == "second"
        assert order == ["first", "second"]

    def test_failed_run_keeps_previous_result(self):
        def boom():
            raise ValueError("bad request")

        with AnalysisRunner() as runner:
            runner.submit(lambda: "ok").result(timeout=10)
            failed = runner.submit(boom)
            with pytest.raises(ValueError, match="bad request"):
                failed.result(timeout=10)
            assert runner.latest == "ok"

    def test_runs_off_calling_thread(self):
        caller = threading.get_ident()
        with AnalysisRunner() as runner:
            worker = runner.submit(threading.get_ident).result(timeout=10)
        assert worker != caller
