"""Tests for the scan pipeline using a fake probe."""

import os
import tempfile
import threading
import time

import pytest

from gitrove.errors import ProbeError, TraversalError
from gitrove.filters import FilterMode
from gitrove.pipeline import QUEUE_SIZE, Pipeline, ScanOptions
from gitrove.render import OutputTemplate
from gitrove.status import Modification, RepoStatus, SyncState


def _make_tree(tmp, names):
    for name in names:
        os.makedirs(os.path.join(tmp, name, ".git"))


def _probe_from(table):
    """A probe answering from {basename: RepoStatus kwargs}; missing names fail."""
    def probe(path):
        name = os.path.basename(path)
        if name not in table:
            raise ProbeError(path, "branch", "fatal: not a git repository")
        return RepoStatus(path=path, **table[name])
    return probe


def _run(tmp, options, probe):
    emitted = []
    report = Pipeline(tmp, options, lambda status, line: emitted.append(line), probe=probe).run()
    return report, emitted


def test_emits_every_repo():
    with tempfile.TemporaryDirectory() as tmp:
        names = [f"repo{i:02d}" for i in range(25)]
        _make_tree(tmp, names)
        probe = _probe_from({n: {"branch": "main"} for n in names})
        report, emitted = _run(tmp, ScanOptions(template=OutputTemplate("{Path}")), probe)

        assert sorted(emitted) == sorted(os.path.join(tmp, n) for n in names)
        assert report.found == 25
        assert report.emitted == 25
        assert report.ok


def test_more_repos_than_queue_size():
    with tempfile.TemporaryDirectory() as tmp:
        names = [f"r{i}" for i in range(QUEUE_SIZE * 4)]
        _make_tree(tmp, names)

        def slow_probe(path):
            time.sleep(0.005)
            return RepoStatus(path=path)

        report, emitted = _run(tmp, ScanOptions(jobs=2), slow_probe)
        assert len(emitted) == QUEUE_SIZE * 4
        assert report.ok


def test_filters_and_search_applied():
    with tempfile.TemporaryDirectory() as tmp:
        _make_tree(tmp, ["ahead-one", "ahead-two", "clean"])
        probe = _probe_from({
            "ahead-one": {"sync": SyncState.AHEAD},
            "ahead-two": {"sync": SyncState.AHEAD, "remote": "git@x:two.git"},
            "clean": {},
        })
        options = ScanOptions(filters=["ahead"], search="two", template=OutputTemplate("{Path} {Remote}"))
        report, emitted = _run(tmp, options, probe)

        assert emitted == [os.path.join(tmp, "ahead-two") + " git@x:two.git"]
        assert report.found == 3
        assert report.emitted == 1


def test_or_mode():
    with tempfile.TemporaryDirectory() as tmp:
        _make_tree(tmp, ["a", "b", "c"])
        probe = _probe_from({
            "a": {"sync": SyncState.AHEAD, "remote": "u"},
            "b": {"modifications": {Modification.UNKNOWN, Modification.CHANGED}, "remote": "u"},
            "c": {"remote": "u"},
        })
        options = ScanOptions(filters=["ahead", "unknown"], mode=FilterMode.OR, template=OutputTemplate("{Path}"))
        _, emitted = _run(tmp, options, probe)
        assert sorted(os.path.basename(p) for p in emitted) == ["a", "b"]


def test_probe_error_isolated():
    with tempfile.TemporaryDirectory() as tmp:
        _make_tree(tmp, ["good", "broken", "fine"])
        probe = _probe_from({"good": {}, "fine": {}})
        report, emitted = _run(tmp, ScanOptions(template=OutputTemplate("{Path}")), probe)

        assert sorted(os.path.basename(p) for p in emitted) == ["fine", "good"]
        assert len(report.errors) == 1
        assert isinstance(report.errors[0], ProbeError)
        assert report.errors[0].path == os.path.join(tmp, "broken")
        assert not report.ok


def test_probe_error_fail_fast():
    with tempfile.TemporaryDirectory() as tmp:
        _make_tree(tmp, ["broken"])
        with pytest.raises(ProbeError):
            _run(tmp, ScanOptions(fail_fast=True), _probe_from({}))


def test_fail_fast_stops_new_work():
    with tempfile.TemporaryDirectory() as tmp:
        names = [f"r{i:03d}" for i in range(60)]
        _make_tree(tmp, names)
        probed = []
        lock = threading.Lock()

        def probe(path):
            with lock:
                probed.append(path)
            if path.endswith("r000"):
                raise ProbeError(path, "remote", "boom")
            time.sleep(0.01)
            return RepoStatus(path=path)

        with pytest.raises(ProbeError):
            _run(tmp, ScanOptions(fail_fast=True, jobs=1), probe)
        assert len(probed) < 60


def test_traversal_error_fail_fast():
    with tempfile.TemporaryDirectory() as tmp:
        missing = os.path.join(tmp, "missing")
        with pytest.raises(TraversalError):
            Pipeline(missing, ScanOptions(fail_fast=True), lambda s, l: None, probe=_probe_from({})).run()


def test_traversal_error_recorded():
    with tempfile.TemporaryDirectory() as tmp:
        missing = os.path.join(tmp, "missing")
        report = Pipeline(missing, ScanOptions(), lambda s, l: None, probe=_probe_from({})).run()
        assert len(report.errors) == 1
        assert isinstance(report.errors[0], TraversalError)


def test_unexpected_exception_propagates():
    with tempfile.TemporaryDirectory() as tmp:
        _make_tree(tmp, ["x"])

        def probe(path):
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError, match="bug"):
            _run(tmp, ScanOptions(), probe)


def test_emit_is_serialized():
    with tempfile.TemporaryDirectory() as tmp:
        names = [f"r{i}" for i in range(30)]
        _make_tree(tmp, names)
        active = []
        overlaps = []

        def emit(status, line):
            active.append(line)
            if len(active) > 1:
                overlaps.append(line)
            time.sleep(0.001)
            active.remove(line)

        Pipeline(tmp, ScanOptions(jobs=8), emit, probe=lambda p: RepoStatus(path=p)).run()
        assert overlaps == []


def test_walker_waits_for_slow_probes():
    with tempfile.TemporaryDirectory() as tmp:
        names = [f"r{i:03d}" for i in range(100)]
        _make_tree(tmp, names)
        release = threading.Event()

        def blocked_probe(path):
            release.wait(10)
            return RepoStatus(path=path)

        emitted = []
        pipeline = Pipeline(tmp, ScanOptions(jobs=1), lambda s, l: emitted.append(l), probe=blocked_probe)
        runner = threading.Thread(target=pipeline.run)
        runner.start()
        try:
            time.sleep(0.3)
            # submitted slots + item held by the consumer + full queue + item held by the walker
            assert pipeline.report.found <= (1 + QUEUE_SIZE) + 1 + QUEUE_SIZE + 1
        finally:
            release.set()
            runner.join(10)
        assert not runner.is_alive()
        assert len(emitted) == 100
