import os

from mcode.watch import SidecarWatcher, snapshot


class Recorder:
    def __init__(self):
        self.events = []

    def changed(self, path):
        self.events.append(("changed", path))

    def removed(self, path):
        self.events.append(("removed", path))


def _watcher(path, recorder, interval=60.0):
    return SidecarWatcher(path, on_changed=recorder.changed, on_removed=recorder.removed, interval=interval)


def _bump(path, text, offset_s):
    path.write_text(text, encoding="utf-8")
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + int(offset_s * 1e9)))


def test_snapshot_missing_file(tmp_path):
    snap = snapshot(tmp_path / "nope.txt")
    assert snap.exists is False
    assert snap.mtime_ns is None


def test_poll_without_changes_fires_nothing(tmp_path):
    path = tmp_path / "exec_mcode.txt"
    path.write_text("1, 0x0, 0x0, NOP\n", encoding="utf-8")
    recorder = Recorder()
    watcher = _watcher(path, recorder)
    assert watcher.poll() is None
    assert recorder.events == []


def test_poll_reports_creation_change_and_removal(tmp_path):
    path = tmp_path / "exec_mcode.txt"
    recorder = Recorder()
    watcher = _watcher(path, recorder)

    path.write_text("1, 0x0, 0x0, NOP\n", encoding="utf-8")
    assert watcher.poll() == "created"

    _bump(path, "1, 0x0, 0x0, NOP\n2, 0x4, 0x1, HLT\n", 5)
    assert watcher.poll() == "changed"

    path.unlink()
    assert watcher.poll() == "removed"
    assert watcher.poll() is None
    assert [name for name, _ in recorder.events] == ["changed", "changed", "removed"]
    assert all(event_path == path for _, event_path in recorder.events)


def test_every_write_triggers_a_callback(tmp_path):
    path = tmp_path / "exec_mcode.txt"
    path.write_text("", encoding="utf-8")
    recorder = Recorder()
    watcher = _watcher(path, recorder)
    for idx in range(3):
        _bump(path, "x" * (idx + 1), idx + 1)
        watcher.poll()
    assert len(recorder.events) == 3


def test_start_stop_manages_timer(tmp_path):
    recorder = Recorder()
    watcher = _watcher(tmp_path / "exec_mcode.txt", recorder)
    watcher.start()
    assert watcher.running
    assert watcher._timer is not None
    watcher.stop()
    assert not watcher.running
    assert watcher._timer is None


def test_invalid_interval_falls_back_to_default(tmp_path):
    watcher = _watcher(tmp_path / "x.txt", Recorder(), interval=0)
    assert watcher.interval > 0


def test_same_size_rewrite_with_unchanged_mtime_is_seen(tmp_path):
    path = tmp_path / "exec_mcode.txt"
    path.write_text("main.asm, 3, 0x1000, 0x10, MOV R1, R2\n", encoding="utf-8")
    before = path.stat()
    recorder = Recorder()
    watcher = _watcher(path, recorder)

    path.write_text("main.asm, 3, 0x2000, 0x10, MOV R1, R2\n", encoding="utf-8")
    os.utime(path, ns=(before.st_atime_ns, before.st_mtime_ns))
    assert path.stat().st_size == before.st_size

    assert watcher.poll() == "changed"
    assert recorder.events == [("changed", path)]


def test_snapshot_digest_follows_content(tmp_path):
    path = tmp_path / "exec_mcode.txt"
    path.write_text("1, 0x0, 0x0, NOP\n", encoding="utf-8")
    first = snapshot(path)
    path.write_text("1, 0x4, 0x0, NOP\n", encoding="utf-8")
    assert snapshot(path).digest != first.digest
