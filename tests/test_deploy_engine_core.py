import socket

from remote_deploy.config import DeployConfig, Target
from remote_deploy.deploy_engine import DeployEngine
from remote_deploy.errors import EmptyRelativePathError, FileReadError, PathResolutionError
from remote_deploy.protocol import decode_frame


class DummyNet:
    def __init__(self, fail_on=()):
        self.sent = []
        self.fail_on = set(fail_on)

    def send(self, frame, addr, timeout):
        self.sent.append((frame, addr))
        if addr in self.fail_on:
            raise ConnectionRefusedError(f"refused by {addr}")


class Recorder:
    def __init__(self):
        self.events = []

    def before(self, file_path, target):
        self.events.append(("before", file_path, target.name))

    def completed(self, file_path, target, error):
        self.events.append(("completed", file_path, target.name, error))


def _engine(tmp_path, net):
    config = DeployConfig(root=str(tmp_path), default_host="127.0.0.1", default_port=4000)
    return DeployEngine(config, send_func=net.send)


def test_every_host_attempted_once_despite_failure(tmp_path):
    """
    One host refusing the connection must not stop the others, and the
    completion hook must not see that failure.
    """
    file_path = tmp_path / "a.txt"
    file_path.write_bytes(b"a" * 10000)

    net = DummyNet(fail_on={("h2", 2000)})
    rec = Recorder()
    target = Target(name="prod", hosts=["h1:1000", "h2:2000"])

    _engine(tmp_path, net).deploy_file(str(file_path), target, rec.before, rec.completed)

    addrs = [addr for _, addr in net.sent]
    assert sorted(addrs) == [("h1", 1000), ("h2", 2000)]

    # hosts are consumed from the end of the list
    assert addrs == [("h2", 2000), ("h1", 1000)]

    # identical frame for every host
    assert net.sent[0][0] == net.sent[1][0]
    record = decode_frame(net.sent[0][0])
    assert record.name == "a.txt"
    assert record.is_compressed
    assert record.content() == b"a" * 10000

    assert rec.events == [
        ("before", str(file_path), "prod"),
        ("completed", str(file_path), "prod", None),
    ]


def test_empty_host_list_completes_without_connections(tmp_path):
    file_path = tmp_path / "a.txt"
    file_path.write_bytes(b"content")

    net = DummyNet()
    rec = Recorder()
    _engine(tmp_path, net).deploy_file(str(file_path), Target(name="none", hosts=[]),
                                       rec.before, rec.completed)

    assert net.sent == []
    assert rec.events[-1] == ("completed", str(file_path), "none", None)
    assert sum(1 for e in rec.events if e[0] == "completed") == 1


def test_path_outside_root_aborts_before_network(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    outside = tmp_path / "outside.txt"
    outside.write_bytes(b"x")

    net = DummyNet()
    rec = Recorder()
    engine = DeployEngine(DeployConfig(root=str(root)), send_func=net.send)
    engine.deploy_file(str(outside), Target(name="t", hosts=["h1"]), rec.before, rec.completed)

    assert net.sent == []
    assert len(rec.events) == 2
    assert isinstance(rec.events[-1][3], PathResolutionError)


def test_root_itself_aborts_with_empty_path(tmp_path):
    net = DummyNet()
    rec = Recorder()
    _engine(tmp_path, net).deploy_file(str(tmp_path), Target(name="t", hosts=["h1"]),
                                       rec.before, rec.completed)

    assert net.sent == []
    assert isinstance(rec.events[-1][3], EmptyRelativePathError)


def test_missing_file_is_a_read_error(tmp_path):
    net = DummyNet()
    rec = Recorder()
    _engine(tmp_path, net).deploy_file(str(tmp_path / "missing.bin"), Target(name="t", hosts=["h1"]),
                                       rec.before, rec.completed)

    assert net.sent == []
    error = rec.events[-1][3]
    assert isinstance(error, FileReadError)
    assert isinstance(error.__cause__, OSError)


def test_before_deploy_failure_is_reported_to_completed(tmp_path):
    file_path = tmp_path / "a.txt"
    file_path.write_bytes(b"x")
    net = DummyNet()
    completed = []

    def boom(file_path, target):
        raise RuntimeError("hook failed")

    _engine(tmp_path, net).deploy_file(
        str(file_path), Target(name="t", hosts=["h1"]), boom,
        lambda f, t, e: completed.append(e),
    )

    assert net.sent == []
    assert len(completed) == 1
    assert str(completed[0]) == "hook failed"


def test_hooks_are_optional(tmp_path):
    file_path = tmp_path / "a.txt"
    file_path.write_bytes(b"x")
    net = DummyNet()

    _engine(tmp_path, net).deploy_file(str(file_path), Target(name="t", hosts="h1"))

    assert [addr for _, addr in net.sent] == [("h1", 4000)]


def test_dispatch_reports_outcomes(tmp_path):
    net = DummyNet(fail_on={("bad", 1)})
    outcomes = _engine(tmp_path, net).dispatch(b"\x00\x00\x00\x00", ["good:2", "bad:1", "Mixed"])

    assert [o.host for o in outcomes] == ["Mixed", "bad:1", "good:2"]
    assert [o.ok for o in outcomes] == [True, False, True]
    assert outcomes[0].address.address == "Mixed"
    assert outcomes[0].address.port == 4000
    assert isinstance(outcomes[1].error, ConnectionRefusedError)


def test_deploy_files_runs_each_file(tmp_path):
    for name in ("one.txt", "two.txt"):
        (tmp_path / name).write_bytes(name.encode())
    net = DummyNet()
    rec = Recorder()

    _engine(tmp_path, net).deploy_files(
        [str(tmp_path / "one.txt"), str(tmp_path / "two.txt")],
        Target(name="t", hosts=["h1:1"]), rec.before, rec.completed,
    )

    assert [decode_frame(frame).name for frame, _ in net.sent] == ["one.txt", "two.txt"]
    assert [e[0] for e in rec.events] == ["before", "completed", "before", "completed"]


def test_unreachable_host_over_real_socket(tmp_path):
    """The default sender against a closed port must be logged, not raised."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()

    file_path = tmp_path / "a.txt"
    file_path.write_bytes(b"x")
    completed = []

    engine = DeployEngine(DeployConfig(root=str(tmp_path), connect_timeout_sec=2.0))
    engine.deploy_file(str(file_path), Target(name="t", hosts=[f"127.0.0.1:{port}"]),
                       on_completed=lambda f, t, e: completed.append(e))

    assert completed == [None]


def test_relative_path_is_read_from_root_not_cwd(tmp_path, monkeypatch):
    """A relative file path names and reads the same file below the root."""
    root = tmp_path / "project"
    (root / "lib").mkdir(parents=True)
    (root / "lib" / "util.py").write_bytes(b"ROOT VERSION")
    (root / "only_in_root.txt").write_bytes(b"root only")

    elsewhere = tmp_path / "elsewhere"
    (elsewhere / "lib").mkdir(parents=True)
    (elsewhere / "lib" / "util.py").write_bytes(b"CWD VERSION")
    monkeypatch.chdir(elsewhere)

    net = DummyNet()
    rec = Recorder()
    engine = DeployEngine(DeployConfig(root=str(root)), send_func=net.send)
    target = Target(name="t", hosts=["h1:1"])
    engine.deploy_file("lib/util.py", target, rec.before, rec.completed)
    engine.deploy_file("only_in_root.txt", target, rec.before, rec.completed)

    records = [decode_frame(frame) for frame, _ in net.sent]
    assert [(r.name, r.content()) for r in records] == [
        ("lib/util.py", b"ROOT VERSION"),
        ("only_in_root.txt", b"root only"),
    ]
    assert [e[3] for e in rec.events if e[0] == "completed"] == [None, None]


def test_timed_out_host_does_not_stop_the_others(tmp_path, caplog):
    """A host that hangs until the timeout is logged and skipped."""
    file_path = tmp_path / "a.txt"
    file_path.write_bytes(b"x")
    attempted = []

    def send(frame, addr, timeout):
        attempted.append((addr, timeout))
        if addr == ("slow", 1):
            raise socket.timeout("timed out")

    completed = []
    config = DeployConfig(root=str(tmp_path), connect_timeout_sec=0.5)
    with caplog.at_level("ERROR", logger="remote_deploy.deploy_engine"):
        DeployEngine(config, send_func=send).deploy_file(
            str(file_path), Target(name="t", hosts=["fast:2", "slow:1"]),
            on_completed=lambda f, t, e: completed.append(e),
        )

    assert attempted == [(("slow", 1), 0.5), (("fast", 2), 0.5)]
    assert completed == [None]
    assert any("slow:1" in r.getMessage() for r in caplog.records)


def test_uncoercible_host_entry_still_completes_once(tmp_path):
    file_path = tmp_path / "a.txt"
    file_path.write_bytes(b"x")
    net = DummyNet()
    completed = []

    _engine(tmp_path, net).deploy_file(
        str(file_path), Target(name="t", hosts=[b"\xff\xfe"]),
        on_completed=lambda f, t, e: completed.append(e),
    )

    assert net.sent == []
    assert len(completed) == 1
    assert isinstance(completed[0], UnicodeDecodeError)
