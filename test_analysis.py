import io

import pytest
from google.api_core.exceptions import NotFound

import analysis
from analysis import main, parse_edge_list, read_edge_list
from graph import ConstructionError

CYCLE = "3 3\n1 2\n2 3\n3 1\n"


class FakeBlob:
    def __init__(self, store, name):
        self.store = store
        self.name = name

    def download_as_text(self):
        return self.store[self.name]


class FakeBucket:
    def __init__(self, store):
        self.store = store

    def blob(self, name):
        return FakeBlob(self.store, name)


class FakeClient:
    def __init__(self, buckets):
        self.buckets = buckets
        self.requested = []

    def bucket(self, name):
        self.requested.append(name)
        return FakeBucket(self.buckets[name])


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "PAGERANK_DAMPING",
        "PAGERANK_EPSILON",
        "PAGERANK_MAX_ITERATIONS",
        "PAGERANK_IN_PLACE",
        "PAGERANK_REDISTRIBUTE_DANGLING",
    ):
        monkeypatch.delenv(name, raising=False)


def test_parse_edge_list():
    assert parse_edge_list(CYCLE) == (3, [(1, 2), (2, 3), (3, 1)])
    assert parse_edge_list("2 0") == (2, [])


@pytest.mark.parametrize("text", ["", "3", "3 2\n1 2\n", "3 1\n1 x\n", "3 1\n1 2 3\n", "3 -1\n"])
def test_parse_edge_list_rejects_malformed(text):
    with pytest.raises(ConstructionError):
        parse_edge_list(text)


def test_read_edge_list_local(tmp_path):
    path = tmp_path / "graph.txt"
    path.write_text(CYCLE)
    assert read_edge_list(str(path)) == CYCLE


def test_read_edge_list_stdin(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO(CYCLE))
    assert read_edge_list("-") == CYCLE


def test_read_edge_list_gcs():
    client = FakeClient({"graphs": {"web/cycle.txt": CYCLE}})
    assert read_edge_list("gs://graphs/web/cycle.txt", client=client) == CYCLE
    assert client.requested == ["graphs"]


def test_read_edge_list_gcs_default_client(monkeypatch):
    client = FakeClient({"graphs": {"cycle.txt": CYCLE}})
    monkeypatch.setattr(analysis.storage, "Client", lambda: client)
    assert read_edge_list("gs://graphs/cycle.txt") == CYCLE


def test_read_edge_list_gcs_bad_uri():
    with pytest.raises(ValueError):
        read_edge_list("gs://graphs", client=FakeClient({}))


def test_main_prints_report(tmp_path, capsys):
    path = tmp_path / "graph.txt"
    path.write_text(CYCLE)

    assert main(["--input", str(path), "--top", "2", "--stats"]) == 0

    out = capsys.readouterr().out
    assert "Page Rank" in out
    assert "Node 1: 0.333" in out
    assert "Node 3: 0.333" in out
    assert "=== PageRank Top 2 ===" in out
    assert "=== Outgoing Links Stats ===" in out


def test_main_reads_stdin(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("2 1\n1 2\n"))

    assert main(["--precision", "2"]) == 0

    out = capsys.readouterr().out
    assert "Node 1: 0.22" in out
    assert "Node 2: 0.78" in out


def test_main_empty_graph(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("0 0\n"))

    assert main(["--stats", "--top", "3"]) == 0
    assert "Node" not in capsys.readouterr().out


def test_main_out_of_range_edge(tmp_path):
    path = tmp_path / "graph.txt"
    path.write_text("2 1\n1 3\n")
    assert main(["--input", str(path)]) == 2


def test_main_missing_file(tmp_path):
    assert main(["--input", str(tmp_path / "missing.txt")]) == 2


def test_main_strict_not_converged(tmp_path, capsys):
    path = tmp_path / "graph.txt"
    path.write_text("2 1\n1 2\n")

    assert main(["--input", str(path), "--max_iterations", "1", "--strict"]) == 1
    # best-effort scores are still reported
    assert "Node 2:" in capsys.readouterr().out


def test_main_not_strict_reports_capped_result(tmp_path):
    path = tmp_path / "graph.txt"
    path.write_text("2 1\n1 2\n")
    assert main(["--input", str(path), "--max_iterations", "1"]) == 0


def test_main_rejects_bad_damping(tmp_path):
    path = tmp_path / "graph.txt"
    path.write_text(CYCLE)

    with pytest.raises(SystemExit) as e:
        main(["--input", str(path), "--damping", "1.5"])
    assert e.value.code == 2


class MissingBlob:
    def download_as_text(self):
        raise NotFound("No such object: graphs/missing.txt")


class MissingBucket:
    def blob(self, name):
        return MissingBlob()


class MissingClient:
    def bucket(self, name):
        return MissingBucket()


def test_main_gcs_download_error(monkeypatch, caplog):
    monkeypatch.setattr(analysis.storage, "Client", MissingClient)

    assert main(["--input", "gs://graphs/missing.txt"]) == 2
    assert "Could not build graph" in caplog.text


@pytest.mark.parametrize(
    "name,value",
    [
        ("PAGERANK_DAMPING", "abc"),
        ("PAGERANK_EPSILON", "tiny"),
        ("PAGERANK_MAX_ITERATIONS", "many"),
        ("PAGERANK_DAMPING", "2.0"),
    ],
)
def test_main_rejects_bad_environment(monkeypatch, tmp_path, name, value):
    path = tmp_path / "graph.txt"
    path.write_text(CYCLE)
    monkeypatch.setenv(name, value)

    with pytest.raises(SystemExit) as e:
        main(["--input", str(path)])
    assert e.value.code == 2


def test_main_rejects_negative_precision(tmp_path):
    path = tmp_path / "graph.txt"
    path.write_text(CYCLE)

    with pytest.raises(SystemExit) as e:
        main(["--input", str(path), "--precision", "-1"])
    assert e.value.code == 2
