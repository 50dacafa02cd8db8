"""Loopback launcher tests."""

import pytest
from werkzeug.serving import make_server

import serve


@pytest.fixture
def launcher(app, monkeypatch):
    """serve.main against the test app, with serve_forever returning at once."""
    started = []

    def _make_server(host, port, wsgi_app, threaded=False):
        server = make_server(host, port, wsgi_app, threaded=threaded)
        server.serve_forever = lambda: started.append(server.server_port)
        return server

    monkeypatch.setattr(serve, "create_app", lambda: app)
    monkeypatch.setattr(serve, "make_server", _make_server)
    return started


def test_writes_bound_port(launcher, tmp_path):
    port_file = tmp_path / "sarupaa.port"

    assert serve.main(["--port", "0", "--port-file", str(port_file)]) == 0

    port = int(port_file.read_text(encoding="utf-8"))
    assert port > 0
    assert launcher == [port]
    assert not (tmp_path / "sarupaa.port.tmp").exists()


def test_refuses_non_loopback_host(launcher):
    with pytest.raises(SystemExit) as exc:
        serve.main(["--host", "0.0.0.0"])
    assert exc.value.code == 2
    assert launcher == []


def test_write_port_file_replaces_existing(tmp_path):
    port_file = tmp_path / "port"
    port_file.write_text("1", encoding="utf-8")

    serve.write_port_file(str(port_file), 54321)

    assert port_file.read_text(encoding="utf-8") == "54321"
