import importlib.util
from pathlib import Path

SCRIPTS = Path(__file__).resolve().parents[1] / "scripts"


def load_script(name):
    spec = importlib.util.spec_from_file_location(name, SCRIPTS / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_run_server_starts_uvicorn_with_app(monkeypatch):
    run_server = load_script("run_server")
    calls = []
    monkeypatch.setattr(run_server.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    run_server.main(["--port", "9001"])

    assert calls == [("chefstacks.app.main:app", {"host": "0.0.0.0", "port": 9001, "reload": False})]


def test_extract_url_arguments():
    extract_url = load_script("extract_url")
    args = extract_url.parse_args(["https://youtu.be/abc123DEF45", "--skip-preflight"])
    assert args.url == "https://youtu.be/abc123DEF45"
    assert args.skip_preflight is True
    assert args.preflight_only is False
