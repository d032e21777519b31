from concerthall import main


def test_run_uses_configured_host_and_port(monkeypatch):
    calls = []
    monkeypatch.setattr(main.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.setattr(main.settings, "HOST", "127.0.0.1")
    monkeypatch.setattr(main.settings, "PORT", 9100)

    main.run()

    assert calls == [("concerthall.main:app", {"host": "127.0.0.1", "port": 9100})]
