"""Import sanity tests.

These lightweight tests verify that the WSGI entrypoint and core modules
can be imported without errors: the minimum bar for a deploy.
"""

import pytest


def test_app_module_imports():
    """The Flask app module must import without errors."""
    import app  # noqa: F401


def test_wsgi_app_object():
    """Gunicorn's 'app:app' entrypoint must resolve to a Flask instance."""
    from app import app as flask_app
    assert flask_app is not None
    assert hasattr(flask_app, "route"), "app object is not a Flask instance"


def test_scoring_imports():
    """Core symbols used by app.py must be importable."""
    from habitability import HabitabilityScorer, calculate_habitability_score, ScoreResult
    assert HabitabilityScorer is not None
    assert calculate_habitability_score is not None
    assert ScoreResult is not None


def test_gunicorn_config_imports():
    import gunicorn_config
    assert gunicorn_config.preload_app is True
    assert callable(gunicorn_config.post_fork)


def test_default_port_matches_gunicorn(monkeypatch):
    import importlib

    import gunicorn_config
    from app import DEFAULT_PORT

    monkeypatch.delenv("PORT", raising=False)
    importlib.reload(gunicorn_config)
    assert gunicorn_config.bind == f"0.0.0.0:{DEFAULT_PORT}"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
