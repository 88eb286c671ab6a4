"""
Tests for solver settings.
"""

import pytest


def test_defaults():
    from lqocp import IPMSettings

    settings = IPMSettings()
    assert settings.max_iters == 20
    assert settings.tolerance == 1e-8
    assert settings.mu_max == 1e-12
    assert settings.alpha_min == 1e-8
    assert settings.mu0 == 2.0
    assert not settings.verbose


def test_from_params_aliases():
    from lqocp import IPMSettings

    settings = IPMSettings.from_params({"max_iterations": 50, "tol": 1e-6})
    assert settings.max_iters == 50
    assert settings.tolerance == 1e-6


def test_from_params_passthrough():
    from lqocp import IPMSettings

    settings = IPMSettings(max_iters=7)
    assert IPMSettings.from_params(settings) is settings
    assert IPMSettings.from_params(None) == IPMSettings()


def test_unknown_key():
    from lqocp import IPMSettings, InvalidInputError

    with pytest.raises(InvalidInputError, match="unknown setting"):
        IPMSettings.from_params({"max_iter": 10})


@pytest.mark.parametrize("kwargs", [
    {"max_iters": 0},
    {"tolerance": -1.0},
    {"alpha_min": 1.5},
    {"regularization": -1e-3},
])
def test_invalid_values(kwargs):
    from lqocp import IPMSettings, InvalidInputError

    with pytest.raises(InvalidInputError):
        IPMSettings(**kwargs)


def test_to_dict():
    from lqocp import IPMSettings

    d = IPMSettings(mu0=1.0).to_dict()
    assert d["mu0"] == 1.0
    assert set(d) >= {"max_iters", "tolerance", "mu_max", "alpha_min", "mu0"}
