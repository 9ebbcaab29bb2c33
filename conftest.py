import pytest

SETTINGS_ENV_VARS = ("EXPR_CALC_MAX_DEPTH", "EXPR_CALC_LOG_LEVEL")


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so teardown also removes whatever load_dotenv writes
    for name in SETTINGS_ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when == "call":
        print(f"TEST: {item.name} - {'PASSED' if report.passed else 'FAILED'}")
