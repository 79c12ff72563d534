import io

import pytest

import retag


@pytest.fixture
def cache():
    return retag.TypeCache()


@pytest.fixture
def converter(cache):
    # Fresh cache per test so cached analogues never leak between tests.
    return retag.RetagConverter(cache=cache, abi_check=True, on_cycle="ignore", debug=False)


@pytest.fixture
def reporting_converter(cache):
    stream = io.StringIO()
    conv = retag.RetagConverter(cache=cache, error_stream=stream, on_cycle="ignore")
    return conv
