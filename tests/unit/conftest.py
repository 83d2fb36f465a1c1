import pytest

from fakes import EchoTool


@pytest.fixture
def echo_tool():
    return EchoTool()
