import sys, os
import pytest

target_path = os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)), "../.."))
if target_path not in sys.path:
    sys.path.insert(0, target_path)

from tooling.curl_parser import CurlParser, SecretResolver


@pytest.fixture(scope="session")
def parser() -> CurlParser:
    # Secrets come from an explicit mapping so tests never depend on the real environment
    secrets = SecretResolver(mapping={"API_TOKEN": "tok-123"}, auto_dotenv=False)
    return CurlParser(secrets=secrets, template_cache_size=16)
