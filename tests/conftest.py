import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure repository root is on sys.path before importing project modules.
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

from univai_mcp.config import GatewayConfig, WalletConfig  # noqa: E402
from univai_mcp.context import create_context  # noqa: E402
from univai_mcp.metrics import default_metrics  # noqa: E402

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
SECRET = "test-confirmation-secret"
SIGNED_URL = "https://project.supabase.co/storage/v1/object/sign/agent-artifacts/a.txt?token=t"


class StubSupabase:
    """Records calls and replays canned results (or raises them if they are exceptions)."""

    def __init__(self, rpc_results=None, function_results=None, signed_url=SIGNED_URL):
        self.rpc_results = dict(rpc_results or {})
        self.function_results = dict(function_results or {})
        self.signed_url = signed_url
        self.rpc_calls = []
        self.function_calls = []
        self.storage_calls = []
        self.closed = False

    async def rpc(self, fn, params=None):
        self.rpc_calls.append({"fn": fn, "params": params})
        result = self.rpc_results.get(fn)
        if isinstance(result, Exception):
            raise result
        return result

    async def invoke_function(self, name, body=None, headers=None):
        self.function_calls.append({"name": name, "body": body, "headers": headers})
        result = self.function_results.get(name)
        if isinstance(result, Exception):
            raise result
        return result

    async def create_signed_url(self, bucket, path, expires_in, *, download=False):
        self.storage_calls.append(
            {"op": "sign", "bucket": bucket, "path": path, "expiresIn": expires_in, "download": download}
        )
        if isinstance(self.signed_url, Exception):
            raise self.signed_url
        return self.signed_url

    async def upload(self, bucket, path, content, *, content_type="application/octet-stream", upsert=False):
        self.storage_calls.append(
            {
                "op": "upload",
                "bucket": bucket,
                "path": path,
                "content": content,
                "contentType": content_type,
                "upsert": upsert,
            }
        )
        return {"Key": f"{bucket}/{path}"}

    async def aclose(self):
        self.closed = True


@pytest.fixture(autouse=True)
def reset_metrics():
    default_metrics.reset()
    yield
    default_metrics.reset()


@pytest.fixture
def mock_config():
    return GatewayConfig(mode="mock", wallet=WalletConfig(confirmation_secret=SECRET))


@pytest.fixture
def live_config():
    return GatewayConfig(
        mode="live",
        bearer_token="live-token",
        wallet=WalletConfig(confirmation_secret=SECRET),
    )


@pytest.fixture
def stub_supabase():
    return StubSupabase()


@pytest.fixture
def make_context(stub_supabase):
    def _make(config, supabase=None, correlation_id="corr-test", now=FIXED_NOW, http=None):
        return create_context(
            config,
            stub_supabase if supabase is None else supabase,
            correlation_id,
            now=lambda: now,
            http=http,
        )

    return _make
