import asyncio
from types import SimpleNamespace

import pytest

from zapier_control import config
from zapier_control.actions_client import ActionFailed, ZapierActionsClient
from zapier_control.errors import ConfigurationMissing
from zapier_control.tools import action_tools


class FakeMcpSession:
    def __init__(self, result=None, tools=()):
        self.result = result
        self.tools = list(tools)
        self.calls: list[tuple] = []

    async def list_tools(self):
        return SimpleNamespace(tools=self.tools)

    async def call_tool(self, name, arguments=None):
        self.calls.append((name, arguments))
        return self.result


def _client(session: FakeMcpSession) -> ZapierActionsClient:
    client = ZapierActionsClient(url="https://actions.zapier.test/mcp", api_key="key")
    client._session = session
    return client


def _text(text: str):
    return SimpleNamespace(type="text", text=text)


def test_missing_settings_raise_configuration_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "ZAPIER_MCP_URL", "")
    monkeypatch.setattr(config, "ZAPIER_MCP_API_KEY", "")

    with pytest.raises(ConfigurationMissing):
        ZapierActionsClient()


def test_list_available_actions_flattens_schemas() -> None:
    tools = [
        SimpleNamespace(
            name="gmail_send_email",
            description="Send an email",
            inputSchema={"properties": {"to": {"type": "string"}}, "required": ["to"]},
        ),
        SimpleNamespace(name="slack_ping", description=None, inputSchema=None),
    ]
    client = _client(FakeMcpSession(tools=tools))

    actions = asyncio.run(client.list_available_actions())

    assert actions == [
        {
            "name": "gmail_send_email",
            "description": "Send an email",
            "parameters": {"to": {"type": "string"}},
            "required": ["to"],
        },
        {"name": "slack_ping", "description": None, "parameters": {}, "required": []},
    ]


def test_execute_action_decodes_json_text() -> None:
    session = FakeMcpSession(SimpleNamespace(isError=False, content=[_text('{"id": "msg_1"}')]))

    result = asyncio.run(_client(session).execute_action("gmail_send_email", {"to": "a@b.c"}))

    assert result == {"id": "msg_1"}
    assert session.calls == [("gmail_send_email", {"to": "a@b.c"})]


def test_execute_action_keeps_plain_text() -> None:
    session = FakeMcpSession(SimpleNamespace(isError=False, content=[_text("sent")]))
    assert asyncio.run(_client(session).execute_action("slack_ping", {})) == "sent"


def test_execute_action_raises_on_remote_error() -> None:
    session = FakeMcpSession(SimpleNamespace(isError=True, content=[_text("Missing field: to")]))

    with pytest.raises(ActionFailed) as excinfo:
        asyncio.run(_client(session).execute_action("gmail_send_email", {}))

    assert excinfo.value.to_dict() == {"error": "Missing field: to", "kind": "action_failed"}


@pytest.mark.parametrize(
    "params, message",
    [("{not json", "Error: params must be valid JSON."), ("[1]", "Error: params must be a JSON object.")],
)
def test_execute_action_tool_rejects_bad_params(
    monkeypatch: pytest.MonkeyPatch, params: str, message: str
) -> None:
    def no_client(*args, **kwargs):
        raise AssertionError("client must not be created")

    monkeypatch.setattr(action_tools, "ZapierActionsClient", no_client)

    assert asyncio.run(action_tools.execute_action("slack_ping", params)) == message


def test_list_actions_tool_reports_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "ZAPIER_MCP_URL", "")

    result = asyncio.run(action_tools.list_actions())

    assert result.startswith("Error: Zapier MCP server not configured.")
