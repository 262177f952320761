"""Toolify 核心功能单元测试。"""

import pytest

from toolbridge_svc.services.toolify import ToolifyCore, get_toolify_core, has_tool_response


@pytest.fixture
def core() -> ToolifyCore:
    return ToolifyCore()


def assistant_call(call_id: str, name: str, content=None) -> dict:
    return {
        "role": "assistant",
        "content": content,
        "tool_calls": [{"id": call_id, "type": "function", "function": {"name": name, "arguments": "{}"}}],
    }


@pytest.mark.unit
class TestHasToolResponse:
    """has_tool_response 函数测试。"""

    def test_without_tool_messages(self):
        assert not has_tool_response([{"role": "user", "content": "hi"}])

    def test_with_tool_message(self):
        assert has_tool_response([
            {"role": "user", "content": "hi"},
            {"role": "tool", "tool_call_id": "c1", "content": "ok"},
        ])

    def test_empty(self):
        assert not has_tool_response([])


@pytest.mark.unit
class TestPreprocessMessages:
    """preprocess_messages 方法测试。"""

    def test_tool_message_uses_explicit_name(self, core):
        result = core.preprocess_messages([
            {"role": "tool", "tool_call_id": "c1", "name": "get_weather", "content": "sunny"},
        ])

        assert result == [{"role": "user", "content": 'Function "get_weather" returned: sunny'}]

    def test_tool_name_resolved_from_assistant_call(self, core):
        result = core.preprocess_messages([
            assistant_call("c1", "get_weather"),
            {"role": "tool", "tool_call_id": "c1", "content": "sunny"},
        ])

        assert result[0] == {"role": "assistant", "content": "Calling function: get_weather"}
        assert result[1] == {"role": "user", "content": 'Function "get_weather" returned: sunny'}

    def test_unknown_tool_name_falls_back(self, core):
        result = core.preprocess_messages([{"role": "tool", "tool_call_id": "missing", "content": "42"}])

        assert result[0]["content"] == 'Function "tool" returned: 42'

    def test_assistant_content_preferred(self, core):
        result = core.preprocess_messages([assistant_call("c1", "get_weather", content="Checking now.")])

        assert result == [{"role": "assistant", "content": "Checking now."}]

    def test_structured_tool_content_is_serialized(self, core):
        result = core.preprocess_messages([
            {"role": "tool", "tool_call_id": "c1", "name": "calc", "content": [{"type": "text", "text": "4"}]},
        ])

        assert result[0]["content"] == 'Function "calc" returned: 4'

    def test_other_messages_pass_through(self, core):
        messages = [{"role": "system", "content": "s"}, {"role": "user", "content": "u"}]

        assert core.preprocess_messages(messages) == messages

    def test_input_is_not_mutated(self, core):
        tool = {"role": "tool", "tool_call_id": "c1", "content": "sunny"}
        messages = [assistant_call("c1", "get_weather"), tool]

        core.preprocess_messages(messages)

        assert tool == {"role": "tool", "tool_call_id": "c1", "content": "sunny"}
        assert "tool_calls" in messages[0]


@pytest.mark.unit
def test_get_toolify_core_singleton():
    assert get_toolify_core() is get_toolify_core()
