"""消息格式转换模块。

负责将 OpenAI 格式的消息转换为后端可接受的扁平格式。
后端不支持工具调用，发出的消息只保留 ``role`` 和文本 ``content``。
"""

from typing import Any

from ...models import Message


def message_to_dict(message: Message | dict[str, Any]) -> dict[str, Any]:
    """把消息转为字典，省略值为 None 的字段。"""
    if isinstance(message, Message):
        return message.model_dump(exclude_none=True)
    return dict(message)


def flatten_content(content: Any) -> str:
    """把消息内容压平成纯文本。

    多段内容只保留 ``text`` 片段，以换行连接；图片等其他片段被丢弃。

    :param content: 字符串、多段内容数组或 None
    :return: 文本内容，None 时为空字符串
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for part in content:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                texts.append(part.get("text", ""))
        return "\n".join(texts)
    return str(content)


def convert_messages(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    """转换消息格式。

    输入应已经过 :meth:`~toolbridge_svc.services.toolify.core.ToolifyCore.preprocess_messages`
    处理（tool 消息已改写为 user 消息）。

    **输出字段:** 只有 ``role`` 和 ``content``，``tools``/``tool_calls``/
    ``tool_call_id``/``name`` 永远不会发往后端。

    :param messages: 字典形式的消息列表
    :type messages: list[dict[str, Any]]
    :return: 扁平化后的消息列表
    :rtype: list[dict[str, str]]

    .. code-block:: python

       convert_messages([
           {"role": "user", "content": [
               {"type": "text", "text": "第一段"},
               {"type": "image_url", "image_url": {"url": "data:image/png;base64,..."}},
               {"type": "text", "text": "第二段"},
           ]},
       ])
       # [{"role": "user", "content": "第一段\\n第二段"}]
    """
    return [
        {"role": message.get("role", "user"), "content": flatten_content(message.get("content"))}
        for message in messages
    ]
