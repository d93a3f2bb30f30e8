"""错误分类：边界错误、配置错误、下游服务错误与投递错误。

异常消息会原样拼进用户可见的失败提示，因此只能包含可公开的原因描述，
不得带入凭据或堆栈信息。
"""

from __future__ import annotations


class TaskBridgeError(Exception):
    """所有业务异常的基类。"""


class AuthenticationError(TaskBridgeError):
    """请求签名缺失或校验失败。"""


class MalformedPayload(TaskBridgeError):
    """请求体无法解析或结构不受支持。"""


class ConfigurationError(TaskBridgeError):
    """无法解析出可用的投递位置或选项取值非法。"""


class ProviderError(TaskBridgeError):
    """下游服务调用失败或返回不合约数据。"""

    service: str = "provider"


class ContextSearchError(ProviderError):
    service = "github"


class ExtractionError(ProviderError):
    service = "openai"


class SinkError(ProviderError):
    service = "asana"


class DeliveryError(TaskBridgeError):
    """最终回执（确认或编辑）发送失败，只记录日志。"""
