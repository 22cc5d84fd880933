"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于会话层或 API 层统一捕获，并给出一次性的用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 开发者可读的错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、status 等）。
    """

    title = "Error"
    user_message = "Failed to get a response. Please try again."

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransportError(BusinessError):
    """网关调用失败的通用错误：非 2xx、响应体缺失、网络或解码错误。"""


class NetworkError(TransportError):
    """网络层错误，例如连接失败、读取中断、超时等。"""


class ApiError(TransportError):
    """网关返回非 2xx（且不是 429/402）时抛出。"""


class StreamProtocolError(TransportError):
    """事件流在结束时仍无法解析（截断的 JSON、非法 UTF-8）。"""


class RateLimitError(BusinessError):
    """网关限流（HTTP 429）。用户稍后可重试，不做自动重试。"""

    title = "Rate limit exceeded"
    user_message = "Please wait a moment before sending another message."


class QuotaExhaustedError(BusinessError):
    """网关额度耗尽（HTTP 402），本地无法恢复。"""

    title = "Credits exhausted"
    user_message = "Please add credits to continue using the AI assistant."


class PersistenceError(BusinessError):
    """历史记录存储读写失败。"""

    user_message = "Failed to update your chat history. Please try again."


class ValidationError(BusinessError):
    """参数或配置校验失败。"""
