"""模型网关集成层。

- base: 会话层依赖的 ModelGateway 协议。
- registry: 逻辑模型名与网关模型 ID 的映射。
- client: 基于 httpx 的 OpenAI 兼容流式客户端。
"""

from study_core.config.settings import settings
from study_core.gateway.base import ModelGateway
from study_core.gateway.client import GatewayClient


def create_gateway(transport=None) -> GatewayClient:
    """使用全局配置创建网关客户端。"""

    return GatewayClient(settings, transport=transport)


__all__ = ["GatewayClient", "ModelGateway", "create_gateway"]
