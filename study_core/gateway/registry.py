"""网关模型配置。

将“逻辑模型名”与“网关实际模型名”解耦：

- 逻辑名（logical_name）：代码里使用的统一名称，例如 "study-chat"。
- provider_model：网关实际提供的模型 ID，例如 "google/gemini-2.5-flash"。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置。"""

from dataclasses import dataclass
from typing import Dict


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    default_temperature: float


@dataclass
class GatewayConfig:
    name: str
    base_url: str
    models: Dict[str, ModelConfig]


GATEWAY_CONFIG = GatewayConfig(
    name="lovable",
    base_url="https://ai.gateway.lovable.dev/v1",
    models={
        "study-chat": ModelConfig(
            logical_name="study-chat",
            provider_model="google/gemini-2.5-flash",
            default_temperature=0.7,
        ),
        "explain": ModelConfig(
            logical_name="explain",
            provider_model="google/gemini-2.5-flash",
            default_temperature=0.5,
        ),
    },
)


def get_model_config(logical_name: str) -> ModelConfig:
    """根据逻辑名获取 ModelConfig，名称不区分大小写。"""

    key = logical_name.lower()
    for k, cfg in GATEWAY_CONFIG.models.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown model: {logical_name!r}")
