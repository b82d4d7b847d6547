"""
配置加载模块：支持 .env、环境变量、工作目录 config.json（或 CONFIG_FILE 指定）多来源合并。
公开接口：
- Config: 读取配置的设置类
- config: Config 的单例实例
内部方法：
- Config.settings_customise_sources: 自定义配置来源顺序
- Config.normalize_policy: 规范化存储错误处理策略
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Tuple

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource


class Config(BaseSettings):
    # 服务方证书（PEM 文本，或 Base64 编码的 PEM/DER），用于验证带外响应的签名
    service_cert: SecretStr = SecretStr("")
    # 共享状态中保存响应 ID 的键名
    response_id_key: str = "oob_response_id"
    # 查询待定响应失败时的处理方式：reject 映射为拒绝，raise 作为处理错误抛出
    store_error_policy: Literal["reject", "raise"] = "reject"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="RETURN_NODE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("store_error_policy", mode="before")
    @classmethod
    def normalize_policy(cls, value: Any) -> Any:
        """允许大小写与首尾空白不一致的策略值。"""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """自定义配置来源顺序：入参 > 环境变量 > .env > config.json > secrets。"""

        class JsonFileSettingsSource(PydanticBaseSettingsSource):
            """从工作目录的 config.json（或 CONFIG_FILE 指定路径）加载配置。"""

            def __init__(self, settings_cls):
                super().__init__(settings_cls)
                self._data: Dict[str, Any] | None = None

            def _load(self) -> Dict[str, Any]:
                if self._data is None:
                    cfg_path = os.environ.get("CONFIG_FILE")
                    path = Path(cfg_path) if cfg_path else Path.cwd() / "config.json"
                    self._data = {}
                    if path.exists():
                        try:
                            loaded = json.loads(path.read_text(encoding="utf-8"))
                            if isinstance(loaded, dict):
                                self._data = loaded
                        except (OSError, ValueError):
                            self._data = {}
                return self._data

            def __call__(self) -> Dict[str, Any]:
                return dict(self._load())

            def get_field_value(self, field, field_name):  # type: ignore[override]
                data = self._load()
                if field_name in data:
                    return data[field_name], field_name, False
                return None, field_name, False

        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonFileSettingsSource(settings_cls),
            file_secret_settings,
        )


config = Config()
