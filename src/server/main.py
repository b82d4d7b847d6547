"""
FastAPI 应用入口点。
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from src.server.config import config
from src.server.return_node import services
from src.server.return_node.router import router as return_node_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 证书无法加载时直接失败，不处理任何请求
    try:
        services.init_node(config)
    except Exception as e:
        logger.error(f"返回节点初始化失败: {e}")
        raise
    logger.info("返回节点已就绪")
    yield
    logger.info("应用关闭")


app = FastAPI(title="Out-of-band Authentication Return Node", lifespan=lifespan)

app.include_router(return_node_router, prefix="/v1")

logger.info(
    f"config: {config.model_dump_json(indent=4, exclude={'service_cert'})}"
)
