"""
带外认证返回节点的 FastAPI 路由定义。
"""

from fastapi import APIRouter, HTTPException
from loguru import logger

from . import services
from .schemas import OutcomesResponse, ProcessRequest, ProcessResponse

router = APIRouter(prefix="/return-node", tags=["Out-of-band Return Node"])


@router.post("/process", response_model=ProcessResponse)
async def process(req: ProcessRequest) -> ProcessResponse:
    """
    宿主运行时提交共享状态，获取本次轮询的分支：true / false / unanswered。
    """
    try:
        return services.process_service(req)
    except services.NodeProcessError as e:
        # 协议违规等处理错误只返回通用信息
        logger.warning(f"返回节点处理失败: {e}")
        raise HTTPException(status_code=500, detail="节点处理失败")
    except Exception as e:
        logger.error(f"返回节点发生未预期错误: {e!r}")
        raise HTTPException(status_code=500, detail="内部服务器错误")


@router.get("/outcomes", response_model=OutcomesResponse)
async def outcomes() -> OutcomesResponse:
    """列出节点的全部分支名称。"""
    return services.outcomes_service()
