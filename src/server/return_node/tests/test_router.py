"""
测试 router.py 模块。
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient
from unittest.mock import patch

from src.server.return_node import services
from src.server.return_node.router import router
from src.server.return_node.schemas import NodeOutcome, ProcessRequest, ProcessResponse


# 创建一个 FastAPI 应用并包含我们的路由
app = FastAPI()
app.include_router(router)

client = TestClient(app)


def test_process_endpoint():
    """测试轮询端点"""
    req_data = {"shared_state": {"oob_response_id": "resp-1", "username": "alice"}}

    with patch("src.server.return_node.services.process_service") as mock_service:
        mock_service.return_value = ProcessResponse(outcome=NodeOutcome.UNANSWERED)

        response = client.post("/return-node/process", json=req_data)

        assert response.status_code == 200
        assert response.json() == {"outcome": "unanswered"}
        mock_service.assert_called_once_with(ProcessRequest(**req_data))


def test_process_endpoint_validation_error():
    response = client.post("/return-node/process", json={})
    assert response.status_code == 422


def test_process_endpoint_node_error_hides_details():
    """处理错误只返回通用信息"""
    with patch("src.server.return_node.services.process_service") as mock_service:
        mock_service.side_effect = services.NodeProcessError("节点处理失败: protocol_violation")

        response = client.post("/return-node/process", json={"shared_state": {}})

        assert response.status_code == 500
        assert response.json() == {"detail": "节点处理失败"}


def test_process_endpoint_unexpected_error():
    with patch("src.server.return_node.services.process_service") as mock_service:
        mock_service.side_effect = RuntimeError("返回节点尚未初始化")

        response = client.post("/return-node/process", json={"shared_state": {}})

        assert response.status_code == 500
        assert response.json() == {"detail": "内部服务器错误"}


def test_outcomes_endpoint():
    response = client.get("/return-node/outcomes")
    assert response.status_code == 200
    assert response.json() == {"outcomes": ["true", "false", "unanswered"]}
