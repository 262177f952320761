"""Toolbridge Service - 函数调用代理服务。

本包提供了一个FastAPI应用，让只会输出自由文本的后端语言模型
对外表现为支持 OpenAI tools / tool_calls 协议的接口，
支持流式和非流式响应。

主要模块：
    - app: FastAPI应用实例和配置
    - routes: API路由定义
    - chat_service: 后端目标解析与请求分发
    - services.toolify: 提示词编译、工具调用提取、流式检测
    - services.chat: 后端客户端、轮次编排、响应构建
    - services.tools: 工具执行约定（由调用方使用）
    - config: 应用配置管理
    - logger: 结构化日志配置
    - models: 数据模型定义
"""

__version__ = "0.1.0"
