#!/usr/bin/env python3
"""Toolbridge 启动脚本。

默认值全部来自 :class:`~toolbridge_svc.config.AppConfig`（环境变量或 ``.env``），
命令行只覆盖监听地址、端口、进程数和热重载::

    python main.py
    python main.py --port 8080 --workers 4
    TARGET_API_URL=http://localhost:11434/v1/chat/completions python main.py --reload
"""

import argparse
import subprocess
import sys
from pathlib import Path

# 未安装时也能直接运行
sys.path.insert(0, str(Path(__file__).parent / "src"))

from toolbridge_svc.config import AppConfig, get_settings

ASGI_TARGET = "toolbridge_svc.asgi:app"


def parse_args(settings: AppConfig, argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Toolbridge 工具调用代理服务（Granian）")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--workers", type=int, default=settings.workers)
    parser.add_argument("--reload", action="store_true", help="代码变更时自动重启（开发用）")
    return parser.parse_args(argv)


def build_command(settings: AppConfig, args: argparse.Namespace) -> list[str]:
    """拼出 granian 命令行，日志级别跟随 ``LOG_LEVEL``。"""
    command = [
        "granian",
        "--interface", "asgi",
        "--host", args.host,
        "--port", str(args.port),
        "--workers", str(args.workers),
        "--log-level", settings.log_level.lower(),
    ]
    if args.reload:
        command.append("--reload")
    command.append(ASGI_TARGET)
    return command


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    args = parse_args(settings, argv)
    command = build_command(settings, args)

    target = settings.target_api_url or "未配置（请设置 TARGET_API_URL）"
    print(f"Toolbridge 监听 http://{args.host}:{args.port}，后端: {target}，默认模型: {settings.target_model}")

    try:
        return subprocess.run(command, check=False).returncode
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
