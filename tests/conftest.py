"""测试公共夹具。"""

from __future__ import annotations

import os
import tempfile

# 应用模块导入时即初始化日志，先把日志目录指向临时位置。
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="taskbridge-logs-"))

import pytest

from fakes import CallLog
from taskbridge.domain.models import TaskDestination


@pytest.fixture
def call_log() -> CallLog:
    return CallLog()


@pytest.fixture
def default_destination() -> TaskDestination:
    return TaskDestination(project_gid="PROJECT", section_ref="111")
