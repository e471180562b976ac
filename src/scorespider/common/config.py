"""配置管理"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# 加载 .env 文件
load_dotenv()


class BrowserConfig(BaseModel):
    """浏览器配置"""

    headless: bool = Field(default_factory=lambda: os.getenv("HEADLESS", "true").lower() == "true")
    viewport_width: int = Field(default_factory=lambda: int(os.getenv("VIEWPORT_WIDTH", "1280")))
    viewport_height: int = Field(default_factory=lambda: int(os.getenv("VIEWPORT_HEIGHT", "800")))
    slow_mo: int = Field(default_factory=lambda: int(os.getenv("SLOW_MO", "0")))
    timeout_ms: int = Field(default_factory=lambda: int(os.getenv("STEP_TIMEOUT_MS", "30000")))
    navigation_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("NAVIGATION_TIMEOUT_MS", "60000"))
    )


class TraversalConfig(BaseModel):
    """筛选项遍历配置"""

    # 选择筛选项后的基础等待时间（秒）
    settle_delay: float = Field(default_factory=lambda: float(os.getenv("SETTLE_DELAY", "2.0")))
    # 等待时间随机波动范围（秒）
    settle_jitter: float = Field(default_factory=lambda: float(os.getenv("SETTLE_JITTER", "0.5")))
    # 等待依赖筛选项稳定的上限（毫秒）
    settle_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("SETTLE_TIMEOUT_MS", "10000"))
    )
    # 读取筛选项选项的等待上限（毫秒）
    option_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("OPTION_TIMEOUT_MS", "10000"))
    )

    # ===== 重试与退避 =====
    select_max_attempts: int = Field(
        default_factory=lambda: int(os.getenv("SELECT_MAX_ATTEMPTS", "3"))
    )
    retry_base_delay: float = Field(
        default_factory=lambda: float(os.getenv("RETRY_BASE_DELAY", "2.0"))
    )
    backoff_factor: float = Field(default_factory=lambda: float(os.getenv("BACKOFF_FACTOR", "1.5")))

    # 顶层分支之间的间隔（秒），避免触发限流
    branch_delay: float = Field(default_factory=lambda: float(os.getenv("BRANCH_DELAY", "0")))
    # 顶层分支并发会话数（每个会话独立浏览器页面）
    concurrency: int = Field(default_factory=lambda: int(os.getenv("CRAWL_CONCURRENCY", "1")))


class ExtractorConfig(BaseModel):
    """扫描件结构化抽取配置"""

    api_key: str = Field(default_factory=lambda: os.getenv("VISION_API_KEY", ""))
    api_base: str = Field(
        default_factory=lambda: os.getenv("VISION_API_BASE", "https://api.siliconflow.cn/v1")
    )
    model: str = Field(
        default_factory=lambda: os.getenv("VISION_MODEL", "Qwen3-VL-235B-A22B-Instruct")
    )
    temperature: float = 0.0
    max_tokens: int = 8192
    # 同时处理的 PDF 文件数
    concurrency: int = Field(default_factory=lambda: int(os.getenv("PDF_CONCURRENCY", "1")))
    raster_dpi: int = Field(default_factory=lambda: int(os.getenv("RASTER_DPI", "300")))
    # 发送给模型前页面图片的最大边长（像素）
    max_image_size: int = Field(default_factory=lambda: int(os.getenv("MAX_IMAGE_SIZE", "5000")))
    image_dir: str = Field(default_factory=lambda: os.getenv("RASTER_IMAGE_DIR", "temp_images"))


class OutputConfig(BaseModel):
    """输出配置"""

    output_dir: str = Field(default_factory=lambda: os.getenv("OUTPUT_DIR", "output"))
    screenshot_dir: str = Field(default_factory=lambda: os.getenv("SCREENSHOT_DIR", "screenshots"))
    # 每个叶子节点截图（仅用于排查）
    debug_screenshots: bool = Field(
        default_factory=lambda: os.getenv("DEBUG_SCREENSHOTS", "false").lower() == "true"
    )


class Config(BaseModel):
    """全局配置"""

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    traversal: TraversalConfig = Field(default_factory=TraversalConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @classmethod
    def load(cls) -> "Config":
        """加载配置"""
        return cls()

    def ensure_dirs(self) -> None:
        """确保输出目录存在"""
        Path(self.output.output_dir).mkdir(parents=True, exist_ok=True)
        if self.output.debug_screenshots:
            Path(self.output.screenshot_dir).mkdir(parents=True, exist_ok=True)


# 全局配置实例
config = Config.load()
