"""自定义异常类

定义项目中使用的所有自定义异常，用于更精细的错误处理。

遍历引擎内部的分支级错误（选择失败、等待超时、表格识别失败、格式修复失败）
只在最小作用域内被捕获并转换为跳过；只有 ResourceFailure 会终止整次遍历。
"""

from __future__ import annotations


class ScoreSpiderError(Exception):
    """ScoreSpider 基础异常类

    所有自定义异常的基类。
    """
    pass


# ============================================================================
# 遍历相关
# ============================================================================


class TraversalError(ScoreSpiderError):
    """筛选项遍历相关错误的基类"""
    pass


class SelectionFailure(TraversalError):
    """目标选项当前不可选

    通常是选项集合已过期，或与页面刷新发生竞争。
    """
    def __init__(self, facet_key: str, label: str, reason: str = "选项当前不可选"):
        super().__init__(f"{reason}: {facet_key}={label}")
        self.facet_key = facet_key
        self.label = label
        self.reason = reason


class TimeoutFailure(TraversalError):
    """页面未在限定时间内稳定"""
    def __init__(self, operation: str, timeout_ms: int, detail: str = ""):
        message = f"{operation} 超时 ({timeout_ms}ms)"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.operation = operation
        self.timeout_ms = timeout_ms


class ClassificationFailure(TraversalError):
    """无法读取或识别当前结果视图

    不一定是错误，叶子节点可能本来就没有数据。
    """
    pass


class PageScriptError(TraversalError):
    """页面脚本或选择器执行失败，但会话仍然可用

    例如页面刷新时脚本读到 null，或院校配置中的选择器写错。
    """
    def __init__(self, operation: str, detail: str = ""):
        message = f"{operation} 失败"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.operation = operation


class FacetDependencyError(TraversalError):
    """在依赖筛选项选定之前读取了筛选项"""
    def __init__(self, facet_key: str, missing: list[str]):
        super().__init__(f"筛选项 {facet_key} 的依赖尚未选定: {', '.join(missing)}")
        self.facet_key = facet_key
        self.missing = missing


# ============================================================================
# 浏览器相关
# ============================================================================


class BrowserError(ScoreSpiderError):
    """浏览器相关错误的基类"""
    pass


class ResourceFailure(BrowserError):
    """浏览器或会话已不可用

    致命错误：遍历会先刷写已缓冲的结果，然后向上抛出。
    """
    pass


class PageLoadError(BrowserError):
    """页面加载失败

    当页面无法在超时时间内加载完成时抛出。
    """
    def __init__(self, url: str, message: str = "页面加载失败"):
        super().__init__(f"{message}: {url}")
        self.url = url


# ============================================================================
# 扫描件抽取相关
# ============================================================================


class ExtractionError(ScoreSpiderError):
    """结构化抽取相关错误的基类"""
    pass


class FormatRepairFailure(ExtractionError):
    """抽取结果在修复之后仍无法转换为目标结构

    对应记录会被丢弃，不影响整批处理。
    """
    def __init__(self, raw_text: str, message: str = "记录格式无法修复"):
        preview = raw_text if len(raw_text) <= 120 else raw_text[:120] + "..."
        super().__init__(f"{message}: {preview}")
        self.raw_text = raw_text


class ExtractorResponseError(ExtractionError):
    """抽取模型返回了无法识别的响应"""
    def __init__(self, message: str, raw_response: str | None = None):
        super().__init__(message)
        self.raw_response = raw_response


# ============================================================================
# 存储相关
# ============================================================================


class StorageError(ScoreSpiderError):
    """存储相关错误的基类"""
    pass


class CheckpointError(StorageError):
    """向已经写出检查点的分支追加记录"""
    def __init__(self, branch_key: str):
        super().__init__(f"分支已写出检查点，不能再追加记录: {branch_key}")
        self.branch_key = branch_key


# ============================================================================
# 配置相关
# ============================================================================


class ConfigError(ScoreSpiderError):
    """配置相关错误"""
    pass


class ConfigFileNotFoundError(ConfigError):
    """配置文件未找到"""
    def __init__(self, path: str):
        super().__init__(f"配置文件未找到: {path}")
        self.path = path


class ConfigValidationError(ConfigError):
    """配置验证失败"""
    pass


class ProfileNotFoundError(ConfigError):
    """未注册的院校"""
    def __init__(self, slug: str):
        super().__init__(f"未找到院校配置: {slug}")
        self.slug = slug
