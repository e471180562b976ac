"""异常类单元测试"""

import pytest

from scorespider.common.exceptions import (
    BrowserError,
    CheckpointError,
    ClassificationFailure,
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    ExtractionError,
    ExtractorResponseError,
    FacetDependencyError,
    FormatRepairFailure,
    PageLoadError,
    PageScriptError,
    ProfileNotFoundError,
    ResourceFailure,
    ScoreSpiderError,
    SelectionFailure,
    StorageError,
    TimeoutFailure,
    TraversalError,
)


class TestExceptionHierarchy:
    """异常类层次结构测试"""

    def test_base_exception(self):
        with pytest.raises(ScoreSpiderError):
            raise ScoreSpiderError("基础错误")

    @pytest.mark.parametrize(
        "error, parent",
        [
            (SelectionFailure("province", "北京"), TraversalError),
            (TimeoutFailure("等待", 100), TraversalError),
            (ClassificationFailure("x"), TraversalError),
            (FacetDependencyError("province", ["year"]), TraversalError),
            (PageScriptError("页面脚本执行", "TypeError"), TraversalError),
            (ResourceFailure("closed"), BrowserError),
            (PageLoadError("https://example.com"), BrowserError),
            (FormatRepairFailure("{"), ExtractionError),
            (ExtractorResponseError("空响应"), ExtractionError),
            (CheckpointError("北京"), StorageError),
            (ConfigValidationError("x"), ConfigError),
            (ProfileNotFoundError("pku"), ConfigError),
            (ConfigFileNotFoundError("a.yaml"), ConfigError),
        ],
    )
    def test_inheritance(self, error, parent):
        assert isinstance(error, parent)
        assert isinstance(error, ScoreSpiderError)


class TestExceptionMessages:
    """异常消息测试"""

    def test_selection_failure(self):
        error = SelectionFailure("category", "综合改革")
        assert error.facet_key == "category"
        assert error.label == "综合改革"
        assert "category=综合改革" in str(error)

    def test_timeout_failure(self):
        error = TimeoutFailure("等待页面稳定", 800, "networkidle")
        assert error.timeout_ms == 800
        assert "800ms" in str(error)
        assert "networkidle" in str(error)

    def test_page_load_error(self):
        error = PageLoadError("https://example.com", "超时")
        assert "超时" in str(error)
        assert error.url == "https://example.com"

    def test_format_repair_failure_preview(self):
        raw = "x" * 500
        error = FormatRepairFailure(raw)
        assert error.raw_text == raw
        assert len(str(error)) < 200

    def test_extractor_response_error(self):
        error = ExtractorResponseError("空响应", raw_response="")
        assert error.raw_response == ""

    def test_facet_dependency_error(self):
        error = FacetDependencyError("category", ["year", "province"])
        assert error.missing == ["year", "province"]
        assert "year, province" in str(error)
