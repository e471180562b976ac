"""院校配置

每个院校一份声明式配置：入口 URL、学校名称、筛选项链、表格版式、
记录默认值、页面文本提示与检查点筛选项。遍历引擎只解释配置，
不为单个院校写分支逻辑。

内置院校：
- bjtu   北京交通大学（年份 -> 省份 -> 校区 -> 计划类型 -> 科类 -> 专业组）
- bupt   北京邮电大学（省份 -> 年份 -> 招生类型 -> 科类）
- buaa   北京航空航天大学（省份 -> 年份 -> 科类 -> 类型）
- xidian 西安电子科技大学（省份 -> 年份）
- bnu    北京师范大学（扫描件 PDF）
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from ..common.constants import DEFAULT_SPECIALTY_GROUP_RULES
from ..common.exceptions import (
    ConfigFileNotFoundError,
    ConfigValidationError,
    ProfileNotFoundError,
)
from ..common.logger import get_logger
from ..facets.models import FacetDefinition, FacetSpec
from ..tables.layouts import BUILTIN_LAYOUTS, LayoutDefinition, LayoutRegistry

logger = get_logger(__name__)


class InstitutionProfile(BaseModel):
    """单个院校的抓取配置"""

    slug: str = Field(..., description="院校标识，如 bjtu")
    school: str = Field(..., description="写入记录的学校名称")
    source: Literal["html", "pdf"] = "html"
    url: str = ""

    facets: FacetSpec = Field(default_factory=FacetSpec)
    layouts: list[LayoutDefinition] = Field(default_factory=list)
    defaults: dict[str, str] = Field(default_factory=dict, description="记录字段默认值")
    hint_patterns: dict[str, str] = Field(default_factory=dict, description="字段 -> 页面文本正则")
    specialty_group_rules: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SPECIALTY_GROUP_RULES)
    )

    checkpoint_facet: str | None = None
    output_name: str = ""
    # 页面加载后等待出现的选择器
    ready_selector: str | None = None

    @model_validator(mode="after")
    def _check(self) -> "InstitutionProfile":
        if self.checkpoint_facet and self.facets.get(self.checkpoint_facet) is None:
            raise ConfigValidationError(
                f"院校 {self.slug} 的检查点筛选项不存在: {self.checkpoint_facet}"
            )
        if self.source == "html" and not self.url:
            raise ConfigValidationError(f"院校 {self.slug} 缺少 url")
        return self

    @property
    def resolved_output_name(self) -> str:
        return self.output_name or f"{self.slug}_admission_scores"

    @property
    def resolved_checkpoint_facet(self) -> str | None:
        if self.checkpoint_facet:
            return self.checkpoint_facet
        return self.facets.facets[0].key if len(self.facets) else None

    def layout_registry(self) -> LayoutRegistry:
        return LayoutRegistry(self.layouts)


def _link_facet(key: str, name: str, param: str, **kwargs: Any) -> FacetDefinition:
    """``.filter dd[data-param=...] a`` 形态的链接筛选项"""
    return FacetDefinition(
        key=key,
        name=name,
        container=f'.filter dd[data-param="{param}"]',
        **kwargs,
    )


_XIDIAN_PROVINCES = [
    "北京", "上海", "陕西", "天津", "河北", "山西", "内蒙古", "辽宁",
    "吉林", "黑龙江", "江苏", "浙江", "安徽", "福建", "江西", "山东",
    "河南", "湖北", "湖南", "广东", "广西", "海南", "重庆", "四川",
    "贵州", "云南", "西藏", "甘肃", "青海", "宁夏", "新疆", "全国",
]


def _builtin_profiles() -> dict[str, InstitutionProfile]:
    layouts = BUILTIN_LAYOUTS

    bjtu = InstitutionProfile(
        slug="bjtu",
        school="北京交通大学",
        url="https://zsw.bjtu.edu.cn/zsw/lnfs.html",
        ready_selector='.filter dd[data-param="zsnf"] a',
        facets=FacetSpec(
            facets=[
                _link_facet("year", "年份", "zsnf"),
                _link_facet("province", "省份", "ssmc", depends_on=["year"]),
                FacetDefinition(
                    key="campus",
                    name="校区",
                    required=False,
                    depends_on=["province"],
                    widget="text_region",
                    container="body",
                    pattern=r"校区：([\s\S]*?)计划类型：",
                    click_selector='.filter dd[data-param="xq"] a',
                ),
                _link_facet("admissionType", "计划类型", "zslx", depends_on=["province"]),
                _link_facet(
                    "category", "科类", "klmc", required=False, depends_on=["admissionType"]
                ),
                _link_facet(
                    "specialtyGroup",
                    "专业组/科目类/单设志愿",
                    "zyzm",
                    required=False,
                    depends_on=["category"],
                ),
            ]
        ),
        layouts=[layouts["general_scores"], layouts["by_major_rank"]],
        defaults={"campus": "校本部"},
        hint_patterns={"specialtyGroup": r"专业组/科目类/单设志愿：[ \t]*([^\n\r]+)"},
        checkpoint_facet="province",
    )

    bupt = InstitutionProfile(
        slug="bupt",
        school="北京邮电大学",
        url="https://zscx.bupt.edu.cn/zsw/lnfs.html",
        ready_selector='.filter dd[data-param="ssmc"] a',
        facets=FacetSpec(
            facets=[
                _link_facet("province", "省份", "ssmc"),
                _link_facet("year", "年份", "zsnf", depends_on=["province"]),
                _link_facet("admissionType", "招生类型", "zslx", depends_on=["year"]),
                _link_facet(
                    "category", "科类", "klmc", required=False, depends_on=["admissionType"]
                ),
            ]
        ),
        layouts=[layouts["general"], layouts["by_major_compact"]],
    )

    buaa = InstitutionProfile(
        slug="buaa",
        school="北京航空航天大学",
        url="https://lqcx.buaa.edu.cn/static/front/buaa/basic/html_web/lnfs.html",
        ready_selector=".province-area a",
        facets=FacetSpec(
            facets=[
                FacetDefinition(key="province", name="省份", container=".province-area"),
                FacetDefinition(
                    key="year", name="年份", container=".year-area", depends_on=["province"]
                ),
                FacetDefinition(
                    key="category", name="科类", container=".category-area", depends_on=["year"]
                ),
                FacetDefinition(
                    key="admissionType",
                    name="类型",
                    container=".type-area",
                    required=False,
                    depends_on=["category"],
                ),
            ]
        ),
        layouts=[layouts["scores_table"]],
        defaults={"admissionType": "普通"},
    )

    xidian = InstitutionProfile(
        slug="xidian",
        school="西安电子科技大学",
        url="https://zsxc.xidian.edu.cn/auth/zsdata/lqxx/#/lnfs",
        facets=FacetSpec(
            facets=[
                FacetDefinition(
                    key="province",
                    name="省份",
                    container="body",
                    option_selector="a, button",
                    include=_XIDIAN_PROVINCES,
                    exclude=["青海", "宁夏", "新疆"],
                ),
                FacetDefinition(
                    key="year",
                    name="年份",
                    container="body",
                    option_selector="a, button",
                    include=["2024", "2023", "2022", "2021"],
                    depends_on=["province"],
                ),
            ]
        ),
        layouts=[layouts["plain_table"]],
    )

    bnu = InstitutionProfile(
        slug="bnu",
        school="北京师范大学",
        source="pdf",
        facets=FacetSpec(
            facets=[
                FacetDefinition(key="year", name="年份", container=""),
                FacetDefinition(key="province", name="省市", container="", depends_on=["year"]),
            ]
        ),
        defaults={"campus": "北京校区", "admissionType": "普通类"},
        checkpoint_facet="province",
    )

    return {profile.slug: profile for profile in (bjtu, bupt, buaa, xidian, bnu)}


_PROFILES: dict[str, InstitutionProfile] = _builtin_profiles()


def register_profile(profile: InstitutionProfile) -> None:
    """注册（或覆盖）院校配置"""
    _PROFILES[profile.slug] = profile


def get_profile(slug: str) -> InstitutionProfile:
    try:
        return _PROFILES[slug]
    except KeyError:
        raise ProfileNotFoundError(slug) from None


def list_profiles() -> list[InstitutionProfile]:
    return list(_PROFILES.values())


def load_profile_yaml(path: str | Path) -> InstitutionProfile:
    """从 YAML 文件加载院校配置

    ``layouts`` 中的字符串项引用内置版式，字典项为自定义版式；
    ``facets`` 可以直接写成筛选项列表。

    Raises:
        ConfigFileNotFoundError: 文件不存在
        ConfigValidationError: 内容不合法
    """
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigFileNotFoundError(str(file_path))

    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"YAML 解析失败 {file_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigValidationError(f"院校配置必须是映射: {file_path}")

    if isinstance(data.get("facets"), list):
        data["facets"] = {"facets": data["facets"]}

    layouts: list[Any] = []
    for item in data.get("layouts") or []:
        if isinstance(item, str):
            if item not in BUILTIN_LAYOUTS:
                raise ConfigValidationError(f"未知的内置版式: {item}")
            layouts.append(BUILTIN_LAYOUTS[item])
        else:
            layouts.append(item)
    data["layouts"] = layouts

    try:
        profile = InstitutionProfile.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(f"院校配置不合法 {file_path}: {e}") from e

    logger.info(f"[配置] 已加载院校配置 {profile.slug} <- {file_path}")
    return profile
