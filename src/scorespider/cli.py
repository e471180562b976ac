"""CLI 入口"""

from __future__ import annotations

import asyncio

import typer
from rich.panel import Panel
from rich.table import Table

from .common.config import config
from .common.exceptions import ScoreSpiderError
from .common.logger import console, get_logger, setup_package_file_logging
from .common.storage import JsonRecordSink, ProgressPersistence
from .crawler import CrawlReport, ResultAggregator, run_institution
from .crawler.runner import restore_progress
from .extraction import (
    BatchSummary,
    PdfBatchProcessor,
    PdftoppmRasterizer,
    VisionRecordExtractor,
    filter_pdf_files,
    scan_pdf_directory,
)
from .institutions import InstitutionProfile, get_profile, list_profiles, load_profile_yaml

logger = get_logger(__name__)

app = typer.Typer(
    name="scorespider",
    help="ScoreSpider CLI - 高校历年录取分数抓取",
    add_completion=False,
)


def _resolve_profile(institution: str, profile_file: str | None) -> InstitutionProfile:
    if profile_file:
        return load_profile_yaml(profile_file)
    return get_profile(institution)


def _print_crawl_report(report: CrawlReport, output_dir: str) -> None:
    table = Table(title=f"{report.institution} 抓取结果")
    table.add_column("项目", style="cyan")
    table.add_column("数值", style="green")
    table.add_row("叶子节点", str(report.leaf_visits))
    table.add_row("记录数", str(report.records))
    table.add_row("已写出分支", str(report.aggregate.get("checkpointed_branches", 0)))
    table.add_row("续跑跳过分支", str(len(report.resumed_branches)))
    table.add_row("分支失败", str(report.failures))
    table.add_row("输出文件", f"{output_dir}/{report.output_name}.jsonl")
    console.print(table)

    failures = [failure for state in report.states for failure in state.failures]
    if failures:
        detail = Table(title="失败分支")
        detail.add_column("阶段")
        detail.add_column("路径")
        detail.add_column("错误")
        for failure in failures[:20]:
            path = ", ".join(f"{k}={v}" for k, v in failure.path.items())
            if failure.facet_key:
                path += f" -> {failure.facet_key}={failure.label or '?'}"
            detail.add_row(failure.stage, path, f"{failure.error_type}: {failure.message}")
        console.print(detail)
        if len(failures) > 20:
            console.print(f"  ... 还有 {len(failures) - 20} 条")


def _print_batch_summary(summary: BatchSummary) -> None:
    table = Table(title="扫描件处理结果")
    table.add_column("项目", style="cyan")
    table.add_column("数值", style="green")
    table.add_row("成功", str(summary.successful))
    table.add_row("失败", str(summary.failed))
    table.add_row("跳过（已完成）", str(summary.skipped))
    table.add_row("记录数", str(summary.records))
    table.add_row("丢弃（无法修复）", str(summary.dropped))
    console.print(table)
    for failure in summary.failures:
        console.print(f"[red]  {failure}[/red]")


@app.command("crawl")
def crawl_command(
    institution: str = typer.Argument(..., help="院校标识，如 bjtu / bupt / buaa / xidian"),
    profile_file: str | None = typer.Option(
        None,
        "--profile",
        "-p",
        help="从 YAML 加载院校配置（覆盖内置配置）",
    ),
    output_dir: str = typer.Option(
        config.output.output_dir,
        "--output",
        "-o",
        help="输出目录",
    ),
    headless: bool = typer.Option(
        config.browser.headless,
        "--headless/--no-headless",
        help="是否使用无头模式",
    ),
    concurrency: int = typer.Option(
        config.traversal.concurrency,
        "--concurrency",
        "-n",
        help="顶层分支并发会话数",
    ),
    resume: bool = typer.Option(False, "--resume", help="跳过已写出检查点的分支"),
    only: list[str] | None = typer.Option(
        None,
        "--only",
        help="只抓取第一层筛选项中的指定标签（可重复）",
    ),
    log_file: str | None = typer.Option(None, "--log-file", help="同时写入日志文件"),
):
    """
    遍历院校页面的级联筛选项并抓取录取分数

    示例:
        scorespider crawl bupt --only 北京 --only 上海
    """
    if log_file:
        setup_package_file_logging(log_file)

    try:
        profile = _resolve_profile(institution, profile_file)
    except ScoreSpiderError as e:
        console.print(Panel(f"[red]{e}[/red]", title="配置错误", style="red"))
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[bold]院校:[/bold] {profile.school} ({profile.slug})\n"
            f"[bold]入口:[/bold] {profile.url}\n"
            f"[bold]筛选项:[/bold] {' -> '.join(profile.facets.keys())}\n"
            f"[bold]并发会话:[/bold] {concurrency}\n"
            f"[bold]续跑:[/bold] {resume}\n"
            f"[bold]输出目录:[/bold] {output_dir}",
            title="级联筛选抓取",
            style="cyan",
        )
    )

    try:
        report = asyncio.run(
            run_institution(
                profile,
                output_dir=output_dir,
                headless=headless,
                concurrency=concurrency,
                resume=resume,
                only_labels=only or None,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]用户中断，已完成的分支已写出[/yellow]")
        raise typer.Exit(130)
    except ScoreSpiderError as e:
        console.print(
            Panel(f"[red]{e}[/red]\n\n已完成的分支与缓冲记录已写出", title="执行中断", style="red")
        )
        raise typer.Exit(1)

    _print_crawl_report(report, output_dir)


@app.command("pdf")
def pdf_command(
    pdf_dir: str = typer.Argument(..., help="PDF 根目录（<年份>/<省份>.pdf）"),
    institution: str = typer.Option("bnu", "--institution", "-i", help="院校标识"),
    year: str | None = typer.Option(None, "--year", "-y", help="只处理指定年份"),
    province: str | None = typer.Option(None, "--province", help="只处理指定省份"),
    output_dir: str = typer.Option(config.output.output_dir, "--output", "-o", help="输出目录"),
    concurrency: int = typer.Option(
        config.extractor.concurrency,
        "--concurrency",
        "-n",
        help="同时处理的文件数",
    ),
    resume: bool = typer.Option(False, "--resume", help="跳过已处理的文件"),
):
    """
    处理扫描件 PDF：栅格化 -> 多模态抽取 -> 格式修复 -> 归一化

    示例:
        scorespider pdf ./pdfs --year 2024 --province 北京
    """
    try:
        profile = get_profile(institution)
    except ScoreSpiderError as e:
        console.print(Panel(f"[red]{e}[/red]", title="配置错误", style="red"))
        raise typer.Exit(1)

    files = filter_pdf_files(scan_pdf_directory(pdf_dir), year=year, province=province)
    if not files:
        console.print(Panel("[yellow]没有找到符合条件的 PDF 文件[/yellow]", title="扫描件", style="yellow"))
        raise typer.Exit(1)

    try:
        extractor = VisionRecordExtractor()
    except ValueError as e:
        console.print(Panel(f"[red]{e}[/red]", title="配置错误", style="red"))
        raise typer.Exit(1)

    try:
        summary = asyncio.run(_run_pdf_batch(profile, extractor, files, output_dir, concurrency, resume))
    except KeyboardInterrupt:
        console.print("\n[yellow]用户中断[/yellow]")
        raise typer.Exit(130)

    _print_batch_summary(summary)
    if summary.failed:
        raise typer.Exit(1)


async def _run_pdf_batch(profile, extractor, files, output_dir, concurrency, resume) -> BatchSummary:
    progress = ProgressPersistence(output_dir, profile.slug)
    aggregator = ResultAggregator(
        sink=JsonRecordSink(output_dir),
        output_name=profile.resolved_output_name,
        checkpoint_facet=profile.resolved_checkpoint_facet,
        progress=progress,
        institution=profile.slug,
    )
    if resume:
        await restore_progress(aggregator, progress, aggregator.sink, profile.slug)

    processor = PdfBatchProcessor(
        profile,
        extractor=extractor,
        rasterizer=PdftoppmRasterizer(),
        aggregator=aggregator,
        output_dir=output_dir,
        concurrency=concurrency,
    )
    return await processor.run(files)


@app.command("institutions")
def institutions_command():
    """列出内置院校配置"""
    table = Table(title="内置院校")
    table.add_column("标识", style="cyan")
    table.add_column("学校")
    table.add_column("来源")
    table.add_column("筛选项链")
    table.add_column("检查点")
    for profile in list_profiles():
        table.add_row(
            profile.slug,
            profile.school,
            profile.source,
            " -> ".join(profile.facets.keys()),
            profile.resolved_checkpoint_facet or "-",
        )
    console.print(table)


def main():
    """CLI 入口点

    供 pyproject.toml 中 [project.scripts] 调用。
    """
    config.ensure_dirs()
    app()


if __name__ == "__main__":
    main()
