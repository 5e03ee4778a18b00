"""
CLI 명령줄 인터페이스 모듈
"""
import sys
import json
import time
import logging
from pathlib import Path
from typing import List, Optional
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.panel import Panel

from .config import load_config
from .exceptions import ConfigError
from .orchestrator import ThreeTierExtractor, build_llm
from .registry import ALL_FIELDS
from .rules import RuleExtractor, get_missing_fields_by_group
from .schema import DocumentSources, ThreeTierExtractionResult
from .sinks import JsonlCostSink, JsonlFeedbackStore, LoggingCostSink, NullFeedbackStore

app = typer.Typer(help="한국 정부 R&D 공고문 3단계 필드 추출 파이프라인")
console = Console()
logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "./config/example.yaml"


def _setup_logging(verbose: bool, debug: bool):
    if verbose or debug:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
    if verbose:
        console.print("[yellow]상세 모드 활성화, 단계별 처리 내역을 표시합니다[/yellow]")
    if debug:
        console.print("[red]🔍 LLM 디버그 모드 활성화, 전체 프롬프트와 응답을 표시합니다[/red]")


def _collect_files(input_path: Path, pattern: str) -> List[Path]:
    if input_path.is_file():
        return [input_path]
    return sorted(input_path.glob(pattern))


@app.command()
def extract(
    input_path: str = typer.Argument(..., help="공고문 텍스트 파일 또는 디렉터리"),
    out: str = typer.Option("./out", "--out", "-o", help="출력 디렉터리"),
    config: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="설정 파일 경로"),
    html: Optional[str] = typer.Option(None, "--html", help="상세 페이지 HTML 파일 (단일 파일 입력 시)"),
    description: str = typer.Option("", "--description", help="공고 설명 텍스트"),
    markdown: Optional[bool] = typer.Option(None, "--markdown/--plain", help="Markdown 변환본 여부 (기본: .md 확장자로 판단)"),
    pattern: str = typer.Option("*.md", "--pattern", "-p", help="파일 매칭 패턴"),
    enable_tier2: Optional[bool] = typer.Option(None, "--enable-tier2/--disable-tier2", help="Tier 2 사용 여부 (기본: 설정/환경변수)"),
    enable_tier3: Optional[bool] = typer.Option(None, "--enable-tier3/--disable-tier3", help="Tier 3 사용 여부 (기본: 설정/환경변수)"),
    force: bool = typer.Option(False, "--force", help="Tier 3 강제 실행"),
    delay: float = typer.Option(1.0, "--delay", help="문서 간 대기 시간 (초)"),
    feedback_path: Optional[str] = typer.Option(None, "--feedback-path", help="Tier 3 패턴 제안 저장 파일 (JSONL)"),
    cost_log: Optional[str] = typer.Option(None, "--cost-log", help="비용 기록 파일 (JSONL)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="상세 출력"),
    debug: bool = typer.Option(False, "--debug", help="LLM 디버그 모드, 전체 프롬프트와 응답 표시")
):
    """공고문 필드 추출"""
    load_dotenv()
    _setup_logging(verbose, debug)

    input_path = Path(input_path)
    if not input_path.exists():
        console.print(f"[red]오류: 입력 경로가 없습니다 {input_path}[/red]")
        sys.exit(1)

    try:
        extraction_config = load_config(config)
    except ConfigError as e:
        console.print(f"[red]오류: {e}[/red]")
        sys.exit(1)

    overrides = {}
    if enable_tier2 is not None:
        overrides['enable_tier2'] = enable_tier2
    if enable_tier3 is not None:
        overrides['enable_tier3'] = enable_tier3
    if force:
        overrides['force_escalate'] = True
    extraction_config = extraction_config.model_copy(update=overrides)

    out_path = Path(out)
    out_path.mkdir(parents=True, exist_ok=True)

    files = _collect_files(input_path, pattern)
    if not files:
        console.print(f"[yellow]경고: 매칭되는 파일이 없습니다 {pattern}[/yellow]")
        return

    raw_html = ""
    if html:
        if len(files) > 1:
            console.print("[yellow]경고: --html은 단일 파일 입력에서만 사용됩니다[/yellow]")
        else:
            raw_html = Path(html).read_text(encoding='utf-8')

    extractor = ThreeTierExtractor(
        config=extraction_config,
        tier2_llm=build_llm(extraction_config, 2, debug_mode=debug),
        tier3_llm=build_llm(extraction_config, 3, debug_mode=debug),
        cost_sink=JsonlCostSink(cost_log) if cost_log else LoggingCostSink(),
        feedback_store=JsonlFeedbackStore(feedback_path) if feedback_path else NullFeedbackStore(),
        rule_extractor=RuleExtractor(config),
    )

    console.print(f"[green]파일 {len(files)}개 발견[/green]")
    console.print(
        f"[blue]Tier 2: {'ON' if extraction_config.enable_tier2 else 'OFF'} "
        f"({extraction_config.tier2.provider}:{extraction_config.tier2.model}), "
        f"Tier 3: {'ON' if extraction_config.enable_tier3 else 'OFF'} "
        f"({extraction_config.tier3.provider}:{extraction_config.tier3.model})"
        f"{' [강제]' if extraction_config.force_escalate else ''}[/blue]"
    )

    results: List[ThreeTierExtractionResult] = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:

        for i, file_path in enumerate(files):
            if i > 0 and delay > 0:
                time.sleep(delay)

            task = progress.add_task(f"처리 중 {file_path.name}...", total=None)

            try:
                console.print(f"\n[bold cyan]파일 처리 {i+1}/{len(files)}: {file_path.name}[/bold cyan]")
                content = file_path.read_text(encoding='utf-8')
                sources = DocumentSources(
                    announcement_texts=[content],
                    raw_html=raw_html,
                    description=description,
                    markdown=markdown if markdown is not None else file_path.suffix.lower() == '.md',
                )
                result = extractor.extract(file_path.stem, sources)
                results.append(result)

                progress.update(task, description=f"완료 {file_path.name}")

                console.print(f"[green]✅ 처리 완료: {file_path.name}[/green]")
                console.print(f"   📊 추출 필드: {len(result.fields)}/{len(ALL_FIELDS)} ({result.coverage_percent}%)")
                console.print(f"   🪜 최고 단계: Tier {result.highest_tier_used}")
                console.print(f"   💰 예상 비용: {result.estimated_cost_krw:.2f}원")
                if result.escalation_reasons:
                    console.print(f"   🚀 승격 사유: {'; '.join(result.escalation_reasons)}")

                output_file = out_path / f"{file_path.stem}.json"
                with open(output_file, 'w', encoding='utf-8') as f:
                    json.dump(result.model_dump(mode="json"), f, ensure_ascii=False, indent=2)
                console.print(f"[green]💾 결과 저장: {output_file}[/green]")

            except Exception as e:
                progress.update(task, description=f"실패 {file_path.name}")
                console.print(f"[red]❌ 처리 실패 {file_path}: {e}[/red]")

    _display_results_summary(results)


@app.command()
def tier1(
    file_path: str = typer.Argument(..., help="공고문 텍스트 파일"),
    config: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="설정 파일 경로")
):
    """Tier 1 규칙 추출만 실행 (비용 없음)"""

    file_path = Path(file_path)
    if not file_path.exists():
        console.print(f"[red]오류: 파일이 없습니다 {file_path}[/red]")
        sys.exit(1)

    content = file_path.read_text(encoding='utf-8')
    rule_extractor = RuleExtractor(config)
    results = rule_extractor.extract_fields(content)
    stats = rule_extractor.get_extraction_stats(results)

    table = Table(title=f"Tier 1 추출 결과: {file_path.name}")
    table.add_column("필드", style="cyan")
    table.add_column("그룹", style="magenta")
    table.add_column("값", style="green")
    table.add_column("신뢰도", style="yellow")
    table.add_column("패턴", style="white")

    for result in results:
        table.add_row(
            result.field,
            result.group.value,
            str(result.value)[:60],
            result.confidence.value,
            result.source,
        )

    console.print(table)

    missing = get_missing_fields_by_group(results)
    missing_lines = "\n".join(
        f"{group.value}: {', '.join(f.value for f in fields) or '-'}" for group, fields in missing.items()
    )
    console.print(Panel.fit(
        f"추출: {stats['total_fields']}/{stats['declared_fields']}\n"
        f"HIGH: {stats['fields_by_confidence']['HIGH']}, MEDIUM: {stats['fields_by_confidence']['MEDIUM']}\n"
        f"\n[bold]미추출 필드[/bold]\n{missing_lines}",
        title="Tier 1 요약"
    ))


@app.command()
def suggestions(
    path: str = typer.Argument(..., help="피드백 JSONL 파일"),
    field: Optional[str] = typer.Option(None, "--field", "-f", help="필드명 필터"),
    pending_only: bool = typer.Option(True, "--pending-only/--all", help="미반영 제안만 표시")
):
    """Tier 3 패턴 제안 검토"""

    store = JsonlFeedbackStore(path)
    records = store.read()
    if field:
        records = [r for r in records if r.field == field]
    if pending_only:
        records = [r for r in records if not r.incorporated]

    if not records:
        console.print("[yellow]표시할 패턴 제안이 없습니다[/yellow]")
        return

    table = Table(title=f"패턴 제안 ({len(records)}건)")
    table.add_column("작업", style="cyan")
    table.add_column("필드", style="magenta")
    table.add_column("Tier 3 값", style="green")
    table.add_column("제안 패턴", style="yellow")
    table.add_column("실패 이유", style="white")

    for record in records:
        table.add_row(
            record.job_id,
            record.field,
            (record.tier3_value or "")[:40],
            record.pattern_suggestion,
            record.reasoning[:60],
        )

    console.print(table)


def _display_results_summary(results: List[ThreeTierExtractionResult]):
    """결과 요약 표시"""

    if not results:
        return

    total_files = len(results)
    total_cost = sum(r.estimated_cost_krw for r in results)
    avg_coverage = sum(r.coverage_percent for r in results) / total_files
    tier_counts = {1: 0, 2: 0, 3: 0}
    for result in results:
        tier_counts[result.highest_tier_used] += 1

    console.print(Panel.fit(
        f"[bold]처리 완료![/bold]\n"
        f"파일 수: {total_files}\n"
        f"평균 커버리지: {avg_coverage:.1f}%\n"
        f"Tier 2 토큰: {sum(r.tier2_tokens_used for r in results):,}\n"
        f"Tier 3 토큰: {sum(r.tier3_tokens_used for r in results):,}\n"
        f"총 예상 비용: {total_cost:.2f}원",
        title="처리 요약"
    ))

    table = Table(title="최고 사용 단계 분포")
    table.add_column("단계", style="cyan")
    table.add_column("문서 수", style="magenta")
    for tier, count in tier_counts.items():
        table.add_row(f"Tier {tier}", str(count))
    console.print(table)

    failed_counts = {}
    for result in results:
        for name in result.failed_fields:
            failed_counts[name] = failed_counts.get(name, 0) + 1

    if failed_counts:
        table = Table(title="미추출 필드")
        table.add_column("필드", style="cyan")
        table.add_column("문서 수", style="magenta")
        for name, count in sorted(failed_counts.items(), key=lambda x: x[1], reverse=True):
            table.add_row(name, str(count))
        console.print(table)


if __name__ == "__main__":
    app()
