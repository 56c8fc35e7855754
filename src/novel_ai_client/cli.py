"""CLI 인터페이스

Typer 기반 명령줄 인터페이스, Rich 기반 출력
"""

import asyncio
from typing import Optional
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from novel_ai_client.chapters.manager import ChapterStructureManager
from novel_ai_client.config.loader import get_config
from novel_ai_client.core.fingerprint import FingerprintEngine
from novel_ai_client.save.coordinator import SaveCoordinator, SaveStatus
from novel_ai_client.store.data_manager import DataManager
from novel_ai_client.store.local_cache import InputCache
from novel_ai_client.store.remote_store import RemoteStore, RemoteStoreError
from novel_ai_client.utils.logger import configure_from, get_logger

logger = get_logger(__name__)
console = Console()
app = typer.Typer(help="Novel AI Client - 속성/데이터 저장, 검색, 챕터 관리")

STATUS_STYLES = {
    SaveStatus.SAVED: "green",
    SaveStatus.DUPLICATE: "yellow",
    SaveStatus.UNCHANGED: "dim",
    SaveStatus.BUSY: "yellow",
    SaveStatus.INPUT_INCOMPLETE: "yellow",
    SaveStatus.FINGERPRINT_UNAVAILABLE: "yellow",
    SaveStatus.REMOTE_WRITE_FAILURE: "red",
}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="콘솔에 DEBUG 로그 표시")):
    """설정 파일의 로그 레벨 적용"""
    configure_from(get_config().logging, verbose)


def get_store() -> RemoteStore:
    return RemoteStore()


def get_cache() -> InputCache:
    return InputCache()


def get_summary_client():
    from novel_ai_client.ai.summary_client import SummaryClient
    return SummaryClient()


def _build_coordinator(store, cache) -> SaveCoordinator:
    return SaveCoordinator.from_config(store, cache=cache)


def _build_manager(store, cache, with_summary: bool = False) -> ChapterStructureManager:
    config = get_config()
    return ChapterStructureManager(
        store,
        _build_coordinator(store, cache),
        cache=cache,
        summary_client=get_summary_client() if with_summary else None,
        temperature=config.summary.temperature,
        max_output_tokens=config.summary.max_output_tokens
    )


def _print_chapters(novel_title: str, chapters, cursor: int) -> None:
    table = Table(title=f"📖 {novel_title} 챕터 구성")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("챕터", style="green")
    table.add_column("장면", style="white")
    for index, chapter in enumerate(chapters):
        marker = "▶" if index == cursor else str(index + 1)
        table.add_row(marker, chapter.label, ", ".join(chapter.scenes))
    console.print(table)


@app.command()
def fingerprint(text: str = typer.Argument(..., help="지문을 계산할 텍스트")):
    """텍스트 BIT 지문 계산"""
    fp = FingerprintEngine().fingerprint(text)
    if fp is None:
        console.print("[red]❌ 지문을 계산할 수 없습니다 (빈 텍스트 또는 범위 초과)[/red]")
        raise typer.Exit(code=1)

    table = Table(title="BIT 지문")
    table.add_column("항목", style="cyan")
    table.add_column("값", style="green")
    table.add_row("텍스트", text)
    table.add_row("BIT MAX", repr(fp.bit_max))
    table.add_row("BIT MIN", repr(fp.bit_min))
    console.print(table)


@app.command()
def search(
    filter_text: str = typer.Argument(..., help="필터 텍스트 (예: '다크 판타지 → 챕터 1')"),
    keywords: Optional[str] = typer.Option(None, "--keywords", "-k", help="추가 검색 키워드 (쉼표로 구분)"),
    strict: bool = typer.Option(False, "--strict", "-s", help="필터/키워드를 포함한 속성만 표시"),
    limit: int = typer.Option(20, "--limit", "-l", help="최대 표시 개수")
):
    """속성 검색 (유사도 순위)"""
    console.print(Panel.fit(f"🔍 속성 검색: {filter_text}", style="bold blue"))
    manager = DataManager(get_store())
    try:
        results = manager.search(filter_text, keywords, require_match=strict, limit=limit)
    except RemoteStoreError as e:
        console.print(f"[red]❌ 조회 실패: {e.message}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"검색 결과 ({len(results)}개)")
    table.add_column("유사도", style="cyan", justify="right")
    table.add_column("속성 경로", style="green")
    for item in results:
        table.add_row(f"{item.score * 100:.1f}%", item.path)
    console.print(table)


@app.command()
def data(
    attribute_path: str = typer.Argument(..., help="속성 경로"),
    limit: int = typer.Option(100, "--limit", "-l", help="최대 개수")
):
    """속성 경로의 데이터 목록"""
    manager = DataManager(get_store())
    try:
        records = manager.list_data(attribute_path, limit)
    except RemoteStoreError as e:
        console.print(f"[red]❌ 조회 실패: {e.message}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"{attribute_path} ({len(records)}개)")
    table.add_column("시간", style="cyan")
    table.add_column("챕터", style="magenta")
    table.add_column("데이터", style="white")
    for record in records:
        chapter = record.chapter.label if record.chapter else "-"
        table.add_row(record.timestamp or "-", chapter, record.text)
    console.print(table)


@app.command()
def save(
    novel: str = typer.Option(..., "--novel", "-n", help="소설 제목"),
    attribute: str = typer.Option(..., "--attribute", "-a", help="속성 (예: '챕터 1: 제1장 → 등장인물')"),
    text: str = typer.Option("", "--data", "-d", help="데이터 텍스트 (비우면 속성만 저장)")
):
    """속성-데이터 저장 (중복이면 건너뜀)"""
    store = get_store()
    cache = get_cache()

    async def run():
        coordinator = _build_coordinator(store, cache)
        try:
            return await coordinator.submit(novel, attribute, text)
        finally:
            await coordinator.close()

    try:
        result = asyncio.run(run())
    finally:
        cache.close()

    style = STATUS_STYLES.get(result.status, "white")
    console.print(f"[{style}]{result.status.value}[/{style}] {result.attribute_path} {result.message}")
    for warning in result.warnings:
        console.print(f"[yellow]⚠️ {warning}[/yellow]")
    if not result.ok:
        raise typer.Exit(code=1)


@app.command("delete-data")
def delete_data(
    attribute_path: str = typer.Argument(..., help="속성 경로"),
    text: str = typer.Argument(..., help="삭제할 데이터 원문")
):
    """데이터 삭제 (속성 경로 + 원문 일치 확인)"""
    try:
        deleted = DataManager(get_store()).delete_data(attribute_path, text)
    except RemoteStoreError as e:
        logger.error(f"❌ 데이터 삭제 실패 ({attribute_path}): {e.message}")
        console.print(f"[red]❌ 삭제 실패: {e.message}[/red]")
        raise typer.Exit(code=1)
    console.print(f"🗑️ 삭제됨: {deleted}개")


@app.command("delete-attribute")
def delete_attribute(
    attribute_path: str = typer.Argument(..., help="속성 경로"),
    yes: bool = typer.Option(False, "--yes", "-y", help="확인 없이 삭제")
):
    """속성 삭제 (소속 데이터 포함)"""
    if not yes and not typer.confirm(f"'{attribute_path}' 속성과 모든 데이터를 삭제할까요?"):
        raise typer.Abort()
    try:
        deleted = DataManager(get_store()).delete_attribute(attribute_path)
    except RemoteStoreError as e:
        logger.error(f"❌ 속성 삭제 실패 ({attribute_path}): {e.message}")
        console.print(f"[red]❌ 삭제 실패: {e.message}[/red]")
        raise typer.Exit(code=1)
    console.print(f"🗑️ 삭제됨: {deleted}개")


def _navigate(novel: str, action: str) -> None:
    store = get_store()
    cache = get_cache()

    async def run():
        manager = _build_manager(store, cache)
        try:
            if action == "next":
                await manager.next(novel)
            elif action == "prev":
                await manager.prev(novel)
            view = await manager.novel_view(novel)
            chapters = view.ordered()
            return chapters, manager.cursor(novel, len(chapters))
        finally:
            await manager.close()

    try:
        chapters, cursor = asyncio.run(run())
    finally:
        cache.close()
    _print_chapters(novel, chapters, cursor)


@app.command()
def chapters(novel: str = typer.Argument(..., help="소설 제목")):
    """챕터 구성 표시"""
    _navigate(novel, "show")


@app.command("next")
def next_chapter(novel: str = typer.Argument(..., help="소설 제목")):
    """다음 챕터로 이동 (마지막이면 새 챕터 생성)"""
    _navigate(novel, "next")


@app.command("prev")
def prev_chapter(novel: str = typer.Argument(..., help="소설 제목")):
    """이전 챕터로 이동"""
    _navigate(novel, "prev")


@app.command()
def summary(
    novel: str = typer.Argument(..., help="소설 제목"),
    write: bool = typer.Option(False, "--write", "-w", help="다음 챕터의 과거 줄거리로 저장")
):
    """현재 챕터 요약 생성"""
    store = get_store()
    cache = get_cache()

    async def run():
        manager = _build_manager(store, cache, with_summary=True)
        try:
            text = await manager.summary(novel)
            result = await manager.write_past_summary(novel, text) if (text and write) else None
            return text, result
        finally:
            await manager.close()

    try:
        text, result = asyncio.run(run())
    finally:
        cache.close()

    if not text:
        console.print("[yellow]⚠️ 요약을 생성하지 못했습니다[/yellow]")
        raise typer.Exit(code=1)
    console.print(Panel(text, title="📝 챕터 요약", style="green"))
    if result is not None:
        console.print(f"저장: {result.status.value} {result.attribute_path}")


if __name__ == "__main__":
    app()
